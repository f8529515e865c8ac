from django.db import models


class LifecycleStatus(models.TextChoices):
    """Onboarding lifecycle shared by merchants and shops."""

    REGISTERING = "registering", "登録中"
    COLLECTION_REQUESTED = "collection_requested", "情報収集依頼済み"
    APPROVAL_PENDING = "approval_pending", "承認待ち"
    PROMOTIONAL_MATERIALS_PREPARING = "promotional_materials_preparing", "宣材準備中"
    PROMOTIONAL_MATERIALS_SHIPPING = "promotional_materials_shipping", "宣材発送中"
    OPERATING = "operating", "営業中"
    SUSPENDED = "suspended", "停止中"
    TERMINATED = "terminated", "終了"
