from __future__ import annotations

import logging
from dataclasses import dataclass, field

from django.db import DatabaseError, IntegrityError, transaction

from apps.accounts.admin_security import log_audit_event
from apps.accounts.models import AuditLog, User
from apps.common.exceptions import ConflictError
from apps.common.file_utils import build_upload_prefix, save_image_bytes
from apps.common.image_utils import UPLOAD_PROFILE, compress_image, decode_data_url, is_data_url
from apps.common.media_utils import public_media_url

from .constants import CREATED_TOAST, UPDATED_TOAST
from .form_rules import DUPLICATE_EMAIL_MESSAGE, build_submit_data
from .models import Shop
from .serializers import ShopUpsertSerializer, flatten_serializer_errors

logger = logging.getLogger(__name__)

IMAGES_UPDATE_FAILED_MESSAGE = "画像情報の更新に失敗しました"


class ShopSubmitInvalid(Exception):
    def __init__(self, errors: dict[str, str]):
        super().__init__("shop submit data failed validation")
        self.errors = errors


@dataclass
class ImageUploadOutcome:
    urls: list[str] = field(default_factory=list)
    failures: list[dict] = field(default_factory=list)
    pending: list[str] = field(default_factory=list)


@dataclass
class RegistrationResult:
    shop: Shop
    created: bool
    images: list[str]
    failures: list[dict]
    pending_previews: list[str]
    redirect_to: str

    @property
    def is_complete(self) -> bool:
        return not self.failures


def validate_submit_data(submit_data: dict, shop: Shop | None = None) -> ShopUpsertSerializer:
    serializer = ShopUpsertSerializer(data=submit_data, context={"shop": shop})
    if not serializer.is_valid():
        raise ShopSubmitInvalid(flatten_serializer_errors(serializer.errors))
    return serializer


def _sync_shop_account(shop: Shop, *, email: str, password_hash: str) -> None:
    account = shop.linked_account
    if account is not None:
        if email and email.lower() != account.email.lower():
            if User.objects.email_in_use(email, exclude_pk=account.pk):
                raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="accountEmail")
            account.email = User.objects.normalize_email(email)
            account.save(update_fields=["email", "updated_at"])
        return

    if not email:
        return
    if User.objects.email_in_use(email):
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="accountEmail")
    account = User.objects.create_user(
        email,
        password=None,
        account_type=User.AccountType.SHOP,
        display_name=shop.name[:100],
        status=User.Status.ACTIVE,
        shop=shop,
    )
    if password_hash:
        account.password = password_hash
        account.save(update_fields=["password"])


def save_shop(serializer: ShopUpsertSerializer, shop: Shop | None = None) -> tuple[Shop, bool]:
    """Create or update a shop plus its linked account inside one transaction."""
    fields = serializer.to_model_fields()
    data = serializer.validated_data
    created = shop is None
    try:
        with transaction.atomic():
            if created:
                shop = Shop.objects.create(**fields)
            else:
                for name, value in fields.items():
                    setattr(shop, name, value)
                shop.save()
            shop.scenes.set(data.get("sceneIds") or [])
            if "accountEmail" in data:
                _sync_shop_account(
                    shop,
                    email=(data.get("accountEmail") or "").strip(),
                    password_hash=data.get("passwordHash") or "",
                )
    except IntegrityError as exc:
        # Lost a race on the unique account email.
        raise ConflictError(DUPLICATE_EMAIL_MESSAGE, field="accountEmail") from exc
    return shop, created


def upload_staged_images(shop: Shop, previews: list[str], *, request=None) -> ImageUploadOutcome:
    """Upload data URL previews one after another, keeping their order."""
    outcome = ImageUploadOutcome()
    prefix = build_upload_prefix("shop", shop_id=str(shop.id), merchant_id=str(shop.merchant_id))
    for index, preview in enumerate(previews):
        if not is_data_url(preview):
            if preview:
                outcome.urls.append(preview)
            continue
        try:
            content, content_type = decode_data_url(preview)
            content, content_type = compress_image(content, content_type, UPLOAD_PROFILE)
            name = save_image_bytes(prefix, f"shop-image-{index}", content, content_type)
        except Exception as exc:  # storage backends raise their own error types
            logger.warning("shop %s image %d upload failed: %s", shop.id, index, exc)
            outcome.failures.append({"index": index, "message": f"画像{index + 1}のアップロードに失敗しました"})
            outcome.pending.append(preview)
            continue
        outcome.urls.append(public_media_url(name, request=request))
    return outcome


def register_shop(request, confirm_data: dict, *, shop: Shop | None = None) -> RegistrationResult:
    """Persist staged form data: the shop first, then its images.

    A shop already created by an earlier attempt (``registeredShopId``) is
    reused so that retrying after an image failure does not create a second
    shop.
    """
    is_edit = bool(confirm_data.get("isEdit"))
    registered_id = confirm_data.get("registeredShopId")
    created = False

    if shop is None and registered_id:
        shop = Shop.objects.filter(id=registered_id).first()

    if shop is None or is_edit:
        serializer = validate_submit_data(build_submit_data(confirm_data), shop)
        shop, created = save_shop(serializer, shop)
        log_audit_event(
            request,
            action="SHOP_UPDATE" if is_edit else "SHOP_CREATE",
            target_type="Shop",
            target_id=str(shop.id),
            after={"name": shop.name, "status": shop.status},
        )

    outcome = upload_staged_images(shop, list(confirm_data.get("imagePreviews") or []), request=request)
    images = list(confirm_data.get("existingImages") or []) + outcome.urls
    failures = list(outcome.failures)
    try:
        with transaction.atomic():
            shop.images = images
            shop.save(update_fields=["images", "updated_at"])
    except DatabaseError as exc:
        logger.warning("shop %s images update failed: %s", shop.id, exc)
        failures.append({"index": None, "message": IMAGES_UPDATE_FAILED_MESSAGE})

    if failures:
        logger.warning("shop %s registered with %d image failures", shop.id, len(failures))
        log_audit_event(
            request,
            action="SHOP_IMAGE_UPLOAD",
            target_type="Shop",
            target_id=str(shop.id),
            metadata={"failures": failures},
            result=AuditLog.Result.FAIL,
            error_code="PARTIAL_IMAGE_UPLOAD",
        )

    toast = UPDATED_TOAST if is_edit else CREATED_TOAST
    fallback = confirm_data.get("fallbackRedirect") or "/shops"
    separator = "&" if "?" in fallback else "?"
    return RegistrationResult(
        shop=shop,
        created=created,
        images=images,
        failures=failures,
        pending_previews=outcome.pending,
        redirect_to=f"{fallback}{separator}toast={toast}",
    )
