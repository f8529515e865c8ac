from __future__ import annotations

import logging
import re

from django.conf import settings
from django.core.cache import caches
from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import connections
from django.db.utils import OperationalError
from django.http import JsonResponse
from django.utils import timezone
from rest_framework import status
from rest_framework.parsers import FormParser, MultiPartParser
from rest_framework.views import APIView

from apps.accounts.admin_security import ConsolePermission, ConsoleRBACPermission

from .file_utils import UPLOAD_TYPES, build_upload_prefix, save_uploaded_file, validate_image_file, validate_upload_count
from .media_utils import public_media_url
from .postal import ZipcloudClient
from .response import error_response, success_response

logger = logging.getLogger(__name__)

POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{7}$")


def healthz(_request):
    database_ok = True
    cache_ok = True

    try:
        with connections["default"].cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except OperationalError:
        database_ok = False

    if getattr(settings, "USE_REDIS_CACHE", False):
        try:
            cache = caches["default"]
            cache.set("healthz:cache", "ok", timeout=5)
            cache_ok = cache.get("healthz:cache") == "ok"
        except Exception:
            logger.warning("healthz cache probe failed", exc_info=True)
            cache_ok = False

    checks = {
        "database": "ok" if database_ok else "error",
        "cache": "ok" if cache_ok else "error",
    }

    status_code = 200 if all(v == "ok" for v in checks.values()) else 503
    return JsonResponse(
        {
            "status": "ok" if status_code == 200 else "degraded",
            "timestamp": timezone.now().isoformat(),
            "checks": checks,
        },
        status=status_code,
    )


class UploadAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.UPLOAD}}
    parser_classes = [MultiPartParser, FormParser]

    def post(self, request, *args, **kwargs):
        files = request.FILES.getlist("image")
        if not files:
            return error_response(
                code="NO_FILE",
                message="画像ファイルを選択してください",
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        try:
            validate_upload_count(files)
            for upload in files:
                validate_image_file(upload)
        except DjangoValidationError as exc:
            return error_response(
                code="INVALID_UPLOAD",
                message=exc.messages[0],
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        upload_type = str(request.data.get("type") or "shop").strip()
        if upload_type not in UPLOAD_TYPES:
            return error_response(
                code="INVALID_UPLOAD",
                message="アップロード種別が正しくありません",
                details={"type": upload_type},
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        prefix = build_upload_prefix(
            upload_type,
            shop_id=request.data.get("shopId", ""),
            merchant_id=request.data.get("merchantId", ""),
        )
        urls = []
        for upload in files:
            name = save_uploaded_file(prefix, upload)
            urls.append(public_media_url(name, request=request))

        return success_response(
            {"url": urls[0], "urls": urls},
            message="画像をアップロードしました",
            status_code=status.HTTP_201_CREATED,
        )


class AddressSearchAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MASTER_VIEW}}

    def get(self, request, *args, **kwargs):
        postal_code = str(request.query_params.get("postalCode", "")).strip()
        if not POSTAL_CODE_PATTERN.match(postal_code):
            return error_response(
                code="INVALID_POSTAL_CODE",
                message="郵便番号は7桁の数字で入力してください",
                details={"postalCode": "郵便番号は7桁の数字で入力してください"},
                status_code=status.HTTP_400_BAD_REQUEST,
            )

        address = ZipcloudClient().search(postal_code)
        if address is None:
            return error_response(
                code="ADDRESS_NOT_FOUND",
                message="該当する住所が見つかりませんでした",
                status_code=status.HTTP_404_NOT_FOUND,
            )
        return success_response({"postalCode": postal_code, **address})
