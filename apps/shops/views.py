from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from django.db import DatabaseError, transaction
from django.http import Http404
from django.shortcuts import get_object_or_404
from rest_framework import status
from rest_framework.exceptions import PermissionDenied
from rest_framework.views import APIView

from apps.accounts.admin_security import (
    ConsolePermission,
    ConsoleRBACPermission,
    ConsoleRole,
    build_request_hash,
    copy_for_audit,
    extract_idempotency_key,
    get_console_role,
    get_idempotent_replay_response,
    log_audit_event,
    save_idempotent_response,
    scope_queryset,
)
from apps.accounts.models import User
from apps.common.choices import LifecycleStatus
from apps.common.constants import HOLIDAY_SPECIAL_OPTIONS, OTHER_OPTION, PREFECTURES, SAITAMA_WARDS, WEEKDAYS
from apps.common.csv_export import (
    build_csv_content,
    build_csv_filename,
    collect_export_rows,
    csv_response,
    format_csv_datetime,
)
from apps.common.response import error_response, success_response
from apps.common.search import SearchForm, build_list_response
from apps.merchants.models import Merchant

from .constants import CREATED_TOAST, CREDIT_CARD_BRANDS, QR_PAYMENT_SERVICES, SERVICE_OPTIONS, UPDATED_TOAST
from .filters import SHOP_SEARCH_DEFAULTS, filter_shops, shop_matcher
from .form_rules import (
    FORM_DEFAULTS,
    GENERAL_ERROR_MESSAGE,
    SELECTION_DEFAULTS,
    build_confirm_data,
    build_fallback_redirect,
    build_submit_data,
    decompose_shop,
    first_error_field,
    normalize_form,
    validate_shop_form,
)
from .models import Genre, Scene, Shop
from .serializers import (
    GenreSerializer,
    SceneSerializer,
    ShopBulkStatusSerializer,
    ShopDetailSerializer,
    ShopFieldValidationSerializer,
    ShopListSerializer,
    ShopStatusUpdateSerializer,
)
from .services import ShopSubmitInvalid, register_shop, save_shop, validate_submit_data
from .staging import (
    check_confirm_mode,
    clear_confirm_data,
    compress_previews,
    confirm_route,
    load_confirm_data,
    stage_confirm_data,
)

logger = logging.getLogger(__name__)

SHOP_CSV_COLUMNS = [
    ("merchantName", "事業者名"),
    ("name", "店舗名"),
    ("nameKana", "店舗名（カナ）"),
    ("postalCode", "郵便番号"),
    ("address", "住所"),
    ("accountEmail", "メールアドレス"),
    ("phone", "電話番号"),
    ("statusLabel", "承認ステータス"),
    ("createdAt", "登録日時"),
    ("updatedAt", "更新日時"),
]


def _shop_queryset(user):
    queryset = Shop.objects.select_related("merchant", "genre", "account").prefetch_related("scenes")
    return scope_queryset(queryset, user, merchant_field="merchant_id", shop_field="id")


def _get_scoped_shop(request, shop_id) -> Shop:
    return get_object_or_404(_shop_queryset(request.user), id=shop_id)


def _validation_failed(errors: dict[str, str]):
    return error_response(
        "VALIDATION_ERROR",
        GENERAL_ERROR_MESSAGE,
        details=errors,
        firstErrorField=first_error_field(errors),
    )


def _other_scene_id() -> str | None:
    scene_id = Scene.objects.filter(name=OTHER_OPTION).values_list("id", flat=True).first()
    return str(scene_id) if scene_id else None


def _is_merchant_account(user) -> bool:
    return get_console_role(user) == ConsoleRole.MERCHANT


def _form_options() -> dict:
    return {
        "prefectures": list(PREFECTURES),
        "areas": list(SAITAMA_WARDS),
        "creditCardBrands": list(CREDIT_CARD_BRANDS),
        "qrPaymentServices": list(QR_PAYMENT_SERVICES),
        "serviceOptions": list(SERVICE_OPTIONS),
        "weekdays": list(WEEKDAYS),
        "holidaySpecialOptions": list(HOLIDAY_SPECIAL_OPTIONS),
        "smokingOptions": [{"value": value, "label": label} for value, label in Shop.SmokingType.choices],
        "statusOptions": [{"value": value, "label": label} for value, label in LifecycleStatus.choices],
    }


class ShopListAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.SHOP_VIEW}}

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(SHOP_SEARCH_DEFAULTS, request.query_params)
        queryset = filter_shops(_shop_queryset(request.user), form.applied).order_by("-created_at", "id")
        return build_list_response(
            request,
            form=form,
            queryset=queryset,
            serialize=lambda shop: ShopListSerializer(shop).data,
            version_fields=("updated_at", "merchant__updated_at", "account__updated_at"),
        )


class ShopExportAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.SHOP_VIEW}}

    def get(self, request, *args, **kwargs):
        form = SearchForm.from_params(SHOP_SEARCH_DEFAULTS, request.query_params)
        queryset = filter_shops(_shop_queryset(request.user), form.applied).order_by("-created_at", "id")

        def serialize(shop: Shop) -> dict:
            return {
                "merchantName": shop.merchant.name,
                "name": shop.name,
                "nameKana": shop.name_kana,
                "postalCode": shop.postal_code,
                "address": shop.address,
                "accountEmail": shop.account_email,
                "phone": shop.phone,
                "statusLabel": shop.get_status_display(),
                "createdAt": format_csv_datetime(shop.created_at),
                "updatedAt": format_csv_datetime(shop.updated_at),
            }

        rows = collect_export_rows(queryset, serialize=serialize, matches=shop_matcher(form.applied), label="shops")
        columns = SHOP_CSV_COLUMNS
        if not request.user.is_admin_account:
            columns = [column for column in columns if column[0] != "merchantName"]
        return csv_response(build_csv_content(columns, rows), build_csv_filename("shops"))


class ShopOptionsAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.SHOP_VIEW}}

    def get(self, request, *args, **kwargs):
        queryset = scope_queryset(Shop.objects.all(), request.user, merchant_field="merchant_id", shop_field="id")
        merchant_id = request.query_params.get("merchantId", "").strip()
        if merchant_id:
            queryset = queryset.filter(merchant_id=merchant_id)
        q = request.query_params.get("q", "").strip()
        if q:
            queryset = queryset.filter(name__icontains=q)
        rows = queryset.order_by("name").values("id", "name", "merchant_id")[:50]
        return success_response(
            [{"id": str(row["id"]), "name": row["name"], "merchantId": str(row["merchant_id"])} for row in rows]
        )


class ShopDetailAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.SHOP_VIEW},
        "PUT": {ConsolePermission.SHOP_UPDATE},
        "PATCH": {ConsolePermission.SHOP_UPDATE},
    }

    def get(self, request, shop_id, *args, **kwargs):
        shop = _get_scoped_shop(request, shop_id)
        return success_response(ShopDetailSerializer(shop).data)

    def put(self, request, shop_id, *args, **kwargs):
        shop = _get_scoped_shop(request, shop_id)
        return self._update(request, shop, dict(request.data))

    def patch(self, request, shop_id, *args, **kwargs):
        shop = _get_scoped_shop(request, shop_id)
        current = dict(ShopDetailSerializer(shop).data)
        current["couponUsageStart"] = current.get("couponUsageStart") or None
        current["couponUsageEnd"] = current.get("couponUsageEnd") or None
        # The joined address is rebuilt from its parts unless the body sends one.
        current.pop("address", None)
        current.update(request.data)
        return self._update(request, shop, current)

    def _update(self, request, shop: Shop, payload: dict):
        if _is_merchant_account(request.user) or get_console_role(request.user) == ConsoleRole.SHOP:
            payload["merchantId"] = str(shop.merchant_id)
        before = copy_for_audit(shop, ("name", "status"))
        try:
            serializer = validate_submit_data(payload, shop)
        except ShopSubmitInvalid as exc:
            return _validation_failed(exc.errors)
        shop, _ = save_shop(serializer, shop)
        log_audit_event(
            request,
            action="SHOP_UPDATE",
            target_type="Shop",
            target_id=str(shop.id),
            before=before,
            after=copy_for_audit(shop, ("name", "status")),
        )
        return success_response(ShopDetailSerializer(_get_scoped_shop(request, shop.id)).data, message="店舗を更新しました")


class ShopStatusAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"PATCH": {ConsolePermission.SHOP_STATUS_UPDATE}}

    def patch(self, request, shop_id, *args, **kwargs):
        serializer = ShopStatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        next_status = serializer.validated_data["status"]

        with transaction.atomic():
            shop = get_object_or_404(
                scope_queryset(Shop.objects.select_for_update(), request.user, merchant_field="merchant_id", shop_field="id"),
                id=shop_id,
            )
            previous_status = shop.status
            if next_status != previous_status:
                shop.status = next_status
                shop.save(update_fields=["status", "updated_at"])

        log_audit_event(
            request,
            action="SHOP_STATUS_UPDATE",
            target_type="Shop",
            target_id=str(shop.id),
            before={"status": previous_status},
            after={"status": shop.status},
        )
        return success_response(
            {"id": str(shop.id), "status": shop.status, "previousStatus": previous_status},
            message="ステータスを更新しました",
        )


class ShopBulkStatusAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"PATCH": {ConsolePermission.SHOP_STATUS_UPDATE}}

    def patch(self, request, *args, **kwargs):
        serializer = ShopBulkStatusSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        payload = serializer.validated_data
        idempotency_key = extract_idempotency_key(request, payload)
        request_hash = build_request_hash(
            {"shopIds": [str(shop_id) for shop_id in payload["shopIds"]], "status": payload["status"]}
        )
        replay_response = get_idempotent_replay_response(
            key=idempotency_key,
            action="admin.shops.bulk_status",
            request_hash=request_hash,
        )
        if replay_response is not None:
            return replay_response

        next_status = payload["status"]
        updated: list[str] = []
        failures: list[dict] = []
        base_queryset = scope_queryset(Shop.objects.all(), request.user, merchant_field="merchant_id", shop_field="id")
        for shop_id in dict.fromkeys(payload["shopIds"]):
            try:
                with transaction.atomic():
                    shop = base_queryset.select_for_update().filter(id=shop_id).first()
                    if shop is None:
                        failures.append({"id": str(shop_id), "reason": "店舗が見つかりません"})
                        continue
                    previous_status = shop.status
                    shop.status = next_status
                    shop.save(update_fields=["status", "updated_at"])
            except DatabaseError as exc:
                logger.warning("bulk status update failed for shop %s: %s", shop_id, exc)
                failures.append({"id": str(shop_id), "reason": "ステータスの更新に失敗しました"})
                continue
            updated.append(str(shop_id))
            log_audit_event(
                request,
                action="SHOP_STATUS_UPDATE",
                target_type="Shop",
                target_id=str(shop_id),
                before={"status": previous_status},
                after={"status": next_status},
                idempotency_key=idempotency_key,
            )

        response = success_response(
            {
                "status": next_status,
                "updatedIds": updated,
                "updatedCount": len(updated),
                "failedCount": len(failures),
                "failures": failures,
            },
            message=f"{len(updated)}件のステータスを更新しました",
        )
        save_idempotent_response(
            request=request,
            key=idempotency_key,
            action="admin.shops.bulk_status",
            request_hash=request_hash,
            response=response,
        )
        return response


class GenreListAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MASTER_VIEW}}

    def get(self, request, *args, **kwargs):
        return success_response(GenreSerializer(Genre.objects.order_by("sort_order", "name"), many=True).data)


class SceneListAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.MASTER_VIEW}}

    def get(self, request, *args, **kwargs):
        return success_response(SceneSerializer(Scene.objects.order_by("sort_order", "name"), many=True).data)


class ShopFormContextAPIView(APIView):
    """Everything the shop form needs, with each reference source loaded on its own."""

    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"GET": {ConsolePermission.SHOP_UPDATE}}

    def get(self, request, *args, **kwargs):
        params = request.query_params
        shop_id = params.get("shopId", "").strip() or None
        merchant_id = params.get("merchantId", "").strip() or None
        user = request.user
        is_merchant_account = _is_merchant_account(user)
        if is_merchant_account:
            merchant_id = str(user.merchant_id) if user.merchant_id else None
        if shop_id is None and get_console_role(user) == ConsoleRole.SHOP:
            raise PermissionDenied("店舗アカウントは店舗を新規作成できません。")

        context = {
            "isEdit": shop_id is not None,
            "shopId": shop_id,
            "merchantId": merchant_id or "",
            "merchantName": "",
            "merchants": [],
            "genres": [],
            "scenes": [],
            "formState": None,
            "fallbackRedirect": build_fallback_redirect(
                params.get("returnTo"),
                is_merchant_account=is_merchant_account,
                merchant_id=merchant_id,
            ),
            "options": _form_options(),
            "errors": [],
        }

        def load_merchants():
            if is_merchant_account:
                merchant = get_object_or_404(Merchant, id=merchant_id) if merchant_id else None
                if merchant is None:
                    raise Http404
                context["merchantName"] = merchant.name
                context["merchants"] = [{"id": str(merchant.id), "name": merchant.name}]
                return
            merchants = scope_queryset(Merchant.objects.order_by("name"), user, merchant_field="id", shop_field="shops__id")
            context["merchants"] = [{"id": str(row["id"]), "name": row["name"]} for row in merchants.values("id", "name")]
            if merchant_id:
                context["merchantName"] = next(
                    (row["name"] for row in context["merchants"] if row["id"] == merchant_id), ""
                )

        def load_genres():
            context["genres"] = GenreSerializer(Genre.objects.order_by("sort_order", "name"), many=True).data

        def load_scenes():
            context["scenes"] = SceneSerializer(Scene.objects.order_by("sort_order", "name"), many=True).data

        def load_shop():
            shop = _get_scoped_shop(request, shop_id)
            context["formState"] = decompose_shop(shop)
            context["merchantId"] = str(shop.merchant_id)
            context["merchantName"] = shop.merchant.name

        loaders = [("merchants", load_merchants), ("genres", load_genres), ("scenes", load_scenes)]
        if shop_id is not None:
            loaders.append(("shop", load_shop))

        for source, loader in loaders:
            try:
                with transaction.atomic():
                    loader()
            except Http404:
                context["errors"].append({"source": source, "message": "データが見つかりませんでした"})
            except (DatabaseError, DjangoValidationError, ValueError) as exc:
                logger.warning("shop form source %s failed: %s", source, exc)
                context["errors"].append({"source": source, "message": "データの取得に失敗しました"})

        if context["formState"] is None:
            context["formState"] = {**FORM_DEFAULTS, **SELECTION_DEFAULTS, "merchantId": context["merchantId"]}
        return success_response(context)


class ShopValidateFieldAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.SHOP_UPDATE}}

    def post(self, request, *args, **kwargs):
        serializer = ShopFieldValidationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        field = serializer.validated_data["field"]
        form = normalize_form(serializer.validated_data["values"])
        shop_id = serializer.validated_data.get("shopId")
        original_email = _get_scoped_shop(request, shop_id).account_email if shop_id else ""
        errors = validate_shop_form(
            form,
            is_edit=shop_id is not None,
            is_merchant_account=_is_merchant_account(request.user),
            other_scene_id=_other_scene_id(),
            original_account_email=original_email,
            email_in_use=User.objects.email_in_use,
        )
        return success_response({"field": field, "error": errors.get(field)})


class ShopConfirmDataAPIView(APIView):
    """Stage, read back or discard the form data awaiting confirmation."""

    permission_classes = [ConsoleRBACPermission]
    required_permissions = {
        "GET": {ConsolePermission.SHOP_UPDATE},
        "POST": {ConsolePermission.SHOP_UPDATE},
        "DELETE": {ConsolePermission.SHOP_UPDATE},
    }

    def get(self, request, shop_id=None, *args, **kwargs):
        data = load_confirm_data(request)
        problem = check_confirm_mode(data, shop_id)
        if problem is not None:
            code, redirect_to = problem
            return _confirm_problem_response(code, redirect_to)
        return success_response(data)

    def delete(self, request, shop_id=None, *args, **kwargs):
        clear_confirm_data(request)
        return success_response(message="入力内容を破棄しました")

    def post(self, request, shop_id=None, *args, **kwargs):
        user = request.user
        shop = _get_scoped_shop(request, shop_id) if shop_id else None
        if shop is None and get_console_role(user) == ConsoleRole.SHOP:
            raise PermissionDenied("店舗アカウントは店舗を新規作成できません。")

        is_merchant_account = _is_merchant_account(user)
        form = normalize_form(request.data)
        if is_merchant_account:
            form["merchantId"] = str(user.merchant_id or "")
        elif shop is not None and get_console_role(user) == ConsoleRole.SHOP:
            form["merchantId"] = str(shop.merchant_id)

        other_scene_id = _other_scene_id()
        errors = validate_shop_form(
            form,
            is_edit=shop is not None,
            is_merchant_account=is_merchant_account,
            other_scene_id=other_scene_id,
            original_account_email=shop.account_email if shop else "",
            email_in_use=User.objects.email_in_use,
        )
        if errors:
            return _validation_failed(errors)

        existing_images = [image for image in request.data.get("existingImages") or [] if isinstance(image, str)]
        image_previews = [image for image in request.data.get("imagePreviews") or [] if isinstance(image, str)]
        confirm_data = build_confirm_data(
            form,
            shop_id=shop.id if shop else None,
            merchant_name="",
            genre_name="",
            scene_names={},
            other_scene_id=other_scene_id,
            existing_images=existing_images,
            image_previews=[],
            has_existing_account=bool(shop and shop.linked_account),
            fallback_redirect=build_fallback_redirect(
                request.data.get("returnTo"),
                is_merchant_account=is_merchant_account,
                merchant_id=form["merchantId"],
            ),
        )
        try:
            validate_submit_data(build_submit_data(confirm_data), shop)
        except ShopSubmitInvalid as exc:
            return _validation_failed(exc.errors)

        scene_ids = confirm_data["selectedScenes"]
        confirm_data["merchantName"] = Merchant.objects.filter(id=form["merchantId"]).values_list("name", flat=True).first() or ""
        confirm_data["genreName"] = Genre.objects.filter(id=form["genreId"]).values_list("name", flat=True).first() or ""
        confirm_data["sceneNames"] = {
            str(scene_id): name for scene_id, name in Scene.objects.filter(id__in=scene_ids).values_list("id", "name")
        }
        confirm_data["imagePreviews"] = compress_previews(image_previews)
        stage_confirm_data(request, confirm_data)
        return success_response({"redirectTo": confirm_route(shop.id if shop else None)})


def _confirm_problem_response(code: str, redirect_to: str):
    if code == "CONFIRM_DATA_NOT_FOUND":
        return error_response(
            code,
            "確認データが見つかりません。入力画面からやり直してください。",
            status_code=status.HTTP_404_NOT_FOUND,
            redirectTo=redirect_to,
        )
    return error_response(
        code,
        "確認データの種別が一致しません。",
        status_code=status.HTTP_409_CONFLICT,
        redirectTo=redirect_to,
    )


class ShopConfirmAPIView(APIView):
    permission_classes = [ConsoleRBACPermission]
    required_permissions = {"POST": {ConsolePermission.SHOP_UPDATE}}

    def post(self, request, shop_id=None, *args, **kwargs):
        data = load_confirm_data(request)
        problem = check_confirm_mode(data, shop_id)
        if problem is not None:
            code, redirect_to = problem
            return _confirm_problem_response(code, redirect_to)

        shop = _get_scoped_shop(request, shop_id) if shop_id else None
        try:
            result = register_shop(request, data, shop=shop)
        except ShopSubmitInvalid as exc:
            return _validation_failed(exc.errors)

        payload = {
            "shopId": str(result.shop.id),
            "images": result.images,
            "failures": result.failures,
            "redirectTo": result.redirect_to,
        }
        status_code = status.HTTP_200_OK if data.get("isEdit") else status.HTTP_201_CREATED

        if not result.is_complete:
            if not data.get("isEdit"):
                data["registeredShopId"] = str(result.shop.id)
            data["existingImages"] = result.images
            data["imagePreviews"] = result.pending_previews
            stage_confirm_data(request, data)
            payload["redirectTo"] = None
            return success_response(
                payload,
                message="店舗は保存されましたが、一部の画像のアップロードに失敗しました",
                status_code=status.HTTP_201_CREATED,
                warnings=[failure["message"] for failure in result.failures],
            )

        clear_confirm_data(request)
        return success_response(payload, message=UPDATED_TOAST if data.get("isEdit") else CREATED_TOAST, status_code=status_code)
