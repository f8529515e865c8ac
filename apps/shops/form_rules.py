"""Rules behind the shop registration form.

The form keeps multi-choice inputs (credit brands, QR services, holidays,
services, scenes) as a list of selected labels plus a free text for the
``その他`` choice. They are only folded into the stored JSON/text shapes when
the form is submitted, and unfolded again when an existing shop is edited.
"""

from __future__ import annotations

import json
import re
from typing import Any, Callable, Iterable
from urllib.parse import unquote

from django.contrib.auth.hashers import make_password
from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from apps.common.constants import OTHER_OPTION

KANA_PATTERN = re.compile(r"^[\u30A0-\u30FF\u3000 ]+$")
POSTAL_CODE_PATTERN = re.compile(r"^[0-9]{7}$")
PHONE_DIGITS_PATTERN = re.compile(r"^\d{10,11}$")
HOLIDAY_OTHER_PREFIX = f"{OTHER_OPTION}:"

FORM_DEFAULTS: dict[str, Any] = {
    "merchantId": "",
    "genreId": "",
    "createAccount": False,
    "accountEmail": "",
    "password": "",
    "name": "",
    "nameKana": "",
    "phone": "",
    "postalCode": "",
    "prefecture": "",
    "city": "",
    "address1": "",
    "address2": "",
    "latitude": "",
    "longitude": "",
    "area": "",
    "description": "",
    "details": "",
    "smokingType": "",
    "homepageUrl": "",
    "couponUsageStart": "",
    "couponUsageEnd": "",
    "couponUsageDays": "",
    "paymentSaicoin": False,
    "paymentTamapon": False,
    "paymentCash": True,
    "contactName": "",
    "contactPhone": "",
    "contactEmail": "",
    "status": "",
}

SELECTION_DEFAULTS: dict[str, Any] = {
    "selectedCreditBrands": [],
    "customCreditText": "",
    "selectedQrBrands": [],
    "customQrText": "",
    "selectedHolidays": [],
    "customHolidayText": "",
    "selectedServices": [],
    "customServicesText": "",
    "selectedScenes": [],
    "customSceneText": "",
}

GENERAL_ERROR_MESSAGE = "入力内容に誤りがあります。各項目を確認してください。"
DUPLICATE_EMAIL_MESSAGE = "このメールアドレスは既に使用されています"
PHONE_MESSAGE = "有効な電話番号を入力してください（10-11桁の数字）"
EMAIL_MESSAGE = "有効なメールアドレスを入力してください"


def _text(form: dict, key: str) -> str:
    value = form.get(key)
    if value is None:
        return ""
    return str(value)


def _is_blank(form: dict, key: str) -> bool:
    return _text(form, key).strip() == ""


def _as_list(value) -> list[str]:
    if value is None or value == "":
        return []
    if isinstance(value, str):
        return [item.strip() for item in value.split(",") if item.strip()]
    return [str(item) for item in value]


def is_valid_kana(value: str) -> bool:
    return bool(KANA_PATTERN.match(value))


def is_valid_phone(value: str) -> bool:
    return bool(PHONE_DIGITS_PATTERN.match(value.replace("-", "").strip()))


def is_valid_postal_code(value: str) -> bool:
    return bool(POSTAL_CODE_PATTERN.match(value.strip()))


def is_valid_email(value: str) -> bool:
    try:
        validate_email(value)
    except DjangoValidationError:
        return False
    return True


def normalize_return_to(value) -> str | None:
    if not value:
        return None
    decoded = unquote(str(value))
    return decoded if decoded.startswith("/") else f"/{decoded}"


def build_fallback_redirect(return_to, *, is_merchant_account: bool, merchant_id) -> str:
    normalized = normalize_return_to(return_to)
    if normalized:
        return normalized
    if is_merchant_account and merchant_id:
        return f"/merchants/{merchant_id}/shops"
    return "/shops"


def validate_shop_form(
    form: dict,
    *,
    is_edit: bool = False,
    is_merchant_account: bool = False,
    other_scene_id: str | None = None,
    original_account_email: str = "",
    email_in_use: Callable[[str], bool] | None = None,
) -> dict[str, str]:
    """Return ``{field: message}``, at most one message per field, in form order."""
    errors: dict[str, str] = {}

    name = _text(form, "name")
    if not name.strip():
        errors["name"] = "店舗名は必須です"
    elif len(name) > 100:
        errors["name"] = "店舗名は100文字以内で入力してください"

    name_kana = _text(form, "nameKana")
    if len(name_kana) > 100:
        errors["nameKana"] = "店舗名（カナ）は100文字以内で入力してください"
    elif name_kana.strip() and not is_valid_kana(name_kana):
        errors["nameKana"] = "店舗名（カナ）は全角カタカナで入力してください"

    phone = _text(form, "phone")
    if not phone.strip():
        errors["phone"] = "電話番号は必須です"
    elif not is_valid_phone(phone):
        errors["phone"] = PHONE_MESSAGE

    postal_code = _text(form, "postalCode")
    if not postal_code.strip():
        errors["postalCode"] = "郵便番号は必須です"
    elif not is_valid_postal_code(postal_code):
        errors["postalCode"] = "郵便番号は7桁の数字で入力してください"

    if _is_blank(form, "prefecture"):
        errors["prefecture"] = "都道府県を選択してください"
    if _is_blank(form, "city"):
        errors["city"] = "市区町村は必須です"
    if _is_blank(form, "address1"):
        errors["address1"] = "番地以降は必須です"
    if _is_blank(form, "latitude"):
        errors["latitude"] = "緯度は必須です"
    if _is_blank(form, "longitude"):
        errors["longitude"] = "経度は必須です"
    if _is_blank(form, "genreId"):
        errors["genreId"] = "ジャンルを選択してください"
    if _is_blank(form, "smokingType"):
        errors["smokingType"] = "喫煙タイプを選択してください"
    if not is_merchant_account and _is_blank(form, "merchantId"):
        errors["merchantId"] = "事業者を選択してください"

    has_start = not _is_blank(form, "couponUsageStart")
    has_end = not _is_blank(form, "couponUsageEnd")
    if has_start and not has_end:
        errors["couponUsageEnd"] = "クーポン利用時間の終了時刻を入力してください"
    elif has_end and not has_start:
        errors["couponUsageStart"] = "クーポン利用時間の開始時刻を入力してください"

    if form.get("createAccount"):
        account_email = _text(form, "accountEmail").strip()
        if not account_email:
            errors["accountEmail"] = "メールアドレスは必須です"
        elif not is_valid_email(account_email):
            errors["accountEmail"] = EMAIL_MESSAGE
        elif (
            account_email.lower() != (original_account_email or "").lower()
            and email_in_use is not None
            and email_in_use(account_email)
        ):
            errors["accountEmail"] = DUPLICATE_EMAIL_MESSAGE

        password = _text(form, "password")
        if not is_edit and not password.strip():
            errors["password"] = "パスワードは必須です"
        elif not is_edit and len(password) < 8:
            errors["password"] = "パスワードは8文字以上で入力してください"

    if len(_text(form, "description")) > 500:
        errors["description"] = "店舗紹介説明は500文字以内で入力してください"
    if len(_text(form, "details")) > 1000:
        errors["details"] = "詳細情報は1000文字以内で入力してください"

    _check_other_text(
        errors,
        form,
        selected=OTHER_OPTION in _as_list(form.get("selectedCreditBrands")),
        key="customCreditText",
        required_message="その他のクレジットカードブランド名を入力してください",
        length_message="その他のクレジットカードブランド名は100文字以内で入力してください",
    )
    _check_other_text(
        errors,
        form,
        selected=OTHER_OPTION in _as_list(form.get("selectedQrBrands")),
        key="customQrText",
        required_message="その他のQRコード決済サービス名を入力してください",
        length_message="その他のQRコード決済サービス名は100文字以内で入力してください",
    )
    _check_other_text(
        errors,
        form,
        selected=bool(other_scene_id) and str(other_scene_id) in _as_list(form.get("selectedScenes")),
        key="customSceneText",
        required_message="具体的な利用シーンを入力してください",
        length_message="具体的な利用シーンは100文字以内で入力してください",
    )
    _check_other_text(
        errors,
        form,
        selected=OTHER_OPTION in _as_list(form.get("selectedHolidays")),
        key="customHolidayText",
        required_message="その他の定休日の内容を入力してください",
        length_message="その他の定休日は100文字以内で入力してください",
    )

    if len(_text(form, "contactName")) > 100:
        errors["contactName"] = "担当者名は100文字以内で入力してください"

    contact_phone = _text(form, "contactPhone")
    if contact_phone.strip() and not is_valid_phone(contact_phone):
        errors["contactPhone"] = PHONE_MESSAGE

    contact_email = _text(form, "contactEmail")
    if contact_email.strip():
        if not is_valid_email(contact_email.strip()):
            errors["contactEmail"] = EMAIL_MESSAGE
        elif len(contact_email) > 255:
            errors["contactEmail"] = "メールアドレスは255文字以内で入力してください"

    return errors


def _check_other_text(errors: dict, form: dict, *, selected: bool, key: str, required_message: str, length_message: str) -> None:
    if not selected:
        return
    value = _text(form, key)
    if not value.strip():
        errors[key] = required_message
    elif len(value) > 100:
        errors[key] = length_message


def first_error_field(errors: dict[str, str]) -> str | None:
    return next(iter(errors), None)


def build_payment_credit(selected: Iterable[str], custom_text: str = "") -> dict | None:
    selected = list(selected or [])
    if not selected:
        return None
    payload: dict[str, Any] = {"brands": [brand for brand in selected if brand != OTHER_OPTION]}
    if OTHER_OPTION in selected and custom_text:
        payload["other"] = custom_text
    return payload


def build_payment_code(selected: Iterable[str], custom_text: str = "") -> dict | None:
    selected = list(selected or [])
    if not selected:
        return None
    payload: dict[str, Any] = {"services": [service for service in selected if service != OTHER_OPTION]}
    if OTHER_OPTION in selected and custom_text:
        payload["other"] = custom_text
    return payload


def build_services(selected: Iterable[str], custom_text: str = "") -> dict | None:
    selected = list(selected or [])
    if not selected:
        return None
    record = {service: True for service in selected if service != OTHER_OPTION}
    if OTHER_OPTION in selected and custom_text:
        record[OTHER_OPTION] = True
    return record


def build_holidays(selected: Iterable[str], custom_text: str = "") -> str:
    items = []
    for holiday in selected or []:
        if holiday == OTHER_OPTION and custom_text.strip():
            items.append(f"{HOLIDAY_OTHER_PREFIX}{custom_text.strip()}")
        else:
            items.append(holiday)
    return ",".join(items)


def _load_json_blob(value):
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return None
        if stripped.startswith(("{", "[")):
            try:
                return json.loads(stripped)
            except ValueError:
                return None
    return value


def decompose_payment(value, list_key: str) -> tuple[list[str], str]:
    """Split a stored credit/QR blob into ``(selected, custom_text)``.

    Accepts the dict shape, its JSON text, or a legacy comma separated string.
    """
    value = _load_json_blob(value)
    if not value:
        return [], ""
    if isinstance(value, dict):
        selected = [str(item) for item in value.get(list_key) or []]
        other = str(value.get("other") or "")
        if other:
            selected.append(OTHER_OPTION)
        return selected, other
    if isinstance(value, str):
        return _as_list(value), ""
    if isinstance(value, list):
        return [str(item) for item in value], ""
    return [], ""


def decompose_holidays(value) -> tuple[list[str], str]:
    selected: list[str] = []
    custom_text = ""
    for item in _as_list(value):
        if item.startswith(HOLIDAY_OTHER_PREFIX):
            selected.append(OTHER_OPTION)
            custom_text = item[len(HOLIDAY_OTHER_PREFIX):]
        else:
            selected.append(item)
    return selected, custom_text


def decompose_services(value) -> list[str]:
    value = _load_json_blob(value)
    if not isinstance(value, dict):
        return []
    return [key for key, enabled in value.items() if enabled is True]


def decompose_shop(shop) -> dict[str, Any]:
    """Form state for editing ``shop``."""
    credit, credit_text = decompose_payment(shop.payment_credit, "brands")
    qr, qr_text = decompose_payment(shop.payment_code, "services")
    holidays, holiday_text = decompose_holidays(shop.holidays)
    account = shop.linked_account
    return {
        "merchantId": str(shop.merchant_id),
        "genreId": str(shop.genre_id) if shop.genre_id else "",
        "createAccount": account is not None,
        "accountEmail": account.email if account else "",
        "password": "",
        "name": shop.name,
        "nameKana": shop.name_kana,
        "phone": shop.phone,
        "postalCode": shop.postal_code,
        "prefecture": shop.prefecture,
        "city": shop.city,
        "address1": shop.address1,
        "address2": shop.address2,
        "latitude": "" if shop.latitude is None else str(shop.latitude),
        "longitude": "" if shop.longitude is None else str(shop.longitude),
        "area": shop.area,
        "description": shop.description,
        "details": shop.details,
        "smokingType": shop.smoking_type,
        "homepageUrl": shop.homepage_url,
        "couponUsageStart": shop.coupon_usage_start,
        "couponUsageEnd": shop.coupon_usage_end,
        "couponUsageDays": shop.coupon_usage_days,
        "paymentSaicoin": shop.payment_saicoin,
        "paymentTamapon": shop.payment_tamapon,
        "paymentCash": shop.payment_cash,
        "contactName": shop.contact_name,
        "contactPhone": shop.contact_phone,
        "contactEmail": shop.contact_email,
        "status": shop.status,
        "selectedCreditBrands": credit,
        "customCreditText": credit_text,
        "selectedQrBrands": qr,
        "customQrText": qr_text,
        "selectedHolidays": holidays,
        "customHolidayText": holiday_text,
        "selectedServices": decompose_services(shop.services),
        "customServicesText": "",
        "selectedScenes": [str(scene_id) for scene_id in shop.scenes.values_list("id", flat=True)],
        "customSceneText": shop.custom_scene_text,
        "existingImages": [image for image in shop.images or [] if isinstance(image, str) and image],
    }


def normalize_form(data) -> dict[str, Any]:
    """Known form keys from request data, defaults filled in."""
    form: dict[str, Any] = {}
    for key, default in {**FORM_DEFAULTS, **SELECTION_DEFAULTS}.items():
        value = data.get(key, default)
        if isinstance(default, list):
            value = _as_list(value)
        elif isinstance(default, bool):
            value = value if isinstance(value, bool) else str(value).strip().lower() in {"1", "true", "on"}
        elif value is None:
            value = ""
        else:
            value = str(value) if not isinstance(value, str) else value
        form[key] = value
    return form


def build_confirm_data(
    form: dict,
    *,
    shop_id,
    merchant_name: str,
    genre_name: str,
    scene_names: dict[str, str],
    other_scene_id: str | None,
    existing_images: list[str],
    image_previews: list[str],
    has_existing_account: bool,
    fallback_redirect: str,
) -> dict[str, Any]:
    """Payload staged between the form and its confirmation step."""
    credit = form["selectedCreditBrands"]
    qr = form["selectedQrBrands"]
    holidays = form["selectedHolidays"]
    services = form["selectedServices"]
    scenes = form["selectedScenes"]

    credit_other = OTHER_OPTION in credit
    qr_other = OTHER_OPTION in qr
    holiday_other = OTHER_OPTION in holidays
    services_other = OTHER_OPTION in services
    scene_other = bool(other_scene_id) and str(other_scene_id) in scenes

    # The plain password never reaches the session store.
    data = {key: form[key] for key in FORM_DEFAULTS if key != "password"}
    password = form["password"]
    data["passwordHash"] = make_password(password) if form["createAccount"] and password else ""
    data.update(
        {
            "shopId": str(shop_id) if shop_id else None,
            "isEdit": bool(shop_id),
            "merchantName": merchant_name,
            "genreName": genre_name,
            "selectedScenes": scenes,
            "customSceneText": form["customSceneText"] if scene_other else "",
            "selectedHolidays": holidays,
            "customHolidayText": form["customHolidayText"] if holiday_other else "",
            "selectedCreditBrands": credit,
            "customCreditText": form["customCreditText"] if credit_other else "",
            "selectedQrBrands": qr,
            "customQrText": form["customQrText"] if qr_other else "",
            "selectedServices": services,
            "customServicesText": form["customServicesText"] if services_other else "",
            "holidaysForSubmit": build_holidays(holidays, form["customHolidayText"]),
            "paymentCreditJson": build_payment_credit(credit, form["customCreditText"]),
            "paymentCodeJson": build_payment_code(qr, form["customQrText"]),
            "servicesJson": build_services(services, form["customServicesText"]),
            "existingImages": list(existing_images),
            "imagePreviews": list(image_previews),
            "hasExistingAccount": has_existing_account,
            "fallbackRedirect": fallback_redirect,
            "sceneNames": scene_names,
            "contactName": form["contactName"] or None,
            "contactPhone": form["contactPhone"] or None,
            "contactEmail": form["contactEmail"] or None,
        }
    )
    return data


def build_submit_data(confirm_data: dict) -> dict[str, Any]:
    """Create/update request body for the shop serializer from staged data."""
    submit = {
        key: confirm_data.get(key)
        for key in FORM_DEFAULTS
        if key not in {"createAccount", "accountEmail", "password", "status"}
    }
    submit.update(
        {
            "address": "".join(
                str(confirm_data.get(key) or "") for key in ("prefecture", "city", "address1", "address2")
            ),
            "holidays": confirm_data.get("holidaysForSubmit") or "",
            "paymentCredit": confirm_data.get("paymentCreditJson"),
            "paymentCode": confirm_data.get("paymentCodeJson"),
            "services": confirm_data.get("servicesJson"),
            "sceneIds": list(confirm_data.get("selectedScenes") or []),
            "customSceneText": confirm_data.get("customSceneText") or "",
            "couponUsageStart": (confirm_data.get("couponUsageStart") or "").strip() or None,
            "couponUsageEnd": (confirm_data.get("couponUsageEnd") or "").strip() or None,
            "status": confirm_data.get("status") or "registering",
            "contactName": confirm_data.get("contactName") or "",
            "contactPhone": confirm_data.get("contactPhone") or "",
            "contactEmail": confirm_data.get("contactEmail") or "",
        }
    )
    if confirm_data.get("createAccount"):
        submit["accountEmail"] = (confirm_data.get("accountEmail") or "").strip()
        if confirm_data.get("passwordHash"):
            submit["passwordHash"] = confirm_data["passwordHash"]
    return submit
