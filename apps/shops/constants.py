from apps.common.constants import OTHER_OPTION

CREDIT_CARD_BRANDS = ("VISA", "Mastercard", "JCB", "AMEX", "Diners", OTHER_OPTION)

QR_PAYMENT_SERVICES = (
    "PayPay",
    "LINE Pay",
    "楽天Pay",
    "au PAY",
    "d払い",
    "メルペイ",
    "AEON PAY",
    OTHER_OPTION,
)

SERVICE_OPTIONS = (
    "Wi-Fi",
    "電源",
    "駐車場",
    "テイクアウト",
    "予約可",
    "個室",
    "キッズスペース",
    "ペット可",
    OTHER_OPTION,
)

CONFIRM_SESSION_KEY = "shopConfirmData"
CREATED_TOAST = "店舗を作成しました"
UPDATED_TOAST = "店舗を更新しました"
