from rest_framework import status
from rest_framework.exceptions import APIException, ValidationError
from rest_framework.views import exception_handler

VALIDATION_ERROR_MESSAGE = "入力内容に誤りがあります。各項目を確認してください。"


class ConflictError(APIException):
    """409 carrying a field-keyed detail map, e.g. ``{"accountEmail": "..."}``."""

    status_code = status.HTTP_409_CONFLICT
    default_detail = "このメールアドレスは既に使用されています"
    default_code = "CONFLICT"

    def __init__(self, detail=None, field: str | None = None):
        message = str(detail or self.default_detail)
        self.message = message
        self.field = field
        super().__init__({field: message} if field else {"detail": message})


class UpstreamServiceError(APIException):
    status_code = status.HTTP_502_BAD_GATEWAY
    default_detail = "外部サービスとの通信に失敗しました。"
    default_code = "UPSTREAM_ERROR"


def custom_exception_handler(exc, context):
    response = exception_handler(exc, context)
    if response is None:
        return response

    if isinstance(exc, ValidationError):
        details = response.data if isinstance(response.data, dict) else {"non_field_errors": response.data}
        response.data = {
            "success": False,
            "error": {
                "code": "VALIDATION_ERROR",
                "message": VALIDATION_ERROR_MESSAGE,
                "details": _flatten_first_errors(details),
            },
        }
        return response

    details = response.data if isinstance(response.data, dict) else {"detail": response.data}
    if isinstance(exc, ConflictError):
        message = exc.message
    elif isinstance(exc, UpstreamServiceError):
        message = str(exc.detail)
    else:
        message = _default_error_message(response.status_code)

    response.data = {
        "success": False,
        "error": {
            "code": _default_error_code(response.status_code),
            "message": message,
            "details": details,
        },
    }
    return response


def _flatten_first_errors(details: dict) -> dict:
    # Field maps carry one message per field; DRF hands back lists.
    flattened = {}
    for key, value in details.items():
        if isinstance(value, (list, tuple)) and value:
            first = value[0]
            flattened[key] = _flatten_first_errors(first) if isinstance(first, dict) else str(first)
        elif isinstance(value, dict):
            flattened[key] = _flatten_first_errors(value)
        else:
            flattened[key] = str(value)
    return flattened


def _default_error_code(status_code: int) -> str:
    mapping = {
        status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
        status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
        status.HTTP_403_FORBIDDEN: "FORBIDDEN",
        status.HTTP_404_NOT_FOUND: "NOT_FOUND",
        status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
        status.HTTP_409_CONFLICT: "CONFLICT",
        status.HTTP_429_TOO_MANY_REQUESTS: "TOO_MANY_REQUESTS",
        status.HTTP_502_BAD_GATEWAY: "UPSTREAM_ERROR",
    }
    return mapping.get(status_code, "API_ERROR")


def _default_error_message(status_code: int) -> str:
    mapping = {
        status.HTTP_400_BAD_REQUEST: "リクエストが正しくありません。",
        status.HTTP_401_UNAUTHORIZED: "認証が必要です。",
        status.HTTP_403_FORBIDDEN: "この操作を行う権限がありません。",
        status.HTTP_404_NOT_FOUND: "対象のデータが見つかりません。",
        status.HTTP_405_METHOD_NOT_ALLOWED: "許可されていないメソッドです。",
        status.HTTP_429_TOO_MANY_REQUESTS: "リクエストが多すぎます。",
    }
    return mapping.get(status_code, "エラーが発生しました")
