from rest_framework import status
from rest_framework.response import Response


def success_response(
    data=None,
    message: str = "",
    status_code: int = status.HTTP_200_OK,
    warnings: list[str] | None = None,
    headers: dict | None = None,
) -> Response:
    body = {"success": True, "data": data, "message": message}
    if warnings:
        body["warnings"] = list(warnings)
    return Response(body, status=status_code, headers=headers)


def error_response(
    code: str,
    message: str,
    details=None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
    **extra,
) -> Response:
    error = {
        "code": code,
        "message": message,
        "details": details or {},
    }
    error.update(extra)
    return Response({"success": False, "error": error}, status=status_code)
