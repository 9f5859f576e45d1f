from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse


class ApiError(Exception):
    def __init__(self, status_code: int, code: str, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.code = code
        self.message = message


class ValidationError(ApiError):
    """Input rejected before any storage call."""

    def __init__(self, message: str, *, field: str | None = None):
        if field and field not in message:
            message = f"{field}: {message}"
        super().__init__(422, "VALIDATION_ERROR", message)
        self.field = field


class NotFoundError(ApiError):
    def __init__(self, message: str):
        super().__init__(404, "NOT_FOUND", message)


class AuthorizationError(ApiError):
    def __init__(self, message: str = "Authentication required.", *, status_code: int = 401, code: str = "INVALID_TOKEN"):
        super().__init__(status_code, code, message)


class ForbiddenError(AuthorizationError):
    def __init__(self, message: str = "Insufficient permissions."):
        super().__init__(message, status_code=403, code="FORBIDDEN")


class ConflictError(ApiError):
    def __init__(self, message: str):
        super().__init__(409, "CONFLICT", message)


class StorageError(ApiError):
    def __init__(self, message: str):
        super().__init__(500, "STORAGE_ERROR", message)


def get_request_id(request: Request) -> str:
    request_id = getattr(request.state, "request_id", None)
    if request_id:
        return str(request_id)
    return "unknown"


def error_response(request: Request, *, status_code: int, code: str, message: str) -> JSONResponse:
    payload = {
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
        }
    }
    return JSONResponse(status_code=status_code, content=payload)
