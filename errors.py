"""
API error taxonomy.

Every failure a handler can report is one of these. They are plain
HTTPExceptions, so FastAPI stops the handler where they are raised; the
handlers registered in main.py turn them into the shared
``{"success": false, "message": ...}`` payload. Keyword arguments passed to
the constructor are merged into that payload.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, **extra: Any):
        super().__init__(status_code=self.status_code, detail=message or self.default_message)
        self.extra: Dict[str, Any] = extra


class ValidationError(ApiError):
    status_code = 400
    default_message = "Invalid request"


class Unauthorized(ApiError):
    status_code = 401
    default_message = "Unauthorized"


class Forbidden(ApiError):
    status_code = 403
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = 404
    default_message = "Not found"


class Conflict(ApiError):
    status_code = 409
    default_message = "Conflict"


class RateLimited(ApiError):
    status_code = 429
    default_message = "Too many requests"


class Internal(ApiError):
    status_code = 500
