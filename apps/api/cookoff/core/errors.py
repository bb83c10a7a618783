"""
Error taxonomy shared by all modules.

Services raise these directly; main.py renders them into the error envelope
{error, message, request_id, details}.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import HTTPException


class ApiError(HTTPException):
    status_code_default = 500
    kind = "internal_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(
            status_code=self.status_code_default,
            detail={"error": self.kind, "message": message, "details": details or {}},
        )
        self.message = message
        self.details = details or {}


class NotFound(ApiError):
    status_code_default = 404
    kind = "not_found"


class InvalidState(ApiError):
    status_code_default = 400
    kind = "invalid_state"


class InvalidArgument(ApiError):
    status_code_default = 400
    kind = "invalid_argument"


class Forbidden(ApiError):
    status_code_default = 403
    kind = "forbidden"


class Unauthorized(ApiError):
    status_code_default = 401
    kind = "unauthorized"


class Conflict(ApiError):
    status_code_default = 409
    kind = "conflict"
