"""
Domain error types.

Services raise ``ComplianceError`` subclasses carrying a stable ``code``;
the API layer maps codes to HTTP statuses in one exception handler so
routers never build error responses by hand.
"""
from __future__ import annotations

from enum import Enum
from typing import Any, Dict


class ErrorCode(str, Enum):
    UNAUTHENTICATED = "UNAUTHENTICATED"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    LIMIT_EXCEEDED = "LIMIT_EXCEEDED"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_STATE = "INVALID_STATE"
    DUPLICATE = "DUPLICATE"
    EXPIRED = "EXPIRED"
    RATE_LIMITED = "RATE_LIMITED"


HTTP_STATUS_BY_CODE: Dict[ErrorCode, int] = {
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.FORBIDDEN: 403,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.LIMIT_EXCEEDED: 402,
    ErrorCode.INVALID_INPUT: 422,
    ErrorCode.INVALID_STATE: 409,
    ErrorCode.DUPLICATE: 409,
    ErrorCode.EXPIRED: 410,
    ErrorCode.RATE_LIMITED: 429,
}


class ComplianceError(Exception):
    code: ErrorCode = ErrorCode.INVALID_INPUT

    def __init__(self, message: str, *, code: ErrorCode | None = None, **details: Any) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code
        self.message = message
        self.details = details

    @property
    def http_status(self) -> int:
        return HTTP_STATUS_BY_CODE.get(self.code, 400)

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code.value, "message": self.message, "detail": self.details}

    def __repr__(self) -> str:  # pragma: no cover - debugging aid
        return f"{type(self).__name__}({self.code.value}: {self.message!r})"


class Unauthenticated(ComplianceError):
    code = ErrorCode.UNAUTHENTICATED


class Forbidden(ComplianceError):
    code = ErrorCode.FORBIDDEN


class NotFound(ComplianceError):
    code = ErrorCode.NOT_FOUND


class LimitExceeded(ComplianceError):
    code = ErrorCode.LIMIT_EXCEEDED


class InvalidInput(ComplianceError):
    code = ErrorCode.INVALID_INPUT


class InvalidState(ComplianceError):
    code = ErrorCode.INVALID_STATE


class Duplicate(ComplianceError):
    code = ErrorCode.DUPLICATE


class Expired(ComplianceError):
    code = ErrorCode.EXPIRED


class RateLimited(ComplianceError):
    code = ErrorCode.RATE_LIMITED


__all__ = [
    "ErrorCode",
    "HTTP_STATUS_BY_CODE",
    "ComplianceError",
    "Unauthenticated",
    "Forbidden",
    "NotFound",
    "LimitExceeded",
    "InvalidInput",
    "InvalidState",
    "Duplicate",
    "Expired",
    "RateLimited",
]
