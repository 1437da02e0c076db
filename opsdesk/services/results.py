from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    NOT_FOUND = 'NOT_FOUND'
    INVALID_REFERENCE = 'INVALID_REFERENCE'
    INSUFFICIENT_STOCK = 'INSUFFICIENT_STOCK'
    EXCESS_RETURN = 'EXCESS_RETURN'
    EXCESS_USAGE = 'EXCESS_USAGE'
    REFERENCED_ENTITY = 'REFERENCED_ENTITY'
    INVALID_TRANSITION = 'INVALID_TRANSITION'
    INVALID_STATE = 'INVALID_STATE'
    NO_OTP = 'NO_OTP'
    MISMATCH = 'MISMATCH'
    EXPIRED = 'EXPIRED'
    OTP_NOT_VERIFIED = 'OTP_NOT_VERIFIED'
    EMAIL_NOT_FOUND = 'EMAIL_NOT_FOUND'
    ALREADY_REGISTERED = 'ALREADY_REGISTERED'
    PENDING_REQUEST = 'PENDING_REQUEST'
    APPROVAL_REQUIRED = 'APPROVAL_REQUIRED'
    REQUEST_REJECTED = 'REQUEST_REJECTED'
    INVALID_CREDENTIALS = 'INVALID_CREDENTIALS'


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a store operation that can be refused by a business rule."""

    success: bool
    message: str
    error: ErrorKind | None = None
    payload: dict[str, Any] = field(default_factory=dict)

    def __bool__(self) -> bool:
        return self.success

    def __getitem__(self, key: str) -> Any:
        return self.payload[key]

    def to_record(self) -> dict[str, Any]:
        record: dict[str, Any] = {'success': self.success, 'message': self.message}
        if self.error is not None:
            record['error'] = self.error.value
        for key, value in self.payload.items():
            record[key] = value.to_record() if hasattr(value, 'to_record') else value
        return record


def ok(message: str, **payload: Any) -> OperationResult:
    return OperationResult(success=True, message=message, payload=payload)


def fail(kind: ErrorKind, message: str) -> OperationResult:
    return OperationResult(success=False, message=message, error=kind)
