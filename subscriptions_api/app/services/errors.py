"""
Errors raised by the service layer.

The API layer translates them into HTTP responses: invalid input is the
client's fault and its message is safe to show, not found means the
target subscription does not exist (or was removed), and internal
errors carry only a sanitized message.  Full details of internal
failures are logged where they happen.
"""

from enum import Enum


class ErrorCode(str, Enum):
    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class ServiceError(Exception):
    """Base class for service errors."""

    code: ErrorCode = ErrorCode.INTERNAL

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class InvalidInputError(ServiceError):
    code = ErrorCode.INVALID_INPUT


class NotFoundError(ServiceError):
    code = ErrorCode.NOT_FOUND


class InternalError(ServiceError):
    code = ErrorCode.INTERNAL
