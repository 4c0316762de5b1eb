"""
PayPal error taxonomy.

Remote failures are classified into an ``ErrorKind`` and raised as
``PayPalAPIError``. ``AuthError`` and ``RateLimitError`` are raised locally,
before a resource request is ever sent.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any

import requests


class ErrorKind(str, Enum):
    NETWORK_ERROR = "NETWORK_ERROR"
    BAD_REQUEST = "BAD_REQUEST"
    AUTHENTICATION_FAILURE = "AUTHENTICATION_FAILURE"
    AUTHORIZATION_FAILURE = "AUTHORIZATION_FAILURE"
    NOT_FOUND = "NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    INTERNAL_SERVER_ERROR = "INTERNAL_SERVER_ERROR"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


def is_retryable(kind: ErrorKind, status: int | None) -> bool:
    """Authentication failures and server-side errors are worth retrying."""
    if kind == ErrorKind.AUTHENTICATION_FAILURE:
        return True
    return status is not None and status >= 500


class PayPalError(Exception):
    pass


class AuthError(PayPalError):
    """The client-credentials exchange failed."""


class RateLimitError(PayPalError):
    """The local per-minute request ceiling was reached."""


class PayPalAPIError(PayPalError):
    def __init__(
        self,
        kind: ErrorKind,
        message: str,
        status: int | None = None,
        details: Any = None,
        request_id: str | None = None,
    ):
        super().__init__(f"PayPal API Error [{kind.value}]: {message}")
        self.kind = kind
        self.message = message
        self.status = status
        self.details = details
        self.request_id = request_id

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind, self.status)


@dataclass(frozen=True)
class ParsedError:
    kind: ErrorKind
    message: str
    details: Any = None
    status: int | None = None

    @property
    def retryable(self) -> bool:
        return is_retryable(self.kind, self.status)


# status -> (kind, fallback message, prefer payload message)
_STATUS_MAP: dict[int, tuple[ErrorKind, str, bool]] = {
    400: (ErrorKind.BAD_REQUEST, "Invalid request parameters", True),
    401: (
        ErrorKind.AUTHENTICATION_FAILURE,
        "Authentication failed. Check your credentials.",
        False,
    ),
    403: (
        ErrorKind.AUTHORIZATION_FAILURE,
        "Access forbidden. Check your permissions.",
        False,
    ),
    404: (ErrorKind.NOT_FOUND, "Resource not found", False),
    422: (ErrorKind.VALIDATION_ERROR, "Validation error", True),
    429: (
        ErrorKind.RATE_LIMIT_EXCEEDED,
        "Rate limit exceeded. Please retry after some time.",
        False,
    ),
    500: (
        ErrorKind.INTERNAL_SERVER_ERROR,
        "PayPal server error. Please try again later.",
        False,
    ),
}


def _payload(response: requests.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return response.text or None


def classify_error(exc: Exception) -> ParsedError:
    """Map a failed request to an ErrorKind with status and raw payload."""
    response = getattr(exc, "response", None)
    if response is None:
        return ParsedError(kind=ErrorKind.NETWORK_ERROR, message=str(exc))

    status = response.status_code
    data = _payload(response)
    payload_message = data.get("message") if isinstance(data, dict) else None

    if status in _STATUS_MAP:
        kind, fallback, prefer_payload = _STATUS_MAP[status]
        message = (payload_message or fallback) if prefer_payload else fallback
    else:
        kind = ErrorKind.UNKNOWN_ERROR
        message = payload_message or f"HTTP {status} error"

    return ParsedError(kind=kind, message=message, details=data, status=status)
