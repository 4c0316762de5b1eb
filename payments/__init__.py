"""PayPal REST API client."""

from payments.client import PayPalClient
from payments.errors import (
    AuthError,
    ErrorKind,
    PayPalAPIError,
    PayPalError,
    RateLimitError,
)
from payments.paypal_service import PayPalService

__all__ = [
    "AuthError",
    "ErrorKind",
    "PayPalAPIError",
    "PayPalClient",
    "PayPalError",
    "PayPalService",
    "RateLimitError",
]
