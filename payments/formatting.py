"""Amount, currency and string helpers shared by the PayPal request builders."""

import math
import re
import secrets
import string
import time
from decimal import ROUND_HALF_UP, Decimal
from numbers import Real
from typing import Any, Mapping

SUPPORTED_CURRENCIES = (
    "USD", "EUR", "GBP", "JPY", "CAD", "AUD", "CHF", "CNY",
    "SEK", "NZD", "MXN", "SGD", "HKD", "NOK", "DKK", "PLN",
    "CZK", "HUF", "ILS", "BRL", "MYR", "PHP", "TWD", "THB",
    "TRY", "RUB",
)  # fmt: skip

# Minimum charge per currency, in minor units
DEFAULT_MINIMUM = 100
MINIMUM_AMOUNTS = {"USD": 100, "EUR": 100, "GBP": 100, "JPY": 100}

_TEMPLATE_VAR = re.compile(r"{{(.*?)}}")
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits


def format_currency(amount: int, currency: str = "USD") -> dict[str, str]:
    """
    Convert an amount in minor units to PayPal's money object.

    >>> format_currency(2500, "USD")
    {'currency_code': 'USD', 'value': '25.00'}
    """
    value = (Decimal(amount) / 100).quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)
    return {"currency_code": currency, "value": f"{value:.2f}"}


def validate_amount(
    amount: Any,
    currency: str = "USD",
    minimums: Mapping[str, int] | None = None,
) -> bool:
    """True when ``amount`` (minor units) is a positive number at or above the currency minimum."""
    if isinstance(amount, bool) or not isinstance(amount, (Real, Decimal)):
        return False
    if not _is_finite(amount) or amount <= 0:
        return False

    table = {**MINIMUM_AMOUNTS, **(minimums or {})}
    return amount >= table.get(currency, DEFAULT_MINIMUM)


def _is_finite(amount: Real | Decimal) -> bool:
    if isinstance(amount, Decimal):
        return amount.is_finite()
    # ints of any size; math.isfinite would overflow converting them
    if isinstance(amount, int):
        return True
    return math.isfinite(amount)


def generate_reference_id(prefix: str = "REF") -> str:
    suffix = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(9))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def get_supported_currencies() -> list[str]:
    return list(SUPPORTED_CURRENCIES)


def render_template(template: str, variables: Mapping[str, Any] | None = None) -> str:
    """Replace ``{{name}}`` placeholders; unknown names are left untouched."""
    variables = variables or {}

    def _sub(match: re.Match) -> str:
        key = match.group(1).strip()
        return str(variables[key]) if key in variables else match.group(0)

    return _TEMPLATE_VAR.sub(_sub, template)


def return_urls(
    kind: str,
    base_url: str,
    return_url: str | None = None,
    cancel_url: str | None = None,
    overrides: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """Return/cancel URLs for a checkout flow: overrides, then configured, then derived from base_url."""
    overrides = overrides or {}
    return {
        "return_url": overrides.get("return_url")
        or return_url
        or f"{base_url}/{kind}/success",
        "cancel_url": overrides.get("cancel_url")
        or cancel_url
        or f"{base_url}/{kind}/cancel",
    }
