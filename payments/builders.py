"""
PayPal Request Builders

Pydantic models for the request bodies the client sends, and one builder
function per resource. Builders take the required fields explicitly; any
extra customization is passed as ``overrides`` and deep-merged over the
built payload by ``to_payload`` (nested objects merge, lists are replaced).
"""

from datetime import UTC, date, datetime, timedelta
from typing import Any, Literal, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field

from payments.formatting import format_currency, generate_reference_id, return_urls


class RequestModel(BaseModel):
    model_config = ConfigDict(extra="allow")


class Money(RequestModel):
    currency_code: str
    value: str

    @classmethod
    def from_minor(cls, amount: int, currency: str = "USD") -> "Money":
        return cls(**format_currency(amount, currency))


class CheckoutDefaults(BaseModel):
    """Brand and experience settings applied to every checkout payload."""

    brand_name: str = "Your Store"
    base_url: str = "https://yourstore.com"
    return_url: Optional[str] = None
    cancel_url: Optional[str] = None
    currency: str = "USD"
    locale: str = "en-US"
    landing_page: str = "LOGIN"
    user_action: str = "PAY_NOW"
    shipping_preference: str = "NO_SHIPPING"

    @classmethod
    def from_settings(cls, settings) -> "CheckoutDefaults":
        return cls(
            brand_name=settings.PAYPAL_BRAND_NAME,
            base_url=settings.PAYPAL_BASE_URL,
            return_url=settings.PAYPAL_RETURN_URL,
            cancel_url=settings.PAYPAL_CANCEL_URL,
            currency=settings.PAYPAL_DEFAULT_CURRENCY,
            locale=settings.PAYPAL_DEFAULT_LOCALE,
            landing_page=settings.PAYPAL_LANDING_PAGE,
            user_action=settings.PAYPAL_USER_ACTION,
            shipping_preference=settings.PAYPAL_SHIPPING_PREFERENCE,
        )

    def urls(self, kind: str, overrides: Mapping[str, str] | None = None) -> dict[str, str]:
        return return_urls(
            kind, self.base_url, self.return_url, self.cancel_url, overrides
        )


# Orders


class ExperienceContext(RequestModel):
    payment_method_preference: str = "IMMEDIATE_PAYMENT_REQUIRED"
    brand_name: str
    locale: str
    landing_page: str
    shipping_preference: str
    user_action: str
    return_url: str
    cancel_url: str


class PurchaseUnit(RequestModel):
    amount: Money
    description: Optional[str] = None
    reference_id: Optional[str] = None
    custom_id: Optional[str] = None
    invoice_id: Optional[str] = None


class Card(RequestModel):
    number: str
    expiry: str  # YYYY-MM
    security_code: Optional[str] = None
    name: Optional[str] = None
    billing_address: Optional[dict[str, Any]] = None


class OrderRequest(RequestModel):
    intent: Literal["CAPTURE", "AUTHORIZE"] = "CAPTURE"
    purchase_units: list[PurchaseUnit]
    payment_source: dict[str, Any]


def build_order(
    amount: Money,
    defaults: CheckoutDefaults,
    *,
    intent: str = "CAPTURE",
    description: str | None = None,
    reference_id: str | None = None,
    urls: Mapping[str, str] | None = None,
) -> OrderRequest:
    resolved = defaults.urls("payment", urls)
    context = ExperienceContext(
        brand_name=defaults.brand_name,
        locale=defaults.locale,
        landing_page=defaults.landing_page,
        shipping_preference=defaults.shipping_preference,
        user_action=defaults.user_action,
        **resolved,
    )
    return OrderRequest(
        intent=intent,
        purchase_units=[
            PurchaseUnit(
                amount=amount, description=description, reference_id=reference_id
            )
        ],
        payment_source={
            "paypal": {"experience_context": context.model_dump(exclude_none=True)}
        },
    )


def build_card_order(
    amount: Money,
    card: Card,
    *,
    intent: str = "CAPTURE",
    description: str = "Card Payment",
) -> OrderRequest:
    return OrderRequest(
        intent=intent,
        purchase_units=[PurchaseUnit(amount=amount, description=description)],
        payment_source={"card": card.model_dump(exclude_none=True)},
    )


# Catalog and billing


class ProductRequest(RequestModel):
    name: str
    description: Optional[str] = None
    type: str = "SERVICE"
    category: str = "SOFTWARE"


def build_product(
    name: str, description: str | None = None, **fields: Any
) -> ProductRequest:
    return ProductRequest(name=name, description=description, **fields)


class Frequency(RequestModel):
    interval_unit: Literal["DAY", "WEEK", "MONTH", "YEAR"] = "MONTH"
    interval_count: int = 1


class BillingCycle(RequestModel):
    frequency: Frequency = Field(default_factory=Frequency)
    tenure_type: Literal["REGULAR", "TRIAL"] = "REGULAR"
    sequence: int = 1
    total_cycles: int = 12
    pricing_scheme: dict[str, Money]


class PaymentPreferences(RequestModel):
    auto_bill_outstanding: bool = True
    setup_fee: Money
    setup_fee_failure_action: Literal["CONTINUE", "CANCEL"] = "CONTINUE"
    payment_failure_threshold: int = 3


class Taxes(RequestModel):
    percentage: str = "0.00"
    inclusive: bool = False


class PlanRequest(RequestModel):
    product_id: str
    name: str
    description: Optional[str] = None
    status: Literal["CREATED", "INACTIVE", "ACTIVE"] = "ACTIVE"
    billing_cycles: list[BillingCycle]
    payment_preferences: PaymentPreferences
    taxes: Taxes = Field(default_factory=Taxes)


def build_plan(
    product_id: str,
    name: str,
    price: Money,
    *,
    description: str | None = None,
    interval_unit: str = "MONTH",
    interval_count: int = 1,
    total_cycles: int = 12,
    setup_fee: Money | None = None,
) -> PlanRequest:
    return PlanRequest(
        product_id=product_id,
        name=name,
        description=description,
        billing_cycles=[
            BillingCycle(
                frequency=Frequency(
                    interval_unit=interval_unit, interval_count=interval_count
                ),
                total_cycles=total_cycles,
                pricing_scheme={"fixed_price": price},
            )
        ],
        payment_preferences=PaymentPreferences(
            setup_fee=setup_fee or Money(currency_code=price.currency_code, value="0.00")
        ),
    )


class SubscriptionRequest(RequestModel):
    plan_id: str
    start_time: str
    quantity: str = "1"
    shipping_amount: Optional[Money] = None
    subscriber: Optional[dict[str, Any]] = None
    application_context: dict[str, Any]


def build_subscription(
    plan_id: str,
    defaults: CheckoutDefaults,
    *,
    subscriber: Mapping[str, Any] | None = None,
    start_time: datetime | None = None,
    quantity: int = 1,
    urls: Mapping[str, str] | None = None,
) -> SubscriptionRequest:
    # PayPal rejects start times in the past; default to tomorrow
    start = start_time or datetime.now(UTC) + timedelta(days=1)
    return SubscriptionRequest(
        plan_id=plan_id,
        start_time=start.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ"),
        quantity=str(quantity),
        shipping_amount=Money(currency_code=defaults.currency, value="0.00"),
        subscriber=dict(subscriber) if subscriber else None,
        application_context={
            "brand_name": defaults.brand_name,
            "locale": defaults.locale,
            "shipping_preference": defaults.shipping_preference,
            "user_action": "SUBSCRIBE_NOW",
            "payment_method": {
                "payer_selected": "PAYPAL",
                "payee_preferred": "IMMEDIATE_PAYMENT_REQUIRED",
            },
            **defaults.urls("subscription", urls),
        },
    )


# Invoicing


class InvoiceItem(RequestModel):
    name: str
    quantity: str = "1"
    unit_amount: Money
    description: Optional[str] = None


class InvoiceRequest(RequestModel):
    detail: dict[str, Any]
    invoicer: Optional[dict[str, Any]] = None
    primary_recipients: list[dict[str, Any]] = Field(default_factory=list)
    items: list[InvoiceItem]
    configuration: dict[str, Any] = Field(
        default_factory=lambda: {
            "partial_payment": {"allow_partial_payment": False},
            "allow_tip": False,
            "tax_calculated_after_discount": True,
            "tax_inclusive": False,
        }
    )


def build_invoice(
    items: list[InvoiceItem],
    *,
    currency: str = "USD",
    invoicer: Mapping[str, Any] | None = None,
    recipients: list[Mapping[str, Any]] | None = None,
    note: str | None = None,
    invoice_number: str | None = None,
    term_type: str = "NET_10",
) -> InvoiceRequest:
    detail = {
        "invoice_number": invoice_number or generate_reference_id("INV"),
        "invoice_date": date.today().isoformat(),
        "currency_code": currency,
        "payment_term": {"term_type": term_type},
    }
    if note:
        detail["note"] = note
    return InvoiceRequest(
        detail=detail,
        invoicer=dict(invoicer) if invoicer else None,
        primary_recipients=[
            {"billing_info": dict(r)} for r in (recipients or [])
        ],
        items=items,
    )


# Webhooks and experience profiles

DEFAULT_WEBHOOK_EVENTS = (
    "PAYMENT.CAPTURE.COMPLETED",
    "PAYMENT.CAPTURE.DENIED",
    "CHECKOUT.ORDER.APPROVED",
    "CHECKOUT.ORDER.COMPLETED",
)


class WebhookRequest(RequestModel):
    url: str
    event_types: list[dict[str, str]]


def build_webhook(url: str, event_types: list[str] | None = None) -> WebhookRequest:
    names = event_types or list(DEFAULT_WEBHOOK_EVENTS)
    return WebhookRequest(url=url, event_types=[{"name": n} for n in names])


class WebProfileRequest(RequestModel):
    name: str
    presentation: dict[str, Any]
    input_fields: dict[str, Any] = Field(
        default_factory=lambda: {"allow_note": True, "no_shipping": 1, "address_override": 1}
    )
    flow_config: dict[str, Any] = Field(
        default_factory=lambda: {"landing_page_type": "billing"}
    )


def build_web_profile(
    defaults: CheckoutDefaults,
    *,
    name: str | None = None,
    logo_image: str | None = None,
    locale_code: str = "US",
) -> WebProfileRequest:
    presentation = {"brand_name": defaults.brand_name, "locale_code": locale_code}
    if logo_image:
        presentation["logo_image"] = logo_image
    return WebProfileRequest(
        name=name or generate_reference_id(defaults.brand_name.replace(" ", "")),
        presentation=presentation,
    )


def deep_merge(base: dict[str, Any], overrides: Mapping[str, Any]) -> dict[str, Any]:
    """Merge ``overrides`` into a copy of ``base``; nested dicts merge, everything else is replaced."""
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(merged.get(key), dict):
            merged[key] = deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def to_payload(
    model: BaseModel, overrides: Mapping[str, Any] | None = None
) -> dict[str, Any]:
    """Serialize a request model to JSON-ready dict, applying caller overrides."""
    payload = model.model_dump(mode="json", exclude_none=True)
    return deep_merge(payload, overrides) if overrides else payload
