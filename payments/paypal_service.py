"""
PayPal Resource Service

Thin helpers over PayPalClient.request for the REST resources:
- Orders, authorizations, captures and refunds
- Catalog products, billing plans and subscriptions
- Invoices
- Payment experience profiles
- Webhook registration and verification
"""

from typing import Any, Mapping
from urllib.parse import quote

import structlog

from core.logging import BusinessEvents
from payments import builders
from payments.builders import Card, CheckoutDefaults, InvoiceItem, Money, to_payload
from payments.client import PayPalClient
from payments.formatting import render_template, validate_amount
from payments.webhooks import verify_webhook

log = structlog.get_logger(__name__)

DEFAULT_TEMPLATES = {
    "payment_description": "Payment for {{amount}} {{currency}}",
    "subscription_description": "{{plan_name}} subscription",
    "invoice_note": "Thank you for your business with {{brand_name}}.",
    "refund_note": "Refund processed by {{brand_name}}",
}


def _seg(resource_id: str) -> str:
    return quote(str(resource_id), safe="")


class PayPalService:
    def __init__(
        self,
        client: PayPalClient,
        defaults: CheckoutDefaults | None = None,
        webhook_id: str | None = None,
        templates: Mapping[str, str] | None = None,
    ):
        self.client = client
        self.defaults = defaults or CheckoutDefaults()
        self.webhook_id = webhook_id
        self.templates = {**DEFAULT_TEMPLATES, **(templates or {})}

    @classmethod
    def from_settings(cls, settings, client: PayPalClient | None = None) -> "PayPalService":
        return cls(
            client or PayPalClient.from_settings(settings),
            defaults=CheckoutDefaults.from_settings(settings),
            webhook_id=settings.PAYPAL_WEBHOOK_ID,
        )

    def render(self, name: str, **variables: Any) -> str:
        return render_template(
            self.templates[name], {"brand_name": self.defaults.brand_name, **variables}
        )

    def _money(self, amount: int, currency: str | None) -> Money:
        currency = currency or self.defaults.currency
        if not validate_amount(amount, currency):
            raise ValueError(f"Invalid amount {amount!r} for {currency}")
        return Money.from_minor(amount, currency)

    # Orders

    def create_order(
        self,
        amount: Money,
        *,
        intent: str = "CAPTURE",
        description: str | None = None,
        reference_id: str | None = None,
        urls: Mapping[str, str] | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        order = builders.build_order(
            amount,
            self.defaults,
            intent=intent,
            description=description,
            reference_id=reference_id,
            urls=urls,
        )
        return self.client.request(
            "POST", "/v2/checkout/orders", to_payload(order, overrides)
        )

    def create_simple_payment(
        self,
        amount: int,
        currency: str | None = None,
        description: str | None = None,
        return_url: str | None = None,
        cancel_url: str | None = None,
    ) -> dict[str, Any]:
        """Create a CAPTURE order for ``amount`` minor units."""
        money = self._money(amount, currency)
        urls = {k: v for k, v in (("return_url", return_url), ("cancel_url", cancel_url)) if v}
        description = description or self.render(
            "payment_description", amount=money.value, currency=money.currency_code
        )
        log.info(
            BusinessEvents.PAYMENT_ATTEMPT,
            amount=money.value,
            currency=money.currency_code,
        )
        return self.create_order(money, description=description, urls=urls)

    def create_card_payment(
        self,
        amount: int,
        card: Card | Mapping[str, Any],
        currency: str | None = None,
        description: str = "Card Payment",
    ) -> dict[str, Any]:
        money = self._money(amount, currency)
        if not isinstance(card, Card):
            card = Card(**card)
        order = builders.build_card_order(money, card, description=description)
        return self.client.request("POST", "/v2/checkout/orders", to_payload(order))

    def authorize_payment(self, amount: Money, **kwargs: Any) -> dict[str, Any]:
        """Create an AUTHORIZE order; capture later with capture_authorized_payment."""
        return self.create_order(amount, intent="AUTHORIZE", **kwargs)

    def capture_order(self, order_id: str) -> dict[str, Any]:
        return self.client.request("POST", f"/v2/checkout/orders/{_seg(order_id)}/capture")

    def get_order(self, order_id: str) -> dict[str, Any]:
        return self.client.request("GET", f"/v2/checkout/orders/{_seg(order_id)}")

    def capture_authorized_payment(
        self, authorization_id: str, capture: Mapping[str, Any] | None = None
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v2/payments/authorizations/{_seg(authorization_id)}/capture",
            dict(capture or {}),
        )

    def void_authorization(self, authorization_id: str) -> dict[str, Any]:
        return self.client.request(
            "POST", f"/v2/payments/authorizations/{_seg(authorization_id)}/void"
        )

    # Payments

    def refund(
        self,
        capture_id: str,
        amount: Money | None = None,
        note: str | None = None,
        overrides: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Refund a capture; omit ``amount`` for a full refund."""
        body: dict[str, Any] = {"note_to_payer": note or self.render("refund_note")}
        if amount is not None:
            body["amount"] = amount.model_dump()
        if overrides:
            body = builders.deep_merge(body, overrides)
        log.info(BusinessEvents.REFUND_ATTEMPT, capture_id=capture_id)
        return self.client.request(
            "POST", f"/v2/payments/captures/{_seg(capture_id)}/refund", body
        )

    def get_payment(self, capture_id: str) -> dict[str, Any]:
        return self.client.request("GET", f"/v2/payments/captures/{_seg(capture_id)}")

    # Catalog and billing

    def create_product(
        self,
        name: str,
        description: str | None = None,
        overrides: Mapping[str, Any] | None = None,
        **fields: Any,
    ) -> dict[str, Any]:
        product = builders.build_product(name, description, **fields)
        return self.client.request(
            "POST", "/v1/catalogs/products", to_payload(product, overrides)
        )

    def create_plan(
        self,
        product_id: str,
        name: str,
        price: Money,
        overrides: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        kwargs.setdefault(
            "description", self.render("subscription_description", plan_name=name)
        )
        plan = builders.build_plan(product_id, name, price, **kwargs)
        return self.client.request(
            "POST", "/v1/billing/plans", to_payload(plan, overrides)
        )

    def update_plan_pricing(self, plan_id: str, price: Money) -> dict[str, Any]:
        patch = [
            {
                "op": "replace",
                "path": "/billing_cycles/@sequence==1/pricing_scheme/fixed_price",
                "value": price.model_dump(),
            }
        ]
        return self.client.request("PATCH", f"/v1/billing/plans/{_seg(plan_id)}", patch)

    def activate_plan(self, plan_id: str) -> dict[str, Any]:
        return self.client.request("POST", f"/v1/billing/plans/{_seg(plan_id)}/activate")

    def deactivate_plan(self, plan_id: str) -> dict[str, Any]:
        return self.client.request(
            "POST", f"/v1/billing/plans/{_seg(plan_id)}/deactivate"
        )

    def create_subscription(
        self,
        plan_id: str,
        subscriber: Mapping[str, Any] | None = None,
        overrides: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        subscription = builders.build_subscription(
            plan_id, self.defaults, subscriber=subscriber, **kwargs
        )
        return self.client.request(
            "POST", "/v1/billing/subscriptions", to_payload(subscription, overrides)
        )

    def get_subscription(self, subscription_id: str) -> dict[str, Any]:
        return self.client.request(
            "GET", f"/v1/billing/subscriptions/{_seg(subscription_id)}"
        )

    def cancel_subscription(
        self, subscription_id: str, reason: str = "User requested cancellation"
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v1/billing/subscriptions/{_seg(subscription_id)}/cancel",
            {"reason": reason},
        )

    def suspend_subscription(
        self, subscription_id: str, reason: str = "Requested by customer"
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v1/billing/subscriptions/{_seg(subscription_id)}/suspend",
            {"reason": reason},
        )

    def reactivate_subscription(
        self, subscription_id: str, reason: str = "Requested by customer"
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v1/billing/subscriptions/{_seg(subscription_id)}/activate",
            {"reason": reason},
        )

    def get_subscription_transactions(
        self, subscription_id: str, start_time: str, end_time: str
    ) -> dict[str, Any]:
        return self.client.request(
            "GET",
            f"/v1/billing/subscriptions/{_seg(subscription_id)}/transactions",
            params={"start_time": start_time, "end_time": end_time},
        )

    # Invoicing

    def create_invoice(
        self,
        items: list[InvoiceItem],
        overrides: Mapping[str, Any] | None = None,
        **kwargs: Any,
    ) -> dict[str, Any]:
        kwargs.setdefault("currency", self.defaults.currency)
        kwargs.setdefault("note", self.render("invoice_note"))
        invoice = builders.build_invoice(items, **kwargs)
        return self.client.request(
            "POST", "/v2/invoicing/invoices", to_payload(invoice, overrides)
        )

    def send_invoice(
        self,
        invoice_id: str,
        send_to_recipient: bool = True,
        send_to_invoicer: bool = False,
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v2/invoicing/invoices/{_seg(invoice_id)}/send",
            {
                "send_to_recipient": send_to_recipient,
                "send_to_invoicer": send_to_invoicer,
            },
        )

    def get_invoice(self, invoice_id: str) -> dict[str, Any]:
        return self.client.request("GET", f"/v2/invoicing/invoices/{_seg(invoice_id)}")

    def list_invoices(self, **params: Any) -> dict[str, Any]:
        return self.client.request(
            "GET", "/v2/invoicing/invoices", params=params or None
        )

    def cancel_invoice(
        self,
        invoice_id: str,
        subject: str = "Invoice Cancelled",
        note: str = "The invoice has been cancelled.",
        send_to_recipient: bool = True,
        send_to_invoicer: bool = False,
    ) -> dict[str, Any]:
        return self.client.request(
            "POST",
            f"/v2/invoicing/invoices/{_seg(invoice_id)}/cancel",
            {
                "subject": subject,
                "note": note,
                "send_to_recipient": send_to_recipient,
                "send_to_invoicer": send_to_invoicer,
            },
        )

    # Payment experience

    def create_web_profile(
        self, overrides: Mapping[str, Any] | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        profile = builders.build_web_profile(self.defaults, **kwargs)
        return self.client.request(
            "POST",
            "/v1/payment-experience/web-profiles",
            to_payload(profile, overrides),
        )

    # Webhooks

    def create_webhook(
        self, url: str, event_types: list[str] | None = None
    ) -> dict[str, Any]:
        webhook = builders.build_webhook(url, event_types)
        return self.client.request(
            "POST", "/v1/notifications/webhooks", to_payload(webhook)
        )

    def list_webhooks(self) -> dict[str, Any]:
        return self.client.request("GET", "/v1/notifications/webhooks")

    def delete_webhook(self, webhook_id: str) -> dict[str, Any]:
        return self.client.request(
            "DELETE", f"/v1/notifications/webhooks/{_seg(webhook_id)}"
        )

    def verify_webhook(
        self,
        headers: Mapping[str, str],
        body: Any,
        webhook_id: str | None = None,
    ) -> bool:
        webhook_id = webhook_id or self.webhook_id
        if not webhook_id:
            log.error(BusinessEvents.WEBHOOK_VERIFICATION_FAILED, error="no webhook id")
            return False
        return verify_webhook(self.client, headers, body, webhook_id)
