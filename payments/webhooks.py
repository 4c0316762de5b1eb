"""
PayPal webhook helpers.

Signature verification is delegated to PayPal's
``/v1/notifications/verify-webhook-signature`` endpoint; nothing is verified
locally. A failed verification call is reported the same way as an invalid
signature.
"""

import json
from typing import Any, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from core.logging import BusinessEvents
from payments.client import PayPalClient

log = structlog.get_logger(__name__)

VERIFY_PATH = "/v1/notifications/verify-webhook-signature"

# verification field -> transmission header
SIGNATURE_HEADERS = {
    "auth_algo": "paypal-auth-algo",
    "cert_id": "paypal-cert-id",
    "transmission_id": "paypal-transmission-id",
    "transmission_sig": "paypal-transmission-sig",
    "transmission_time": "paypal-transmission-time",
}


class WebhookEvent(BaseModel):
    id: Optional[str] = None
    event_type: Optional[str] = None
    resource_type: Optional[str] = None
    summary: Optional[str] = None
    resource: Optional[dict[str, Any]] = None
    create_time: Optional[str] = None
    event_version: Optional[str] = None
    resource_version: Optional[str] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="ignore"
    )


def format_webhook_event(event: Mapping[str, Any]) -> dict[str, Any]:
    """
    Pick the fields callers route on out of a raw webhook event.

    Keys come back camel-cased (``eventType``, ``resourceType``, ``createTime``).
    """
    return WebhookEvent.model_validate(dict(event)).model_dump(by_alias=True)


def _load_event(body: Any) -> Any:
    if isinstance(body, (bytes, bytearray)):
        body = body.decode("utf-8")
    if isinstance(body, str):
        return json.loads(body)
    return body


def build_verification_request(
    headers: Mapping[str, str], body: Any, webhook_id: str
) -> dict[str, Any]:
    lowered = {k.lower(): v for k, v in headers.items()}
    request = {field: lowered.get(name) for field, name in SIGNATURE_HEADERS.items()}
    request["webhook_id"] = webhook_id
    request["webhook_event"] = _load_event(body)
    return request


def verify_webhook(
    client: PayPalClient, headers: Mapping[str, str], body: Any, webhook_id: str
) -> bool:
    """
    Ask PayPal whether a received webhook is authentic.

    Returns True only when PayPal answers ``verification_status == "SUCCESS"``.
    Any error while building or sending the verification request yields False.
    """
    try:
        result = client.request(
            "POST", VERIFY_PATH, build_verification_request(headers, body, webhook_id)
        )
    except Exception as e:
        log.error(
            BusinessEvents.WEBHOOK_VERIFICATION_FAILED,
            webhook_id=webhook_id,
            error=str(e),
        )
        return False

    status = result.get("verification_status") if isinstance(result, dict) else None
    verified = status == "SUCCESS"
    log.info(
        BusinessEvents.WEBHOOK_VERIFIED
        if verified
        else BusinessEvents.WEBHOOK_VERIFICATION_FAILED,
        webhook_id=webhook_id,
        verification_status=status,
    )
    return verified
