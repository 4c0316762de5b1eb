"""
Webhook handlers for PayPal
"""

import json

import structlog
from fastapi import APIRouter, Depends, HTTPException, Request
from starlette.concurrency import run_in_threadpool

from core.dependencies import get_service
from payments.paypal_service import PayPalService
from payments.webhooks import format_webhook_event

log = structlog.get_logger(__name__)

router = APIRouter()


@router.post("/webhooks/paypal")
async def paypal_webhook(
    request: Request, service: PayPalService = Depends(get_service)
):
    # PayPal signs the exact bytes it sent
    payload = await request.body()
    try:
        event = json.loads(payload)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    if not isinstance(event, dict):
        raise HTTPException(status_code=400, detail="Invalid JSON payload")

    # verification is a blocking call to PayPal
    verified = await run_in_threadpool(service.verify_webhook, request.headers, event)
    if not verified:
        raise HTTPException(status_code=400, detail="Invalid signature")

    formatted = format_webhook_event(event)
    log.info(
        "paypal.webhook_received",
        event_id=formatted["id"],
        event_type=formatted["eventType"],
        resource_type=formatted["resourceType"],
    )
    return formatted
