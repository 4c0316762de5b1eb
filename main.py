"""
PayPal Client - Application Entry Point

Hosts the PayPal webhook receiver plus health and metrics endpoints. The
client library itself (``payments``) has no dependency on this module.
"""

import structlog
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, Response
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from api import webhooks
from core.dependencies import clear_settings, get_client, init_settings
from core.logging import configure_logging
from core.metrics import metrics_response
from core.tracing import init_tracer
from payments.client import PayPalClient
from payments.errors import PayPalAPIError

log = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application startup and shutdown events."""
    # Startup
    init_settings()
    init_tracer()
    yield
    # Shutdown
    clear_settings()


app = FastAPI(
    title="PayPal Client",
    description="PayPal REST API client with a webhook receiver.",
    version="1.0.0",
    lifespan=lifespan,
)


@app.exception_handler(PayPalAPIError)
async def paypal_error_handler(request: Request, exc: PayPalAPIError):
    return JSONResponse(
        status_code=502,
        content={
            "detail": exc.message,
            "kind": exc.kind.value,
            "status": exc.status,
            "request_id": exc.request_id,
        },
    )


@app.get("/health")
async def health(client: PayPalClient = Depends(get_client)):
    """Report whether the configured credentials can obtain a token."""
    return await run_in_threadpool(client.get_api_status)


@app.get("/metrics", include_in_schema=False)
async def metrics():
    body, content_type = metrics_response()
    return Response(content=body, media_type=content_type)


app.include_router(webhooks.router)


def main():
    configure_logging()
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=8000)


if __name__ == "__main__":
    main()
