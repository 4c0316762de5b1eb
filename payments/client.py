"""
PayPal API Gateway Client

Turns a logical PayPal operation into an authenticated HTTP call:
- OAuth2 client-credentials token caching and renewal
- Local per-minute request throttling
- Dispatch with bounded exponential-backoff retry
- Classification of failures into typed errors
"""

import itertools
import time
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Callable

import requests
import structlog
import tenacity

from core.logging import BusinessEvents
from core.metrics import request_latency, requests_total, retries_total
from core.tracing import get_tracer
from payments.auth import Credentials, TokenManager
from payments.errors import (
    AuthError,
    ErrorKind,
    ParsedError,
    PayPalAPIError,
    classify_error,
)
from payments.rate_limiter import RateWindow

log = structlog.get_logger(__name__)
tracer = get_tracer(__name__)

BASE_URLS = {
    "sandbox": "https://api-m.sandbox.paypal.com",
    "live": "https://api-m.paypal.com",
}

BACKOFF_BASE_SECONDS = 1


@dataclass
class RequestContext:
    method: str
    path: str
    request_id: str
    body: Any = None
    params: dict[str, Any] | None = field(default=None)


def _should_retry(exc: BaseException) -> bool:
    return isinstance(exc, PayPalAPIError) and exc.retryable


class PayPalClient:
    def __init__(
        self,
        client_id: str,
        client_secret: str,
        mode: str = "sandbox",
        *,
        debug: bool = False,
        timeout: float = 30.0,
        retry_attempts: int = 3,
        max_requests_per_minute: int = 1000,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not client_id or not client_secret:
            raise ValueError("PayPal Client ID and Client Secret are required")
        if mode not in BASE_URLS:
            raise ValueError(f"Unknown PayPal mode {mode!r}; use 'sandbox' or 'live'")

        self.mode = mode
        self.base_url = BASE_URLS[mode]
        self.debug = debug
        self.timeout = timeout
        self.retry_attempts = retry_attempts
        self.credentials = Credentials(client_id, client_secret)
        self.tokens = TokenManager(
            self.credentials, self.base_url, timeout=timeout, clock=clock
        )
        self.rate_window = RateWindow(max_requests_per_minute, clock=clock)
        self._sleep = sleep
        self._counter = itertools.count(1)

        log.info("paypal.client_initialized", mode=mode, base_url=self.base_url)

    @classmethod
    def from_settings(cls, settings, **kwargs) -> "PayPalClient":
        return cls(
            settings.PAYPAL_CLIENT_ID,
            settings.PAYPAL_CLIENT_SECRET,
            settings.PAYPAL_MODE,
            debug=settings.PAYPAL_DEBUG,
            timeout=settings.PAYPAL_TIMEOUT,
            retry_attempts=settings.PAYPAL_RETRY_ATTEMPTS,
            max_requests_per_minute=settings.PAYPAL_MAX_REQUESTS_PER_MINUTE,
            **kwargs,
        )

    def get_access_token(self) -> str:
        return self.tokens.get()

    def invalidate_token(self) -> None:
        self.tokens.invalidate()

    def check_rate_limit(self) -> None:
        self.rate_window.check()

    def parse_error(self, exc: Exception) -> ParsedError:
        """Classify a failed request; a 401 also drops the cached token."""
        parsed = classify_error(exc)
        if parsed.kind == ErrorKind.AUTHENTICATION_FAILURE:
            self.invalidate_token()
        return parsed

    def request(
        self,
        method: str,
        path: str,
        body: Any = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """
        Send an authenticated request and return the decoded JSON body.

        Authentication failures and 5xx responses are retried up to
        ``retry_attempts`` times, waiting 1s, 2s, 4s... between attempts.
        Every attempt goes through the throttle and the token cache.
        """
        context = RequestContext(
            method=method.upper(),
            path=path,
            request_id=f"{next(self._counter)}-{int(time.time() * 1000)}",
            body=body,
            params=params,
        )
        retrying = tenacity.Retrying(
            sleep=self._sleep,
            stop=tenacity.stop_after_attempt(self.retry_attempts + 1),
            wait=tenacity.wait_exponential(multiplier=BACKOFF_BASE_SECONDS, exp_base=2),
            retry=tenacity.retry_if_exception(_should_retry),
            before_sleep=self._before_retry,
            reraise=True,
        )
        return retrying(self._attempt, context)

    def _before_retry(self, retry_state: tenacity.RetryCallState) -> None:
        exc = retry_state.outcome.exception()
        self.invalidate_token()
        retries_total.labels(kind=exc.kind.value).inc()
        log.warning(
            BusinessEvents.PAYPAL_RETRY,
            request_id=exc.request_id,
            kind=exc.kind.value,
            status=exc.status,
            attempt=retry_state.attempt_number,
            max_retries=self.retry_attempts,
            wait=retry_state.next_action.sleep if retry_state.next_action else None,
        )

    def _attempt(self, context: RequestContext) -> Any:
        self.check_rate_limit()
        token = self.get_access_token()

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
            "PayPal-Request-Id": context.request_id,
            "Prefer": "return=representation",
        }

        log.info(
            BusinessEvents.PAYPAL_REQUEST,
            request_id=context.request_id,
            method=context.method,
            path=context.path,
        )
        if self.debug and context.body is not None:
            log.debug(
                BusinessEvents.PAYPAL_REQUEST,
                request_id=context.request_id,
                body=context.body,
            )

        with tracer.start_as_current_span("paypal.request") as span:
            span.set_attribute("http.method", context.method)
            span.set_attribute("paypal.path", context.path)
            span.set_attribute("paypal.request_id", context.request_id)
            started = time.perf_counter()
            try:
                response = requests.request(
                    context.method,
                    f"{self.base_url}{context.path}",
                    headers=headers,
                    json=context.body,
                    params=context.params,
                    timeout=self.timeout,
                )
                response.raise_for_status()
            except requests.RequestException as e:
                raise self._failure(context, span, self.parse_error(e)) from e
            finally:
                request_latency.labels(method=context.method).observe(
                    time.perf_counter() - started
                )

            try:
                data = response.json() if response.content else {}
            except ValueError as e:
                parsed = ParsedError(
                    kind=ErrorKind.UNKNOWN_ERROR,
                    message=f"Invalid JSON in HTTP {response.status_code} response",
                    details=response.text,
                    status=response.status_code,
                )
                raise self._failure(context, span, parsed) from e

        requests_total.labels(method=context.method, outcome="success").inc()

        log.info(
            BusinessEvents.PAYPAL_RESPONSE,
            request_id=context.request_id,
            status=response.status_code,
        )
        if self.debug:
            log.debug(
                BusinessEvents.PAYPAL_RESPONSE,
                request_id=context.request_id,
                body=data,
            )
        return data

    def _failure(self, context: RequestContext, span, parsed: ParsedError) -> PayPalAPIError:
        span.set_attribute("paypal.error_kind", parsed.kind.value)
        requests_total.labels(method=context.method, outcome=parsed.kind.value).inc()
        log.warning(
            BusinessEvents.PAYPAL_ERROR,
            request_id=context.request_id,
            kind=parsed.kind.value,
            status=parsed.status,
            error=parsed.message,
        )
        return PayPalAPIError(
            parsed.kind,
            parsed.message,
            status=parsed.status,
            details=parsed.details,
            request_id=context.request_id,
        )

    def get_api_status(self) -> dict[str, Any]:
        """Report whether credentials can currently obtain a token."""
        status = {
            "mode": self.mode,
            "base_url": self.base_url,
            "timestamp": datetime.now(UTC).isoformat(),
        }
        try:
            self.get_access_token()
        except AuthError as e:
            return {"status": "unhealthy", "error": str(e), **status}
        return {"status": "healthy", **status}
