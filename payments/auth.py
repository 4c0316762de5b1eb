"""
OAuth2 client-credentials tokens for the PayPal REST API.

A token is reused until 60 seconds before PayPal says it expires.
"""

import threading
import time
from dataclasses import dataclass
from typing import Callable

import requests
import structlog

from core.logging import BusinessEvents
from core.metrics import token_refresh_total
from payments.errors import AuthError

log = structlog.get_logger(__name__)

# Refresh this many seconds before PayPal's stated expiry
EXPIRY_MARGIN_SECONDS = 60.0

# PayPal's usual token lifetime, used when the response omits expires_in
DEFAULT_EXPIRES_IN = 32400


@dataclass(frozen=True)
class Credentials:
    client_id: str
    client_secret: str

    def __repr__(self) -> str:
        return f"Credentials(client_id={self.client_id!r}, client_secret='***')"


@dataclass(frozen=True)
class AccessToken:
    value: str
    expires_at: float  # clock seconds

    def is_valid(self, now: float) -> bool:
        return now < self.expires_at - EXPIRY_MARGIN_SECONDS


class TokenManager:
    """Caches the OAuth2 bearer token and renews it on demand."""

    def __init__(
        self,
        credentials: Credentials,
        base_url: str,
        timeout: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.base_url = base_url
        self.timeout = timeout
        self._clock = clock
        self._lock = threading.Lock()
        self._token: AccessToken | None = None

    @property
    def token(self) -> AccessToken | None:
        return self._token

    def invalidate(self) -> None:
        with self._lock:
            self._token = None

    def get(self) -> str:
        with self._lock:
            token = self._token
        if token is not None and token.is_valid(self._clock()):
            return token.value

        # Exchange outside the lock; a duplicate refresh under a race is harmless
        token = self._exchange()
        with self._lock:
            self._token = token
        return token.value

    def _exchange(self) -> AccessToken:
        try:
            r = requests.post(
                f"{self.base_url}/v1/oauth2/token",
                auth=(self.credentials.client_id, self.credentials.client_secret),
                data={"grant_type": "client_credentials"},
                headers={"Accept": "application/json"},
                timeout=self.timeout,
            )
            r.raise_for_status()
            data = r.json()
            value = data["access_token"]
            expires_in = (
                float(data["expires_in"]) if "expires_in" in data else DEFAULT_EXPIRES_IN
            )
        except (requests.RequestException, ValueError, KeyError, TypeError) as e:
            token_refresh_total.labels(outcome="failure").inc()
            reason = _error_description(e)
            log.error(BusinessEvents.TOKEN_FAILED, error=reason)
            raise AuthError(f"Failed to get PayPal access token: {reason}") from e

        token_refresh_total.labels(outcome="success").inc()
        log.info(BusinessEvents.TOKEN_REFRESHED, expires_in=expires_in)
        return AccessToken(value=value, expires_at=self._clock() + expires_in)


def _error_description(exc: Exception) -> str:
    response = getattr(exc, "response", None)
    if response is not None:
        try:
            description = response.json().get("error_description")
        except (ValueError, AttributeError):
            description = None
        if description:
            return description
    if isinstance(exc, KeyError):
        return "token response missing access_token"
    return str(exc)
