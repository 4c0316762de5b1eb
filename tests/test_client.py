"""
PayPal gateway client tests: token caching, throttling, retry and dispatch.
"""

import re

import pytest
import requests

from payments.client import PayPalClient
from payments.errors import AuthError, ErrorKind, PayPalAPIError, RateLimitError
from tests.conftest import SANDBOX, MockResponse, token_response


def test_client_initialization(client):
    assert client.mode == "sandbox"
    assert client.base_url == SANDBOX
    assert client.timeout == 30.0
    assert client.retry_attempts == 3
    assert client.rate_window.max_requests == 1000
    assert client.rate_window.count == 0
    assert client.tokens.token is None


def test_live_mode_uses_live_base_url():
    live = PayPalClient("id", "secret", "live")
    assert live.base_url == "https://api-m.paypal.com"


def test_unknown_mode_rejected():
    with pytest.raises(ValueError):
        PayPalClient("id", "secret", "staging")


@pytest.mark.parametrize("client_id,secret", [("", "secret"), ("id", ""), (None, None)])
def test_missing_credentials_rejected(client_id, secret):
    with pytest.raises(ValueError, match="Client ID and Client Secret are required"):
        PayPalClient(client_id, secret)


def test_credentials_repr_hides_secret(client):
    assert "test_secret" not in repr(client.credentials)


# Token acquisition


def test_token_exchange_uses_basic_auth(client, mock_token):
    assert client.get_access_token() == "test_token"

    args, kwargs = mock_token.call_args
    assert args[0] == f"{SANDBOX}/v1/oauth2/token"
    assert kwargs["auth"] == ("test_client_id", "test_secret")
    assert kwargs["data"] == {"grant_type": "client_credentials"}
    assert kwargs["timeout"] == 30.0


def test_token_reused_within_validity_window(client, mock_token, mock_request):
    client.request("GET", "/v2/checkout/orders/A")
    client.request("GET", "/v2/checkout/orders/B")

    assert mock_token.call_count == 1
    assert mock_request.call_count == 2


def test_token_refreshed_inside_safety_margin(client, clock, mock_token):
    client.get_access_token()
    assert mock_token.call_count == 1

    # expires_in=3600; still usable until 60s before expiry
    clock.advance(3539)
    client.get_access_token()
    assert mock_token.call_count == 1

    clock.advance(2)
    client.get_access_token()
    assert mock_token.call_count == 2


def test_token_refreshed_after_expiry(client, clock, mock_token):
    mock_token.side_effect = [token_response("first"), token_response("second")]

    assert client.get_access_token() == "first"
    clock.advance(3601)
    assert client.get_access_token() == "second"
    assert mock_token.call_count == 2


def test_missing_expires_in_uses_default_lifetime(client, clock, mock_token):
    mock_token.return_value = MockResponse(200, {"access_token": "tok"})
    client.get_access_token()
    clock.advance(3600)
    client.get_access_token()
    assert mock_token.call_count == 1


def test_rejected_credentials_raise_auth_error(client, mock_token, mock_request):
    mock_token.return_value = MockResponse(
        401,
        {"error": "invalid_client", "error_description": "Client Authentication failed"},
    )

    with pytest.raises(AuthError, match="Client Authentication failed"):
        client.request("GET", "/v1/notifications/webhooks")

    mock_request.assert_not_called()
    assert client.tokens.token is None


def test_network_failure_during_exchange_raises_auth_error(client, mock_token):
    mock_token.side_effect = requests.ConnectionError("connection refused")

    with pytest.raises(AuthError, match="connection refused"):
        client.get_access_token()


def test_malformed_expires_in_raises_auth_error(client, mock_token):
    mock_token.return_value = MockResponse(200, {"access_token": "t", "expires_in": "soon"})

    with pytest.raises(AuthError, match="Failed to get PayPal access token"):
        client.get_access_token()
    assert client.tokens.token is None


def test_malformed_expires_in_reported_unhealthy(client, mock_token):
    mock_token.return_value = MockResponse(200, {"access_token": "t", "expires_in": "soon"})

    assert client.get_api_status()["status"] == "unhealthy"


def test_zero_expires_in_is_not_replaced_with_default(client, mock_token):
    mock_token.return_value = MockResponse(200, {"access_token": "t", "expires_in": 0})

    client.get_access_token()
    client.get_access_token()
    assert mock_token.call_count == 2


def test_invalidate_token_forces_new_exchange(client, mock_token):
    client.get_access_token()
    client.invalidate_token()
    assert client.tokens.token is None

    client.get_access_token()
    assert mock_token.call_count == 2


# Throttle


def test_throttle_allows_ceiling_then_rejects(clock, sleeps, mock_token, mock_request):
    client = PayPalClient(
        "id", "secret", max_requests_per_minute=3, clock=clock, sleep=sleeps.append
    )

    for _ in range(3):
        client.request("GET", "/v2/checkout/orders/A")

    with pytest.raises(RateLimitError, match="Rate limit exceeded"):
        client.request("GET", "/v2/checkout/orders/A")

    assert mock_request.call_count == 3


def test_throttle_resets_after_window(clock, sleeps, mock_token, mock_request):
    client = PayPalClient(
        "id", "secret", max_requests_per_minute=2, clock=clock, sleep=sleeps.append
    )
    client.request("GET", "/a")
    client.request("GET", "/b")

    # the window only resets once it is strictly older than 60s
    clock.advance(60)
    with pytest.raises(RateLimitError):
        client.request("GET", "/c")

    clock.advance(1)
    client.request("GET", "/c")
    assert client.rate_window.count == 1
    assert client.rate_window.window_start == clock.now
    assert mock_request.call_count == 3


def test_check_rate_limit_counts(client):
    client.check_rate_limit()
    client.check_rate_limit()
    assert client.rate_window.count == 2


def test_throttle_rejection_happens_before_token_exchange(clock, mock_token):
    client = PayPalClient("id", "secret", max_requests_per_minute=0, clock=clock)

    with pytest.raises(RateLimitError):
        client.request("GET", "/a")

    mock_token.assert_not_called()


# Dispatch


def test_request_headers_and_url(client, mock_token, mock_request):
    result = client.request("post", "/v2/checkout/orders", {"intent": "CAPTURE"})

    assert result == {"id": "OK"}
    args, kwargs = mock_request.call_args
    assert args == ("POST", f"{SANDBOX}/v2/checkout/orders")
    assert kwargs["json"] == {"intent": "CAPTURE"}
    assert kwargs["timeout"] == 30.0

    headers = kwargs["headers"]
    assert headers["Authorization"] == "Bearer test_token"
    assert headers["Content-Type"] == "application/json"
    assert headers["Prefer"] == "return=representation"
    assert re.match(r"^\d+-\d+$", headers["PayPal-Request-Id"])


def test_request_ids_differ_between_calls(client, mock_token, mock_request):
    client.request("GET", "/a")
    client.request("GET", "/b")

    first = mock_request.call_args_list[0].kwargs["headers"]["PayPal-Request-Id"]
    second = mock_request.call_args_list[1].kwargs["headers"]["PayPal-Request-Id"]
    assert first != second


def test_query_params_forwarded(client, mock_token, mock_request):
    client.request("GET", "/v2/invoicing/invoices", params={"page": 2})
    assert mock_request.call_args.kwargs["params"] == {"page": 2}


def test_empty_response_body_returns_empty_dict(client, mock_token, mock_request):
    mock_request.return_value = MockResponse(204)
    assert client.request("DELETE", "/v1/notifications/webhooks/WH-1") == {}


# Retry and backoff


def test_server_errors_retried_with_exponential_backoff(
    client, sleeps, mock_token, mock_request
):
    mock_request.side_effect = [
        MockResponse(500, {"name": "INTERNAL_SERVER_ERROR"}),
        MockResponse(500, {"name": "INTERNAL_SERVER_ERROR"}),
        MockResponse(500, {"name": "INTERNAL_SERVER_ERROR"}),
        MockResponse(201, {"id": "ORDER-1", "status": "CREATED"}),
    ]

    result = client.request("POST", "/v2/checkout/orders", {"intent": "CAPTURE"})

    assert result == {"id": "ORDER-1", "status": "CREATED"}
    assert mock_request.call_count == 4
    assert sleeps == [1, 2, 4]
    # the cached token is dropped before every retry
    assert mock_token.call_count == 4


def test_retries_reuse_the_same_request_id(client, mock_token, mock_request):
    mock_request.side_effect = [MockResponse(500), MockResponse(200, {"ok": True})]

    client.request("POST", "/v2/checkout/orders", {})

    ids = {c.kwargs["headers"]["PayPal-Request-Id"] for c in mock_request.call_args_list}
    assert len(ids) == 1


def test_retries_exhausted_raise_last_error(client, sleeps, mock_token, mock_request):
    mock_request.return_value = MockResponse(500, {"message": "boom"})

    with pytest.raises(PayPalAPIError) as exc_info:
        client.request("GET", "/v2/checkout/orders/A")

    err = exc_info.value
    assert err.kind == ErrorKind.INTERNAL_SERVER_ERROR
    assert err.status == 500
    assert err.details == {"message": "boom"}
    assert err.request_id
    assert mock_request.call_count == 4
    assert sleeps == [1, 2, 4]


def test_not_found_is_never_retried(client, sleeps, mock_token, mock_request):
    mock_request.return_value = MockResponse(404, {"name": "RESOURCE_NOT_FOUND"})

    with pytest.raises(PayPalAPIError) as exc_info:
        client.request("GET", "/v2/checkout/orders/MISSING")

    assert exc_info.value.kind == ErrorKind.NOT_FOUND
    assert exc_info.value.status == 404
    assert mock_request.call_count == 1
    assert sleeps == []


@pytest.mark.parametrize("status", [400, 403, 422, 429])
def test_client_errors_not_retried(client, sleeps, mock_token, mock_request, status):
    mock_request.return_value = MockResponse(status, {"message": "nope"})

    with pytest.raises(PayPalAPIError):
        client.request("POST", "/v2/checkout/orders", {})

    assert mock_request.call_count == 1
    assert sleeps == []


def test_authentication_failure_retried_with_fresh_token(
    client, sleeps, mock_token, mock_request
):
    mock_token.side_effect = [token_response("stale"), token_response("fresh")]
    mock_request.side_effect = [MockResponse(401), MockResponse(200, {"id": "A"})]

    assert client.request("GET", "/v2/checkout/orders/A") == {"id": "A"}

    assert sleeps == [1]
    tokens = [c.kwargs["headers"]["Authorization"] for c in mock_request.call_args_list]
    assert tokens == ["Bearer stale", "Bearer fresh"]


def test_other_5xx_statuses_are_retried(client, sleeps, mock_token, mock_request):
    mock_request.side_effect = [MockResponse(503), MockResponse(200, {"id": "A"})]

    assert client.request("GET", "/v2/checkout/orders/A") == {"id": "A"}
    assert sleeps == [1]


def test_network_errors_not_retried(client, sleeps, mock_token, mock_request):
    mock_request.side_effect = requests.ConnectionError("connection reset")

    with pytest.raises(PayPalAPIError) as exc_info:
        client.request("GET", "/v2/checkout/orders/A")

    assert exc_info.value.kind == ErrorKind.NETWORK_ERROR
    assert exc_info.value.status is None
    assert sleeps == []


def test_retry_attempts_configurable(clock, sleeps, mock_token, mock_request):
    client = PayPalClient(
        "id", "secret", retry_attempts=1, clock=clock, sleep=sleeps.append
    )
    mock_request.return_value = MockResponse(500)

    with pytest.raises(PayPalAPIError):
        client.request("GET", "/a")

    assert mock_request.call_count == 2
    assert sleeps == [1]


def test_retries_count_against_throttle(clock, sleeps, mock_token, mock_request):
    client = PayPalClient(
        "id", "secret", max_requests_per_minute=2, clock=clock, sleep=sleeps.append
    )
    mock_request.return_value = MockResponse(500)

    with pytest.raises(RateLimitError):
        client.request("GET", "/a")

    assert mock_request.call_count == 2


# Status


def test_api_status_healthy(client, mock_token):
    status = client.get_api_status()
    assert status["status"] == "healthy"
    assert status["mode"] == "sandbox"
    assert status["base_url"] == SANDBOX
    assert "timestamp" in status


def test_api_status_unhealthy(client, mock_token):
    mock_token.return_value = MockResponse(401, {"error_description": "bad creds"})

    status = client.get_api_status()
    assert status["status"] == "unhealthy"
    assert "bad creds" in status["error"]


def test_non_json_success_body_raises_typed_error(client, mock_token, mock_request):
    mock_request.return_value = MockResponse(200, None, text="<html>ok</html>")

    with pytest.raises(PayPalAPIError) as exc_info:
        client.request("GET", "/v2/checkout/orders/A")

    err = exc_info.value
    assert err.kind == ErrorKind.UNKNOWN_ERROR
    assert err.status == 200
    assert err.details == "<html>ok</html>"
    assert err.request_id
    assert mock_request.call_count == 1
