"""Test configuration and fixtures."""

import json
import os
from unittest.mock import patch

import pytest
import requests

from payments.builders import CheckoutDefaults
from payments.client import PayPalClient
from payments.paypal_service import PayPalService

SANDBOX = "https://api-m.sandbox.paypal.com"


class MockResponse:
    """Stand-in for requests.Response with an explicit integer status code."""

    def __init__(self, status_code, json_data=None, text=""):
        self.status_code = status_code
        self._json_data = json_data
        self.text = text or (json.dumps(json_data) if json_data is not None else "")
        self.content = self.text.encode()

    def json(self):
        if self._json_data is None:
            raise ValueError("No JSON body")
        return self._json_data

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error", response=self)


class FakeClock:
    """Monotonic clock the tests move by hand."""

    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


def token_response(token="test_token", expires_in=3600):
    return MockResponse(200, {"access_token": token, "expires_in": expires_in})


@pytest.fixture(autouse=True)
def setup_test_environment():
    """Setup test environment variables before each test."""
    original_env = dict(os.environ)

    os.environ.update(
        {
            "PAYPAL_CLIENT_ID": "test_client_id",
            "PAYPAL_CLIENT_SECRET": "test_secret",
            "PAYPAL_MODE": "sandbox",
            "ENVIRONMENT": "development",
            "DISABLE_TRACING": "true",
        }
    )

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sleeps():
    """Records backoff waits instead of sleeping."""
    return []


@pytest.fixture
def client(clock, sleeps):
    return PayPalClient(
        "test_client_id",
        "test_secret",
        clock=clock,
        sleep=sleeps.append,
    )


@pytest.fixture
def mock_token():
    """Patch the OAuth2 exchange to always hand out the same token."""
    with patch("payments.auth.requests.post") as mock_post:
        mock_post.return_value = token_response()
        yield mock_post


@pytest.fixture
def mock_request():
    with patch("payments.client.requests.request") as mock_req:
        mock_req.return_value = MockResponse(200, {"id": "OK"})
        yield mock_req


@pytest.fixture
def defaults():
    return CheckoutDefaults(brand_name="Test Store", base_url="https://shop.test")


@pytest.fixture
def service(client, defaults):
    return PayPalService(client, defaults=defaults, webhook_id="WH-TEST")
