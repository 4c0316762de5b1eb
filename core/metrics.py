"""
Prometheus metrics for the PayPal client.

Counters and histograms are registered on the default prometheus_client
registry; scrape them with ``generate_latest`` or mount ``metrics_response``
on whatever web app embeds the client.
"""

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

requests_total = Counter(
    "paypal_requests_total",
    "Total number of PayPal API dispatch attempts",
    ["method", "outcome"],  # outcome: success or an ErrorKind value
)

request_latency = Histogram(
    "paypal_request_latency_seconds",
    "Time taken for a single PayPal API attempt",
    ["method"],
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
)

retries_total = Counter(
    "paypal_retries_total",
    "Total number of retried PayPal API attempts",
    ["kind"],
)

token_refresh_total = Counter(
    "paypal_token_refresh_total",
    "Total number of OAuth2 client-credentials exchanges",
    ["outcome"],
)

rate_limited_total = Counter(
    "paypal_local_rate_limited_total",
    "Requests rejected by the local per-minute throttle",
)


def metrics_response() -> tuple[bytes, str]:
    """Render the default registry as (body, content type)."""
    return generate_latest(), CONTENT_TYPE_LATEST
