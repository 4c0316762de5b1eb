import logging
import sys
import structlog
import os
from opentelemetry.instrumentation.logging import LoggingInstrumentor


def get_log_level():
    """Get log level from environment; PAYPAL_DEBUG forces DEBUG"""
    if os.getenv("PAYPAL_DEBUG", "").lower() in {"1", "true", "yes"}:
        return "DEBUG"
    return os.getenv("LOG_LEVEL", "INFO").upper()


def get_log_renderer():
    """Get log renderer based on environment"""
    env = os.getenv("ENVIRONMENT", "development")
    # Use JSON format for tests and production
    if env in ["test", "production"]:
        return structlog.processors.JSONRenderer()
    # Pretty printing for local development
    return structlog.dev.ConsoleRenderer(colors=True, sort_keys=False)


def configure_logging():
    """Set up structlog + OTEL context injection."""
    shared_processors = [
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
    ]

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            *shared_processors,
            get_log_renderer(),
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    env = os.getenv("ENVIRONMENT", "development")
    if env == "test":
        # In test mode, write to stdout for easier capture
        handler = logging.StreamHandler(sys.stdout)
    else:
        handler = logging.StreamHandler()

    handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger = logging.getLogger()
    root_logger.handlers = [handler]  # Replace any existing handlers
    root_logger.setLevel(get_log_level())

    # urllib3 logs every connection at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    # Initialize OpenTelemetry logging instrumentation AFTER configuring logging
    LoggingInstrumentor().instrument(set_logging_format=False)


# Business Event Log Names
class BusinessEvents:
    """Standard names for PayPal client event logs"""

    PAYPAL_REQUEST = "paypal.request"
    PAYPAL_RESPONSE = "paypal.response"
    PAYPAL_RETRY = "paypal.retry"
    PAYPAL_ERROR = "paypal.error"
    TOKEN_REFRESHED = "paypal.token_refreshed"
    TOKEN_FAILED = "paypal.token_failed"
    RATE_LIMITED = "paypal.rate_limited"
    PAYMENT_ATTEMPT = "payment.attempt"
    REFUND_ATTEMPT = "payment.refund"
    WEBHOOK_VERIFIED = "paypal.webhook_verified"
    WEBHOOK_VERIFICATION_FAILED = "paypal.webhook_verification_failed"


# Configure logging when module is imported
configure_logging()
