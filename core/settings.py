import os
from typing import Literal

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

# Load .env file automatically
load_dotenv()


class Settings(BaseSettings):
    """PayPal client settings loaded from environment variables."""

    # Credentials
    PAYPAL_CLIENT_ID: str
    PAYPAL_CLIENT_SECRET: str
    PAYPAL_MODE: Literal["sandbox", "live"] = "sandbox"
    PAYPAL_DEBUG: bool = False

    # Request pipeline
    PAYPAL_TIMEOUT: float = 30.0  # seconds
    PAYPAL_RETRY_ATTEMPTS: int = 3
    PAYPAL_MAX_REQUESTS_PER_MINUTE: int = 1000

    # Webhooks
    PAYPAL_WEBHOOK_ID: str | None = None

    # Brand / checkout experience defaults
    PAYPAL_BRAND_NAME: str = "Your Store"
    PAYPAL_BASE_URL: str = "https://yourstore.com"
    PAYPAL_RETURN_URL: str | None = None
    PAYPAL_CANCEL_URL: str | None = None
    PAYPAL_DEFAULT_CURRENCY: str = "USD"
    PAYPAL_DEFAULT_LOCALE: str = "en-US"
    PAYPAL_LANDING_PAGE: str = "LOGIN"
    PAYPAL_USER_ACTION: str = "PAY_NOW"
    PAYPAL_SHIPPING_PREFERENCE: str = "NO_SHIPPING"

    # App settings
    ENVIRONMENT: Literal["development", "test", "production"] = "development"

    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=True, extra="ignore"
    )

    def __init__(self, **kwargs):
        # Check for credentials before calling parent constructor
        for name in ("PAYPAL_CLIENT_ID", "PAYPAL_CLIENT_SECRET"):
            if not (kwargs.get(name) or os.getenv(name)):
                raise RuntimeError(
                    f"{name} not set; create .env or export the variable"
                )
        super().__init__(**kwargs)
