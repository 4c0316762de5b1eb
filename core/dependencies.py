from core.settings import Settings
from payments.client import PayPalClient
from payments.paypal_service import PayPalService

# Settings singleton
_settings = None

# Client singleton, built lazily from settings
_client = None


def get_settings() -> Settings:
    """Dependency that provides application settings."""
    assert (
        _settings is not None
    ), "Settings not initialized. Make sure init_settings() was called."
    return _settings


def init_settings():
    """Initialize settings singleton."""
    global _settings
    _settings = Settings()


def clear_settings():
    """Clear settings and client singletons."""
    global _settings, _client
    _settings = None
    _client = None


def get_client() -> PayPalClient:
    """Dependency that provides the shared PayPal client."""
    global _client
    if _client is None:
        _client = PayPalClient.from_settings(get_settings())
    return _client


def get_service() -> PayPalService:
    """Dependency that provides the resource service over the shared client."""
    return PayPalService.from_settings(get_settings(), client=get_client())
