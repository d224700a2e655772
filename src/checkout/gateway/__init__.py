"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing (PAANIYO_GATEWAY=fake, the default)
- SSLCommerzGateway for production (PAANIYO_GATEWAY=sslcommerz)
"""

from protean.exceptions import ConfigurationError

from checkout.config import SANDBOX_STORE_PASSWORD, get_settings
from checkout.gateway.fake_adapter import FakeGateway
from checkout.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def build_gateway(settings=None) -> PaymentGateway:
    settings = settings or get_settings()
    if settings.gateway_name == "sslcommerz":
        # Deferred: the adapter imports from this package
        from checkout.gateway.sslcommerz_adapter import SSLCommerzGateway

        if not settings.gateway.sandbox and settings.gateway.store_password == SANDBOX_STORE_PASSWORD:
            raise ConfigurationError("Live SSLCommerz cannot use the sandbox store password")
        return SSLCommerzGateway(settings.gateway)
    if settings.gateway_name == "fake":
        return FakeGateway(store_password=settings.gateway.store_password)
    raise ValueError(f"Unknown payment gateway: {settings.gateway_name}")


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway, building it from settings on first use."""
    global _current_gateway
    if _current_gateway is None:
        _current_gateway = build_gateway()
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to the gateway configured in settings."""
    global _current_gateway
    _current_gateway = None
