"""Process-wide checkout settings.

Settings are read once from the environment into frozen dataclasses. Every
field has a documented default so the service runs out of the box against the
fake gateway in development and tests. Selecting the real gateway requires its
store credentials; the sandbox defaults are never used for it.

Environment variables:

    PAANIYO_GATEWAY            "sslcommerz" or "fake" (default: "fake")
    SSL_STORE_ID               SSLCommerz store id (required for "sslcommerz")
    SSL_STORE_PASSWORD         SSLCommerz store password, also the IPN signing
                               key (required for "sslcommerz")
    SSL_IS_SANDBOX             "true" to use the sandbox host (default: "true")
    SSL_TIMEOUT                gateway HTTP timeout in seconds (default: 30)
    PAANIYO_APP_URL            public base URL used for gateway callbacks
                               (falls back to NEXT_PUBLIC_APP_URL, then
                               http://localhost:8000)
    PAANIYO_COMMISSION_RATE    platform commission in percent (default: 12)
    PAANIYO_AMOUNT_TOLERANCE   accepted IPN amount drift in taka (default: 1.00)
"""

import os
from contextlib import contextmanager
from dataclasses import dataclass, field
from decimal import Decimal

from protean.exceptions import ConfigurationError

from checkout.shared.money import to_paisa

SANDBOX_BASE_URL = "https://sandbox.sslcommerz.com"
LIVE_BASE_URL = "https://securepay.sslcommerz.com"
SANDBOX_STORE_ID = "testbox"
SANDBOX_STORE_PASSWORD = "qwerty"


@dataclass(frozen=True)
class GatewaySettings:
    store_id: str = SANDBOX_STORE_ID
    store_password: str = SANDBOX_STORE_PASSWORD
    sandbox: bool = True
    timeout: float = 30.0

    @property
    def base_url(self) -> str:
        return SANDBOX_BASE_URL if self.sandbox else LIVE_BASE_URL


@dataclass(frozen=True)
class PricingSettings:
    commission_rate: Decimal = Decimal("0.12")
    amount_tolerance: int = 100  # paisa


@dataclass(frozen=True)
class CheckoutSettings:
    gateway_name: str = "fake"
    app_url: str = "http://localhost:8000"
    gateway: GatewaySettings = field(default_factory=GatewaySettings)
    pricing: PricingSettings = field(default_factory=PricingSettings)

    def callback_url(self, path: str) -> str:
        return f"{self.app_url.rstrip('/')}{path}"


def _flag(value: str | None, default: bool) -> bool:
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def load_settings(environ=None) -> CheckoutSettings:
    """Build settings from an environment mapping (``os.environ`` by default)."""
    env = os.environ if environ is None else environ

    gateway_name = env.get("PAANIYO_GATEWAY", CheckoutSettings.gateway_name).lower()
    if gateway_name == "sslcommerz":
        missing = [name for name in ("SSL_STORE_ID", "SSL_STORE_PASSWORD") if not env.get(name)]
        if missing:
            raise ConfigurationError(f"PAANIYO_GATEWAY=sslcommerz requires {', '.join(missing)}")

    gateway = GatewaySettings(
        store_id=env.get("SSL_STORE_ID", GatewaySettings.store_id),
        store_password=env.get("SSL_STORE_PASSWORD", GatewaySettings.store_password),
        sandbox=_flag(env.get("SSL_IS_SANDBOX"), True),
        timeout=float(env.get("SSL_TIMEOUT", GatewaySettings.timeout)),
    )

    pricing = PricingSettings(
        commission_rate=Decimal(env.get("PAANIYO_COMMISSION_RATE", "12")) / 100,
        amount_tolerance=to_paisa(env.get("PAANIYO_AMOUNT_TOLERANCE", "1.00")),
    )

    return CheckoutSettings(
        gateway_name=gateway_name,
        app_url=env.get("PAANIYO_APP_URL") or env.get("NEXT_PUBLIC_APP_URL") or CheckoutSettings.app_url,
        gateway=gateway,
        pricing=pricing,
    )


_current_settings: CheckoutSettings | None = None


def get_settings() -> CheckoutSettings:
    """Return the process settings, loading them on first use."""
    global _current_settings
    if _current_settings is None:
        _current_settings = load_settings()
    return _current_settings


def set_settings(settings: CheckoutSettings | None) -> None:
    global _current_settings
    _current_settings = settings


@contextmanager
def override_settings(settings: CheckoutSettings):
    """Temporarily swap the process settings (tests)."""
    previous = _current_settings
    set_settings(settings)
    try:
        yield settings
    finally:
        set_settings(previous)
