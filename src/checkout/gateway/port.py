"""Payment gateway port (abstract interface).

The checkout talks to exactly one hosted gateway (SSLCommerz). The port exists
so the same application code runs against the real adapter in production and
against FakeGateway in development and tests.

Amounts cross this boundary as integer paisa; adapters convert to the
gateway's decimal taka strings.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

# Gateway statuses that mean the money was captured
SUCCESS_STATUSES = frozenset({"VALID", "VALIDATED"})


class GatewayUnavailable(Exception):
    """The gateway could not be reached or returned something unreadable."""


@dataclass(frozen=True)
class SessionRequest:
    """Everything the gateway needs to open a hosted payment page."""

    order_id: str
    tran_id: str
    amount: int
    customer_name: str
    customer_email: str
    customer_phone: str
    customer_address: str
    customer_city: str
    success_url: str
    fail_url: str
    cancel_url: str
    ipn_url: str
    customer_postcode: str | None = None
    product_names: tuple[str, ...] = ()
    product_category: str | None = None


@dataclass(frozen=True)
class SessionResult:
    success: bool
    session_key: str | None = None
    gateway_url: str | None = None
    failure_reason: str | None = None


@dataclass(frozen=True)
class ValidationResult:
    """The gateway's own verdict on a validation id."""

    status: str
    tran_id: str | None = None
    val_id: str | None = None
    amount: int | None = None
    bank_tran_id: str | None = None
    card_type: str | None = None
    raw: dict = field(default_factory=dict, compare=False)

    @property
    def is_valid(self) -> bool:
        return self.status in SUCCESS_STATUSES


@dataclass(frozen=True)
class TransactionStatus:
    """Latest state of a transaction id as recorded by the gateway."""

    tran_id: str
    status: str | None = None

    @property
    def is_success(self) -> bool:
        return self.status in SUCCESS_STATUSES


@dataclass(frozen=True)
class RefundResult:
    success: bool
    refund_ref_id: str | None = None
    status: str | None = None
    failure_reason: str | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    def init_session(self, request: SessionRequest) -> SessionResult:
        """Open a hosted payment session."""
        ...

    @abstractmethod
    def validate(self, val_id: str) -> ValidationResult:
        """Ask the gateway whether ``val_id`` is a genuine captured payment."""
        ...

    @abstractmethod
    def query_transaction(self, tran_id: str) -> TransactionStatus:
        """Look up the gateway's record of a merchant transaction id."""
        ...

    @abstractmethod
    def refund(self, bank_tran_id: str, amount: int, reason: str, reference: str) -> RefundResult:
        """Request a refund of a captured payment."""
        ...
