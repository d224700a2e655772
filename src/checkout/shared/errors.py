"""Checkout rejections surfaced verbatim to the customer.

Each rejection carries a human category (``"Stock Error"``), a machine kind
(``"insufficient_stock"``) and a message. They subclass Protean's
``ValidationError`` so that raising one inside a command handler rolls back the
unit of work exactly like any other domain validation failure.
"""

from protean.exceptions import ValidationError


class CheckoutError(ValidationError):
    category = "Validation Error"
    kind = "invalid_request"

    def __init__(self, message: str, kind: str | None = None, **extra):
        self.message = message
        if kind is not None:
            self.kind = kind
        self.extra = extra
        super().__init__({self.kind: [message]})

    def to_dict(self) -> dict:
        return {"error": self.category, "kind": self.kind, "message": self.message, **self.extra}


class EmptyCartError(CheckoutError):
    category = "Empty Cart"
    kind = "empty_cart"

    def __init__(self, message: str = "Your cart is empty"):
        super().__init__(message)


class AddressError(CheckoutError):
    category = "Address Error"
    kind = "invalid_address"

    def __init__(self, message: str = "Invalid shipping address"):
        super().__init__(message)


class InsufficientStockError(CheckoutError):
    category = "Stock Error"
    kind = "insufficient_stock"

    def __init__(self, product_id: str, product_name: str):
        super().__init__(
            f"{product_name} is out of stock or has insufficient quantity",
            productId=product_id,
        )
        self.product_id = product_id
        self.product_name = product_name


class PromoRejected(CheckoutError):
    """A promo code that cannot be applied. ``kind`` names the reason."""

    category = "Promo Error"
    kind = "promo_rejected"


class PaymentGatewayError(CheckoutError):
    category = "Payment Error"
    kind = "gateway_error"
