"""Customer cart as seen by checkout.

One cart per customer. Checkout reads the lines to build an order and empties
the cart once that order is paid.
"""

from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import DateTime, HasMany, Identifier, Integer

from checkout.domain import checkout


@checkout.entity(part_of="Cart")
class CartItem:
    product_id = Identifier(required=True)
    quantity = Integer(required=True, min_value=1)


@checkout.aggregate
class Cart:
    customer_id = Identifier(required=True)
    items = HasMany(CartItem)
    updated_at = DateTime()

    @property
    def is_empty(self) -> bool:
        return not self.items

    def add_item(self, product_id, quantity: int = 1) -> None:
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})

        existing = next((i for i in self.items if str(i.product_id) == str(product_id)), None)
        if existing:
            existing.quantity += quantity
        else:
            self.add_items(CartItem(product_id=product_id, quantity=quantity))
        self.updated_at = datetime.now(UTC)

    def clear(self) -> None:
        for item in list(self.items):
            self.remove_items(item)
        self.updated_at = datetime.now(UTC)
