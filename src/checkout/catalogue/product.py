"""Product read model consumed by checkout.

Products are owned by the catalogue service; checkout only reads live price,
stock and presentation fields, and decrements stock when a payment settles.
"""

import json
from datetime import UTC, datetime

from protean.exceptions import ValidationError
from protean.fields import Boolean, DateTime, Identifier, Integer, String, Text

from checkout.domain import checkout


@checkout.aggregate
class Product:
    name = String(required=True, max_length=255)
    images = Text()  # JSON array of image URLs
    brand_name = String(max_length=100)
    category = String(max_length=100)
    vendor_id = Identifier()
    price = Integer(required=True, min_value=0)  # paisa
    stock = Integer(default=0)
    free_shipping = Boolean(default=False)
    updated_at = DateTime()

    @property
    def first_image(self) -> str | None:
        urls = json.loads(self.images) if self.images else []
        return urls[0] if urls else None

    def has_stock_for(self, quantity: int) -> bool:
        return (self.stock or 0) >= quantity

    def decrement_stock(self, quantity: int) -> None:
        """Take sold units off the shelf.

        Stock may go negative: the availability check at order time is a point
        check and overselling between concurrent unpaid orders is accepted.
        """
        if quantity <= 0:
            raise ValidationError({"quantity": ["Quantity must be positive"]})
        self.stock = (self.stock or 0) - quantity
        self.updated_at = datetime.now(UTC)
