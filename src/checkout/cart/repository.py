"""Repository for the Cart aggregate."""

from checkout.cart.cart import Cart
from checkout.domain import checkout


@checkout.repository(part_of=Cart)
class CartRepository:
    def find_for_customer(self, customer_id) -> Cart | None:
        """The customer's cart, or None if they never had one."""
        carts = self._dao.query.filter(customer_id=str(customer_id)).all().items
        return self.get(carts[0].id) if carts else None
