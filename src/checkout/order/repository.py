"""Repository for the Order aggregate."""

from checkout.domain import checkout
from checkout.order.order import Order


@checkout.repository(part_of=Order)
class OrderRepository:
    def find_by_tran_id(self, tran_id: str) -> Order | None:
        """The order whose current gateway transaction is ``tran_id``.

        Superseded transaction ids (from abandoned or failed attempts) do not
        match: a notification for them cannot act on the order.
        """
        if not tran_id:
            return None
        orders = self._dao.query.filter(tran_id=tran_id).all().items
        return self.get(orders[0].id) if orders else None

    def find_for_customer(self, customer_id) -> list[Order]:
        return self._dao.query.filter(customer_id=str(customer_id)).all().items
