"""Inventory and commission postings for a paid order.

Called only from settlement, inside the same unit of work that moves the
order to PAID, so the postings commit or roll back together with it.
"""

import structlog
from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from checkout.catalogue.product import Product
from checkout.ledger.commission import CommissionEntry, commission_entries_for

logger = structlog.get_logger(__name__)


def decrement_stock(order) -> None:
    """Take every ordered quantity off its product's stock. Negative stock is allowed."""
    repo = current_domain.repository_for(Product)
    for item in order.items:
        try:
            product = repo.get(item.product_id)
        except ObjectNotFoundError:
            logger.warning(
                "Ordered product no longer exists",
                product_id=str(item.product_id),
                order_id=str(order.id),
            )
            continue
        product.decrement_stock(item.quantity)
        repo.add(product)
        if product.stock < 0:
            logger.warning(
                "Stock oversold on settlement",
                product_id=str(product.id),
                order_id=str(order.id),
                stock=product.stock,
            )


def book_commission(order) -> list[CommissionEntry]:
    repo = current_domain.repository_for(CommissionEntry)
    entries = commission_entries_for(order)
    for entry in entries:
        repo.add(entry)
    return entries


def post_settlement(order) -> None:
    decrement_stock(order)
    book_commission(order)
