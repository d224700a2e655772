"""Checkout bounded context: order pricing, payment sessions and settlement.

Builds priced order snapshots from a customer's cart, hands them off to the
hosted payment gateway (SSLCommerz), and settles the gateway's asynchronous
payment notifications exactly once: stock decrement, commission booking and
customer notifications all happen in the settling unit of work.
"""

import structlog
from protean.domain import Domain

checkout = Domain(name="checkout")

logger = structlog.get_logger(__name__)
