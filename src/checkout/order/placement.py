"""Order placement: command and handler.

Turns the customer's cart into a PENDING order inside one unit of work: the
cart, address, live stock and promo are all read, and the order and promo
usage written, before anything commits. Any rejection rolls everything back.

Stock is checked but not reserved. Two customers can both pass the check for
the last unit; stock is only taken when a payment settles.
"""

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError
from protean.fields import Identifier, String, Text
from protean.utils.globals import current_domain

from checkout.cart.cart import Cart
from checkout.catalogue.product import Product
from checkout.config import get_settings
from checkout.customer.address import Address
from checkout.domain import checkout
from checkout.order.order import Order
from checkout.pricing.engine import CartLine, price_cart
from checkout.promo.promo_code import PromoCode
from checkout.shared.errors import AddressError, EmptyCartError, InsufficientStockError


logger = structlog.get_logger(__name__)


@checkout.command(part_of="Order")
class PlaceOrder:
    """Create an order from the customer's current cart."""

    customer_id = Identifier(required=True)
    customer_email = String(max_length=255)
    address_id = Identifier(required=True)
    promo_code = String(max_length=50)
    notes = Text()


def _load_address(address_id, customer_id) -> Address:
    try:
        address = current_domain.repository_for(Address).get(address_id)
    except ObjectNotFoundError:
        raise AddressError() from None
    if not address.belongs_to(customer_id):
        raise AddressError()
    return address


def _load_products(cart: Cart) -> list[tuple[Product, int]]:
    """Live product for every cart line, failing on the first short line."""
    repo = current_domain.repository_for(Product)
    resolved = []
    for item in cart.items:
        try:
            product = repo.get(item.product_id)
        except ObjectNotFoundError:
            raise InsufficientStockError(str(item.product_id), "This product") from None
        if not product.has_stock_for(item.quantity):
            raise InsufficientStockError(str(product.id), product.name)
        resolved.append((product, item.quantity))
    return resolved


@checkout.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        cart = current_domain.repository_for(Cart).find_for_customer(command.customer_id)
        if cart is None or cart.is_empty:
            raise EmptyCartError()

        address = _load_address(command.address_id, command.customer_id)
        resolved = _load_products(cart)

        promo_repo = current_domain.repository_for(PromoCode)
        promo = promo_repo.find_by_code(command.promo_code) if command.promo_code else None

        breakdown = price_cart(
            [
                CartLine(
                    product_id=str(product.id),
                    unit_price=product.price,
                    quantity=quantity,
                    free_shipping=bool(product.free_shipping),
                )
                for product, quantity in resolved
            ],
            city=address.city,
            promo_code=command.promo_code,
            promo=promo,
            commission_rate=get_settings().pricing.commission_rate,
        )

        order = Order.place(
            customer_id=command.customer_id,
            customer_email=command.customer_email,
            shipping_address={
                "full_name": address.full_name,
                "phone": address.phone,
                "address1": address.address1,
                "address2": address.address2,
                "city": address.city,
                "post_code": address.post_code,
            },
            breakdown=breakdown,
            items_data=[
                {
                    "product_id": str(product.id),
                    "product_name": product.name,
                    "product_image": product.first_image,
                    "brand_name": product.brand_name,
                    "vendor_id": product.vendor_id,
                    "unit_price": product.price,
                    "quantity": quantity,
                }
                for product, quantity in resolved
            ],
            promo_id=str(promo.id) if breakdown.promo_code else None,
            customer_note=command.notes,
        )

        if breakdown.promo_code:
            promo.record_usage()
            promo_repo.add(promo)

        current_domain.repository_for(Order).add(order)

        logger.info(
            "Order placed",
            order_id=str(order.id),
            order_no=order.order_no,
            customer_id=str(command.customer_id),
            total=breakdown.total,
            zone=breakdown.zone.name,
            promo_code=breakdown.promo_code,
        )
        return str(order.id)
