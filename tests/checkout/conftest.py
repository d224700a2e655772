import json

import pytest
from checkout.cart.cart import Cart
from checkout.catalogue.product import Product
from checkout.config import CheckoutSettings, override_settings
from checkout.customer.address import Address
from checkout.gateway import reset_gateway, set_gateway
from checkout.gateway.fake_adapter import FakeGateway
from checkout.order.placement import PlaceOrder
from checkout.payment.session import start_payment_session
from checkout.payment.settlement import settle_notification
from checkout.promo.promo_code import PromoCode
from protean import current_domain
from protean.integrations.pytest import DomainFixture

CUSTOMER_ID = "cust-001"
CUSTOMER_EMAIL = "rahim@example.com"


@pytest.fixture(scope="session")
def checkout_bed():
    from checkout.domain import checkout

    bed = DomainFixture(checkout)
    bed.setup()
    yield bed
    bed.teardown()


@pytest.fixture(autouse=True)
def _ctx(checkout_bed):
    with checkout_bed.domain_context():
        yield


@pytest.fixture(autouse=True)
def settings():
    with override_settings(CheckoutSettings()) as current:
        yield current


@pytest.fixture(autouse=True)
def gateway():
    fake = FakeGateway(store_password="qwerty")
    set_gateway(fake)
    yield fake
    reset_gateway()


# ---------------------------------------------------------------------------
# Collaborator records
# ---------------------------------------------------------------------------
@pytest.fixture()
def make_product():
    def _make(name="Mum Water 5L Jar", price=100_000, stock=10, vendor_id="vendor-001", **kwargs):
        product = Product(
            name=name,
            price=price,
            stock=stock,
            vendor_id=vendor_id,
            images=json.dumps(["https://cdn.paaniyo.test/jar.jpg"]),
            brand_name="Mum",
            category="Drinking Water",
            **kwargs,
        )
        current_domain.repository_for(Product).add(product)
        return product

    return _make


@pytest.fixture()
def make_address():
    def _make(customer_id=CUSTOMER_ID, city="Dhaka", **kwargs):
        address = Address(
            customer_id=customer_id,
            full_name=kwargs.pop("full_name", "Rahim Uddin"),
            phone=kwargs.pop("phone", "01711000000"),
            address1=kwargs.pop("address1", "House 12, Road 5, Dhanmondi"),
            city=city,
            post_code=kwargs.pop("post_code", "1205"),
            **kwargs,
        )
        current_domain.repository_for(Address).add(address)
        return address

    return _make


@pytest.fixture()
def fill_cart():
    def _fill(lines, customer_id=CUSTOMER_ID):
        cart = Cart(customer_id=customer_id)
        for product, quantity in lines:
            cart.add_item(product.id, quantity)
        current_domain.repository_for(Cart).add(cart)
        return cart

    return _fill


@pytest.fixture()
def make_promo():
    def _make(code="SAVE5", discount_type="percentage", discount_value=5.0, **kwargs):
        promo = PromoCode(code=code, discount_type=discount_type, discount_value=discount_value, **kwargs)
        current_domain.repository_for(PromoCode).add(promo)
        return promo

    return _make


# ---------------------------------------------------------------------------
# Checkout journey
# ---------------------------------------------------------------------------
@pytest.fixture()
def jar(make_product):
    """A ৳1000.00 product with ten units on the shelf."""
    return make_product()


@pytest.fixture()
def address(make_address):
    return make_address()


@pytest.fixture()
def cart(fill_cart, jar):
    return fill_cart([(jar, 1)])


@pytest.fixture()
def place_order(address):
    def _place(promo_code=None, customer_id=CUSTOMER_ID, address_id=None, notes=None):
        command = PlaceOrder(
            customer_id=customer_id,
            customer_email=CUSTOMER_EMAIL,
            address_id=address_id or address.id,
            promo_code=promo_code,
            notes=notes,
        )
        return current_domain.process(command, asynchronous=False)

    return _place


@pytest.fixture()
def order_id(cart, place_order):
    """A PENDING order for one ৳1000.00 jar delivered in Dhaka."""
    return place_order()


@pytest.fixture()
def session(order_id):
    """The order's first gateway session; the order is PAYMENT_INITIATED."""
    return start_payment_session(order_id)


@pytest.fixture()
def paid_order_id(session, gateway):
    """An order settled through a verified IPN."""
    outcome = settle_notification(gateway.complete(session.tran_id))
    assert outcome.paid
    return session.order_id
