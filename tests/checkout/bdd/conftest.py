"""Shared BDD fixtures and step definitions for checkout scenarios."""

import pytest
from checkout.catalogue.product import Product
from checkout.order.order import Order
from checkout.shared.money import to_paisa
from protean import current_domain
from pytest_bdd import given, parsers, then


@pytest.fixture()
def error():
    """Container for the checkout rejection a When step captured."""
    return {"exc": None}


# ---------------------------------------------------------------------------
# Given steps
# ---------------------------------------------------------------------------
@given(
    parsers.cfparse('a product "{name}" priced at ৳{price:f} with {stock:d} in stock'),
    target_fixture="product",
)
def _(make_product, name, price, stock):
    return make_product(name=name, price=to_paisa(price), stock=stock)


@given(parsers.cfparse("the customer has {quantity:d} of it in the cart"))
def _(fill_cart, product, quantity):
    fill_cart([(product, quantity)])


@given(parsers.cfparse('the customer delivers to "{city}"'), target_fixture="address")
def _(make_address, city):
    return make_address(city=city)


# ---------------------------------------------------------------------------
# Then steps
# ---------------------------------------------------------------------------
@then(parsers.cfparse('the order status is "{status}"'))
def _(placed, status):
    assert current_domain.repository_for(Order).get(placed["order_id"]).status == status


@then(parsers.cfparse("the product stock is {stock:d}"))
def _(product, stock):
    assert current_domain.repository_for(Product).get(product.id).stock == stock


@then(parsers.cfparse('checkout is rejected with "{category}"'))
def _(error, category):
    assert error["exc"] is not None, "Expected a checkout rejection but none was raised"
    assert error["exc"].category == category
