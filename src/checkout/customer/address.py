"""Saved customer addresses, maintained by the account service."""

from protean.fields import Identifier, String

from checkout.domain import checkout


@checkout.aggregate
class Address:
    customer_id = Identifier(required=True)
    full_name = String(required=True, max_length=150)
    phone = String(required=True, max_length=20)
    address1 = String(required=True, max_length=255)
    address2 = String(max_length=255)
    city = String(required=True, max_length=100)
    post_code = String(max_length=20)

    def belongs_to(self, customer_id) -> bool:
        return str(self.customer_id) == str(customer_id)
