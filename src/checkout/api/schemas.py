"""Pydantic request/response schemas for the Checkout API.

These are external contracts (anti-corruption layer), separate from the
internal Protean commands. Field names are camelCase on the wire and money is
rendered as two-decimal taka strings.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from checkout.shared.money import format_taka


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Requests
# ---------------------------------------------------------------------------
class CheckoutRequest(CamelModel):
    address_id: str = Field(min_length=1)
    promo_code: str | None = Field(default=None, max_length=50)
    notes: str | None = Field(default=None, max_length=500)

    model_config = ConfigDict(
        json_schema_extra={
            "examples": [
                {
                    "addressId": "3f1c6a52-2b0e-4c8e-9d6f-1a2b3c4d5e6f",
                    "promoCode": "SAVE10",
                    "notes": "Please call before delivery",
                }
            ]
        },
    )


class RefundRequest(CamelModel):
    amount: float | None = Field(default=None, gt=0)  # taka
    reason: str = Field(min_length=1, max_length=500)


class StatusNoteRequest(CamelModel):
    note: str | None = Field(default=None, max_length=500)


class CancelRequest(CamelModel):
    reason: str | None = Field(default=None, max_length=500)


# ---------------------------------------------------------------------------
# Responses
# ---------------------------------------------------------------------------
class OrderItemResponse(CamelModel):
    product_id: str
    product_name: str
    product_image: str | None = None
    brand_name: str | None = None
    unit_price: str
    quantity: int
    line_total: str


class OrderResponse(CamelModel):
    id: str
    order_no: str
    status: str
    shipping_zone: str | None = None
    promo_code: str | None = None
    subtotal: str
    shipping: str
    discount: str
    vat: str
    total: str
    estimated_delivery: datetime | None = None
    created_at: datetime | None = None
    items: list[OrderItemResponse]

    @classmethod
    def from_order(cls, order) -> "OrderResponse":
        pricing = order.pricing
        return cls(
            id=str(order.id),
            order_no=order.order_no,
            status=order.status,
            shipping_zone=order.shipping_zone,
            promo_code=order.promo_code,
            subtotal=format_taka(pricing.subtotal),
            shipping=format_taka(pricing.shipping),
            discount=format_taka(pricing.discount),
            vat=format_taka(pricing.vat),
            total=format_taka(pricing.total),
            estimated_delivery=order.estimated_delivery,
            created_at=order.created_at,
            items=[
                OrderItemResponse(
                    product_id=str(item.product_id),
                    product_name=item.product_name,
                    product_image=item.product_image,
                    brand_name=item.brand_name,
                    unit_price=format_taka(item.unit_price),
                    quantity=item.quantity,
                    line_total=format_taka(item.line_total),
                )
                for item in order.items
            ],
        )


class PaymentInitResponse(CamelModel):
    success: bool = True
    gateway_url: str
    order_id: str
    order_no: str
    summary: dict


class PaymentStatusResponse(CamelModel):
    order_id: str
    order_no: str
    status: str
    paid: bool


class RefundResponse(CamelModel):
    status: str
    message: str


class StatusResponse(BaseModel):
    status: str = "ok"
