from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel

PaymentMethod = Literal["e-Money", "Cash on Delivery"]


class CamelModel(BaseModel):
    # wire format is camelCase, attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CustomerIn(CamelModel):
    name: str = Field(min_length=1)
    email_address: EmailStr
    phone_number: str = Field(min_length=4)


class ShippingIn(CamelModel):
    address: str = Field(min_length=1)
    city: str = Field(min_length=1)
    country: str = Field(min_length=1)
    zip_code: str = Field(min_length=1)


class PaymentIn(CamelModel):
    method: PaymentMethod
    # optional even for e-Money; the checkout form enforces them
    e_money_number: Optional[str] = None
    e_money_pin: Optional[str] = None


class CartItemIn(CamelModel):
    id: int = Field(strict=True)
    short_name: str
    cart_image: str = Field(min_length=1)
    price: float = Field(strict=True, ge=0)
    quantity: int = Field(strict=True, gt=0)


class TotalsIn(CamelModel):
    subtotal: float = Field(strict=True, ge=0)
    shipping: float = Field(strict=True, ge=0)
    tax: float = Field(strict=True, ge=0)
    grand_total: float = Field(strict=True, ge=0)


class OrderPayload(CamelModel):
    customer: CustomerIn
    shipping: ShippingIn
    payment: PaymentIn
    items: List[CartItemIn] = Field(min_length=1)
    totals: TotalsIn


class CreatedOrder(CamelModel):
    """What the store hands back from ``create_order``."""
    order_id: str
    order_number: str
    created_at: datetime


class CheckoutReceipt(CreatedOrder):
    pass


class StoredOrder(OrderPayload):
    order_id: str
    order_number: str
    status: str = "received"
    created_at: datetime

    @classmethod
    def from_payload(cls, payload: OrderPayload, created: CreatedOrder, status: str = "received"):
        return cls(
            **payload.model_dump(),
            order_id=created.order_id,
            order_number=created.order_number,
            created_at=created.created_at,
            status=status,
        )

    def to_document(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ErrorOut(BaseModel):
    message: str


class ConfirmationFailedOut(CamelModel):
    message: str
    order_id: str
    order_number: str
    created_at: datetime
