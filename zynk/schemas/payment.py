"""Payment order schemas."""

from pydantic import Field

from .base import ApiModel


class CreateOrderRequest(ApiModel):
    subscription_id: int = Field(gt=0)


class PaymentOrderOut(ApiModel):
    order_id: str
    checkout_url: str | None = None
