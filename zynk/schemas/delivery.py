"""Delivery request / response schemas."""

from datetime import date, datetime

from pydantic import Field

from .base import ApiModel


class DeliveryAddressUpdate(ApiModel):
    address: str = Field(min_length=1, max_length=500)


class DeliveryOut(ApiModel):
    id: int
    subscription_id: int
    chef_id: int
    customer_id: int
    delivery_date: date
    address_snapshot: str
    meal_type: str
    meal_id: int | None = None
    status: str
    delivered_at: datetime | None = None
    updated_at: datetime
