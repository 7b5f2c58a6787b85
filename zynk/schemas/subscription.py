"""Subscription request / response schemas."""

from datetime import datetime

from pydantic import Field

from .base import ApiModel
from .delivery import DeliveryOut


class SubscriptionCreate(ApiModel):
    plan_id: int = Field(gt=0)


class AddressUpdate(ApiModel):
    delivery_address: str = Field(min_length=1, max_length=500)
    postal_code: str = Field(min_length=1, max_length=20)
    city: str = Field(min_length=1, max_length=100)


class SwapMealRequest(ApiModel):
    new_meal_id: int = Field(gt=0)


class SubscriptionOut(ApiModel):
    id: int
    user_id: int
    chef_id: int | None = None
    plan_id: int | None = None
    plan_name: str
    meals_per_week: int
    price_in_cents: int
    price_snapshot: int
    delivery_address: str
    postal_code: str
    city: str
    status: str
    start_date: datetime | None = None
    next_billing_date: datetime
    payment_order_id: str | None = None
    payment_id: str | None = None
    is_skip_swap_locked: bool
    lock_applied_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class SubscriptionDetail(SubscriptionOut):
    deliveries: list[DeliveryOut] = []


class LockStatusOut(ApiModel):
    locked: bool
    next_available_at: datetime | None = None
    next_lock_at: datetime
