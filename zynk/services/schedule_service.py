"""Delivery schedule generation for a freshly activated subscription."""

from datetime import datetime, timedelta

from zynk.constants import BILLING_CYCLE_DAYS, DEFAULT_MEAL_TYPE, DELIVERY_SCHEDULED
from zynk.models.delivery import Delivery
from zynk.models.subscription import Subscription
from zynk.utils import format_address


def generate_schedule(
    subscription: Subscription,
    now: datetime,
    days: int = BILLING_CYCLE_DAYS,
    meal_type: str = DEFAULT_MEAL_TYPE,
) -> list[Delivery]:
    """Build one unsaved Delivery per day for `days` days, starting tomorrow.

    The caller adds them to the session. Nothing is scheduled past the horizon.
    """
    if subscription.chef_id is None:
        raise ValueError(f"Subscription {subscription.id} has no chef assigned")

    address = format_address(
        subscription.delivery_address, subscription.postal_code, subscription.city
    )
    today = now.date()
    return [
        Delivery(
            subscription_id=subscription.id,
            chef_id=subscription.chef_id,
            customer_id=subscription.user_id,
            delivery_date=today + timedelta(days=offset),
            address_snapshot=address,
            meal_type=meal_type,
            status=DELIVERY_SCHEDULED,
            version=1,
        )
        for offset in range(1, days + 1)
    ]
