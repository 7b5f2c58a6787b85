"""Stripe payment orders — checkout creation and webhook confirmation."""

import asyncio
import logging
import time
from dataclasses import dataclass

import stripe

from zynk.config import get_settings
from zynk.constants import STRIPE_PAID
from zynk.errors import NotFoundError
from zynk.models.subscription import Subscription
from zynk.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentOrder:
    order_id: str
    checkout_url: str | None = None


def init_stripe() -> None:
    """Set the Stripe API key from settings. Call once at startup."""
    settings = get_settings()
    stripe.api_key = settings.stripe_secret_key


async def create_payment_order(subscription: Subscription) -> PaymentOrder:
    """Open a one-off Checkout Session for the subscription's price snapshot.

    Without a Stripe key (local dev) a synthetic order id is issued instead.
    """
    settings = get_settings()
    if not settings.stripe_secret_key:
        order_id = f"order_{int(time.time() * 1000)}_{subscription.id}"
        logger.info(f"Stripe not configured, issued local order {order_id}")
        return PaymentOrder(order_id=order_id)

    session = await asyncio.to_thread(
        stripe.checkout.Session.create,
        mode="payment",
        line_items=[
            {
                "price_data": {
                    "currency": settings.stripe_currency,
                    "unit_amount": subscription.price_snapshot,
                    "product_data": {"name": subscription.plan_name},
                },
                "quantity": 1,
            }
        ],
        client_reference_id=str(subscription.id),
        success_url=f"{settings.app_url}/dashboard?payment=success",
        cancel_url=f"{settings.app_url}/dashboard?payment=cancelled",
        metadata={"subscription_id": str(subscription.id)},
    )
    return PaymentOrder(order_id=session.id, checkout_url=session.url)


async def handle_checkout_completed(session_data: dict, service: SubscriptionService) -> Subscription | None:
    """Handle a completed (or later paid) Checkout Session. Idempotent.

    Delayed payment methods complete the session while still unpaid; those
    activate on the async_payment_succeeded event instead. A session whose
    order was superseded by a newer create-order call is matched back to its
    subscription through the session metadata.
    """
    order_id = session_data["id"]
    payment_status = session_data.get("payment_status")
    if payment_status != STRIPE_PAID:
        logger.info(f"Checkout {order_id} completed with payment {payment_status}, not activating")
        return None

    payment_id = session_data.get("payment_intent") or order_id
    try:
        return await service.confirm_payment(order_id, payment_id)
    except NotFoundError:
        subscription_id = (session_data.get("metadata") or {}).get("subscription_id")
        if not subscription_id:
            raise

    logger.warning(f"Checkout {order_id} paid for a superseded order, re-attaching to subscription {subscription_id}")
    await service.attach_payment_order(int(subscription_id), order_id)
    return await service.confirm_payment(order_id, payment_id)
