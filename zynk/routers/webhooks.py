"""Webhook routes — Stripe."""

import logging

import stripe
from fastapi import APIRouter, Depends, Header, Request

from zynk.config import get_settings
from zynk.constants import STRIPE_ASYNC_PAYMENT_SUCCEEDED, STRIPE_CHECKOUT_COMPLETED
from zynk.dependencies import get_subscription_service
from zynk.errors import BadInputError, UnauthorizedError
from zynk.services.payment_service import handle_checkout_completed
from zynk.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="stripe-signature"),
    service: SubscriptionService = Depends(get_subscription_service),
):
    settings = get_settings()
    payload = await request.body()
    if not stripe_signature:
        raise BadInputError("stripe-signature header is required")

    try:
        event = stripe.Webhook.construct_event(
            payload, stripe_signature, settings.stripe_webhook_secret
        )
    except (stripe.SignatureVerificationError, ValueError):
        raise UnauthorizedError("Invalid webhook signature")

    event_type = event["type"]
    data = event["data"]["object"]

    logger.info(f"Stripe webhook: {event_type}")

    if event_type in (STRIPE_CHECKOUT_COMPLETED, STRIPE_ASYNC_PAYMENT_SUCCEEDED):
        await handle_checkout_completed(data, service)

    return {"success": True, "message": "Webhook processed"}
