"""Subscription routes — customer lifecycle actions and the public lock status."""

from fastapi import APIRouter, Depends

from zynk.clock import Clock
from zynk.constants import ROLE_CUSTOMER
from zynk.dependencies import get_clock, get_subscription_service
from zynk.models.user import User
from zynk.schemas.subscription import (
    AddressUpdate,
    LockStatusOut,
    SubscriptionCreate,
    SubscriptionDetail,
    SubscriptionOut,
    SwapMealRequest,
)
from zynk.services.auth_service import require_role
from zynk.services.cutoff_policy import lock_status
from zynk.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/subscriptions", tags=["subscriptions"])

customer_only = require_role(ROLE_CUSTOMER)


def _respond(message: str, subscription, **extra) -> dict:
    return {
        "success": True,
        "message": message,
        "subscription": SubscriptionOut.model_validate(subscription),
        **extra,
    }


@router.get("/status/lock")
async def check_lock_status(clock: Clock = Depends(get_clock)):
    status = lock_status(clock.now())
    return {
        "success": True,
        "message": (
            "Skip/swap operations are currently locked"
            if status.locked
            else "Skip/swap operations are allowed"
        ),
        **LockStatusOut.model_validate(status).model_dump(by_alias=True, mode="json"),
    }


@router.post("", status_code=201)
async def create_subscription(
    body: SubscriptionCreate,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.create_pending_subscription(user.id, body.plan_id)
    return _respond("Subscription created. Complete payment to activate.", sub)


@router.get("")
async def list_subscriptions(
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    subs = await service.list_subscriptions(user.id)
    return {
        "success": True,
        "count": len(subs),
        "subscriptions": [SubscriptionOut.model_validate(s) for s in subs],
    }


@router.get("/{subscription_id}")
async def get_subscription(
    subscription_id: int,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.get_subscription(subscription_id, user.id)
    return {"success": True, "subscription": SubscriptionDetail.model_validate(sub)}


@router.put("/{subscription_id}/address")
async def update_address(
    subscription_id: int,
    body: AddressUpdate,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.update_address(subscription_id, user.id, body)
    return _respond("Address updated successfully", sub)


@router.post("/{subscription_id}/skip")
async def skip_meal(
    subscription_id: int,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub, skipped = await service.skip_next_week(subscription_id, user.id)
    return _respond("Meal skipped successfully", sub, skippedDeliveries=skipped)


@router.post("/{subscription_id}/swap")
async def swap_meal(
    subscription_id: int,
    body: SwapMealRequest,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub, swapped = await service.swap_meal(subscription_id, user.id, body.new_meal_id)
    return _respond("Meal swapped successfully", sub, swappedDeliveries=swapped)


@router.post("/{subscription_id}/pause")
async def pause_subscription(
    subscription_id: int,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.pause(subscription_id, user.id)
    return _respond("Subscription paused successfully", sub)


@router.post("/{subscription_id}/resume")
async def resume_subscription(
    subscription_id: int,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.resume(subscription_id, user.id)
    return _respond("Subscription resumed successfully", sub)


@router.post("/{subscription_id}/cancel")
async def cancel_subscription(
    subscription_id: int,
    user: User = Depends(customer_only),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.cancel(subscription_id, user.id)
    return _respond("Subscription cancelled successfully", sub)
