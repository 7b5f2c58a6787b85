"""Subscription lifecycle — creation, payment activation, pause/resume/cancel,
and the weekly-locked address / skip / swap changes.

Every status change is a conditional UPDATE on the current status, so two
requests racing on the same subscription cannot both apply a transition.
"""

import logging
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from zynk.clock import Clock
from zynk.constants import (
    BILLING_CYCLE_DAYS,
    DELIVERY_SCHEDULED,
    DELIVERY_SKIPPED,
    MEALS_PER_WEEK,
    OPEN_SUBSCRIPTION_STATUSES,
    SUB_ACTIVE,
    SUB_CANCELLED,
    SUB_PAUSED,
    SUB_PENDING,
    SUBSCRIPTION_STATUSES,
)
from zynk.errors import (
    BadInputError,
    ConflictError,
    ForbiddenError,
    LockedError,
    NotFoundError,
    ServiceError,
)
from zynk.models.customer_profile import CustomerProfile
from zynk.models.delivery import Delivery
from zynk.models.meal_plan import MealPlan
from zynk.models.subscription import Subscription
from zynk.schemas.subscription import AddressUpdate
from zynk.services.cutoff_policy import is_weekly_locked, next_week_range, next_weekly_unlock
from zynk.services.notification_service import Notifier, emit
from zynk.services.schedule_service import generate_schedule
from zynk.utils import next_cycle_start, start_of_day

logger = logging.getLogger(__name__)

DUPLICATE_SUBSCRIPTION_MESSAGE = "Active or pending subscription already exists"


class SubscriptionService:
    def __init__(
        self,
        db: AsyncSession,
        clock: Clock,
        notifier: Notifier,
        schedule_days: int = BILLING_CYCLE_DAYS,
    ):
        self.db = db
        self.clock = clock
        self.notifier = notifier
        self.schedule_days = schedule_days

    # --- Lookups ---

    async def _get(self, subscription_id: int) -> Subscription:
        sub = await self.db.get(Subscription, subscription_id, populate_existing=True)
        if not sub:
            raise NotFoundError("Subscription not found")
        return sub

    async def _get_owned(self, subscription_id: int, actor_id: int) -> Subscription:
        sub = await self._get(subscription_id)
        if sub.user_id != actor_id:
            raise ForbiddenError("Access denied")
        return sub

    async def _open_subscription_for(self, user_id: int, exclude_id: int | None = None) -> Subscription | None:
        stmt = select(Subscription).where(
            Subscription.user_id == user_id,
            Subscription.status.in_(OPEN_SUBSCRIPTION_STATUSES),
        )
        if exclude_id is not None:
            stmt = stmt.where(Subscription.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        return result.scalar_one_or_none()

    async def get_subscription(self, subscription_id: int, actor_id: int) -> Subscription:
        """Owned subscription with its deliveries loaded."""
        result = await self.db.execute(
            select(Subscription)
            .options(selectinload(Subscription.deliveries))
            .where(Subscription.id == subscription_id)
            .execution_options(populate_existing=True)
        )
        sub = result.scalar_one_or_none()
        if not sub:
            raise NotFoundError("Subscription not found")
        if sub.user_id != actor_id:
            raise ForbiddenError("Access denied")
        return sub

    async def list_subscriptions(self, user_id: int) -> list[Subscription]:
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.user_id == user_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    # --- Write helpers ---

    @staticmethod
    def _lock_snapshot(now: datetime) -> dict[str, Any]:
        locked = is_weekly_locked(now)
        return {"is_skip_swap_locked": locked, "lock_applied_at": now if locked else None}

    async def _transition(
        self,
        sub: Subscription,
        from_statuses: tuple[str, ...],
        values: dict[str, Any],
        integrity_message: str = DUPLICATE_SUBSCRIPTION_MESSAGE,
    ) -> bool:
        """Compare-and-swap on status. Does not commit."""
        now = self.clock.now()
        try:
            result = await self.db.execute(
                update(Subscription)
                .where(Subscription.id == sub.id, Subscription.status.in_(from_statuses))
                .values(**values, updated_at=now, **self._lock_snapshot(now))
                .returning(Subscription.id)
                .execution_options(synchronize_session=False)
            )
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(integrity_message)
        return result.scalar_one_or_none() is not None

    async def _apply(
        self,
        sub: Subscription,
        from_statuses: tuple[str, ...],
        values: dict[str, Any],
        rejection: str,
        error: type[ServiceError] = ConflictError,
        integrity_message: str = DUPLICATE_SUBSCRIPTION_MESSAGE,
    ) -> Subscription:
        if sub.status not in from_statuses:
            raise error(f"{rejection} (current status: {sub.status})", status=sub.status)

        if not await self._transition(sub, from_statuses, values, integrity_message):
            await self.db.rollback()
            await self.db.refresh(sub)
            raise error(f"{rejection} (current status: {sub.status})", status=sub.status)

        await self.db.commit()
        await self.db.refresh(sub)
        return sub

    def _ensure_weekly_unlocked(self, now: datetime, message: str) -> None:
        if is_weekly_locked(now):
            raise LockedError(message, next_available_at=next_weekly_unlock(now))

    # --- Lifecycle ---

    async def create_pending_subscription(self, user_id: int, plan_id: int) -> Subscription:
        existing = await self._open_subscription_for(user_id)
        if existing:
            raise ConflictError(DUPLICATE_SUBSCRIPTION_MESSAGE, subscriptionId=existing.id)

        plan = await self.db.get(MealPlan, plan_id)
        profile_result = await self.db.execute(
            select(CustomerProfile).where(CustomerProfile.user_id == user_id)
        )
        profile = profile_result.scalar_one_or_none()
        if not plan or not plan.availability or not profile:
            raise BadInputError("Valid plan and customer profile are required")

        now = self.clock.now()
        cycle_start = next_cycle_start(now)
        sub = Subscription(
            user_id=user_id,
            chef_id=plan.chef_id,
            plan_id=plan.id,
            plan_name=plan.plan_name,
            meals_per_week=MEALS_PER_WEEK,
            price_in_cents=plan.monthly_price,
            price_snapshot=plan.monthly_price,
            delivery_address=profile.address,
            postal_code=profile.pincode,
            city=profile.city or "NA",
            status=SUB_PENDING,
            start_date=cycle_start,
            next_billing_date=cycle_start,
            created_at=now,
            updated_at=now,
            **self._lock_snapshot(now),
        )
        self.db.add(sub)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(DUPLICATE_SUBSCRIPTION_MESSAGE)
        await self.db.refresh(sub)

        logger.info(f"Created pending subscription {sub.id} for user {user_id} (plan {plan.id})")
        await emit(
            self.notifier,
            user_id,
            "subscription_created",
            "Subscription created",
            "Subscription created. Complete payment to activate.",
            {"subscriptionId": sub.id},
        )
        return sub

    async def attach_payment_order(
        self, subscription_id: int, order_ref: str, actor_id: int | None = None
    ) -> Subscription:
        if not order_ref:
            raise BadInputError("orderRef is required")
        sub = await self._get(subscription_id)
        if actor_id is not None and sub.user_id != actor_id:
            raise ForbiddenError("Access denied")

        await self._apply(
            sub,
            (SUB_PENDING,),
            {"payment_order_id": order_ref},
            "Payment orders can only be attached to pending subscriptions",
            integrity_message="Payment order already attached to another subscription",
        )
        logger.info(f"Attached payment order {order_ref} to subscription {sub.id}")
        return sub

    async def confirm_payment(self, order_ref: str, payment_ref: str) -> Subscription:
        """Activate the subscription behind `order_ref`. Replays are no-ops."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.payment_order_id == order_ref)
            .execution_options(populate_existing=True)
        )
        sub = result.scalar_one_or_none()
        if not sub:
            raise NotFoundError("Subscription not found for order")

        if sub.status == SUB_ACTIVE:
            logger.info(f"Payment for order {order_ref} already processed (subscription {sub.id})")
            return sub
        if sub.status != SUB_PENDING:
            raise ConflictError(f"Cannot activate a {sub.status} subscription", status=sub.status)
        if sub.chef_id is None:
            raise ConflictError("Subscription has no chef assigned")

        now = self.clock.now()
        activated = await self._transition(
            sub,
            (SUB_PENDING,),
            {
                "status": SUB_ACTIVE,
                "payment_id": payment_ref,
                "start_date": now,
                # billing rolls over the day after the last generated delivery
                "next_billing_date": start_of_day(
                    now.date() + timedelta(days=self.schedule_days + 1), now.tzinfo
                ),
            },
        )
        if not activated:
            await self.db.rollback()
            await self.db.refresh(sub)
            if sub.status == SUB_ACTIVE:
                logger.info(f"Concurrent confirmation already activated subscription {sub.id}")
                return sub
            raise ConflictError(f"Cannot activate a {sub.status} subscription", status=sub.status)

        self.db.add_all(generate_schedule(sub, now, days=self.schedule_days))
        await self.db.commit()
        await self.db.refresh(sub)

        logger.info(
            f"Activated subscription {sub.id} (payment {payment_ref}), "
            f"scheduled {self.schedule_days} deliveries"
        )
        await emit(
            self.notifier,
            sub.user_id,
            "subscription_activated",
            "Subscription activated",
            "Subscription activated successfully",
            {"subscriptionId": sub.id},
        )
        await emit(
            self.notifier,
            sub.chef_id,
            "new_subscriber",
            "New subscriber",
            "New subscriber added",
            {"subscriptionId": sub.id},
        )
        return sub

    async def pause(self, subscription_id: int, actor_id: int) -> Subscription:
        sub = await self._get_owned(subscription_id, actor_id)
        await self._apply(
            sub, (SUB_ACTIVE,), {"status": SUB_PAUSED}, "Only active subscriptions can be paused"
        )
        logger.info(f"Paused subscription {sub.id}")
        return sub

    async def resume(self, subscription_id: int, actor_id: int) -> Subscription:
        sub = await self._get_owned(subscription_id, actor_id)
        if sub.status != SUB_PAUSED:
            raise BadInputError("Only paused subscriptions can be resumed", status=sub.status)
        if await self._open_subscription_for(sub.user_id, exclude_id=sub.id):
            raise ConflictError(DUPLICATE_SUBSCRIPTION_MESSAGE)

        await self._apply(
            sub,
            (SUB_PAUSED,),
            {"status": SUB_ACTIVE, "next_billing_date": next_cycle_start(self.clock.now())},
            "Only paused subscriptions can be resumed",
            error=BadInputError,
        )
        logger.info(f"Resumed subscription {sub.id}, next billing {sub.next_billing_date}")
        return sub

    async def cancel(self, subscription_id: int, actor_id: int) -> Subscription:
        sub = await self._get_owned(subscription_id, actor_id)
        await self._apply(
            sub,
            (SUB_PENDING, SUB_ACTIVE, SUB_PAUSED),
            {"status": SUB_CANCELLED},
            "Subscription is already cancelled",
        )
        logger.info(f"Cancelled subscription {sub.id}")
        if sub.chef_id is not None:
            await emit(
                self.notifier,
                sub.chef_id,
                "subscription_cancelled",
                "Subscription cancelled",
                f"A customer cancelled their {sub.plan_name} subscription",
                {"subscriptionId": sub.id},
            )
        return sub

    # --- Weekly-locked changes ---

    async def update_address(
        self, subscription_id: int, actor_id: int, address: AddressUpdate
    ) -> Subscription:
        sub = await self._get_owned(subscription_id, actor_id)
        self._ensure_weekly_unlocked(
            self.clock.now(), "Address changes are locked (after 8 PM Friday)"
        )
        await self._apply(
            sub,
            SUBSCRIPTION_STATUSES,
            {
                "delivery_address": address.delivery_address,
                "postal_code": address.postal_code,
                "city": address.city,
            },
            "Address cannot be updated",
        )
        logger.info(f"Updated address of subscription {sub.id}")
        return sub

    async def _update_next_week(
        self, sub: Subscription, now: datetime, values: dict[str, Any]
    ) -> list[int]:
        start, end = next_week_range(now)
        result = await self.db.execute(
            update(Delivery)
            .where(
                Delivery.subscription_id.in_(
                    select(Subscription.id).where(
                        Subscription.id == sub.id, Subscription.status == SUB_ACTIVE
                    )
                ),
                Delivery.status == DELIVERY_SCHEDULED,
                Delivery.delivery_date >= start,
                Delivery.delivery_date <= end,
            )
            .values(**values, version=Delivery.version + 1, updated_at=now)
            .returning(Delivery.id)
            .execution_options(synchronize_session=False)
        )
        delivery_ids = list(result.scalars().all())
        await self.db.commit()
        if not delivery_ids:
            # Nothing matched: either nothing is scheduled, or the subscription
            # was paused or cancelled after it was read
            await self.db.refresh(sub)
            if sub.status != SUB_ACTIVE:
                raise ConflictError(
                    f"Subscription is no longer active (current status: {sub.status})", status=sub.status
                )
        return delivery_ids

    async def skip_next_week(self, subscription_id: int, actor_id: int) -> tuple[Subscription, list[int]]:
        """Skip every still-scheduled delivery in the coming Monday–Sunday week."""
        sub = await self._get_owned(subscription_id, actor_id)
        now = self.clock.now()
        self._ensure_weekly_unlocked(
            now, "Meal skipping is locked (after 8 PM Friday). Available after Sunday."
        )
        if sub.status != SUB_ACTIVE:
            raise ConflictError(f"Only active subscriptions can skip meals (current status: {sub.status})")

        skipped = await self._update_next_week(sub, now, {"status": DELIVERY_SKIPPED})
        logger.info(f"Skipped {len(skipped)} next-week deliveries of subscription {sub.id}")
        if skipped and sub.chef_id is not None:
            await emit(
                self.notifier,
                sub.chef_id,
                "delivery_skipped",
                "Meals skipped",
                f"Customer skipped {len(skipped)} meal(s) next week",
                {"subscriptionId": sub.id, "deliveryIds": skipped},
            )
        return sub, skipped

    async def swap_meal(
        self, subscription_id: int, actor_id: int, new_meal_id: int
    ) -> tuple[Subscription, list[int]]:
        """Point every still-scheduled delivery next week at `new_meal_id`."""
        if new_meal_id <= 0:
            raise BadInputError("newMealId is required")
        sub = await self._get_owned(subscription_id, actor_id)
        now = self.clock.now()
        self._ensure_weekly_unlocked(
            now, "Meal swapping is locked (after 8 PM Friday). Available after Sunday."
        )
        if sub.status != SUB_ACTIVE:
            raise ConflictError(f"Only active subscriptions can swap meals (current status: {sub.status})")

        swapped = await self._update_next_week(sub, now, {"meal_id": new_meal_id})
        logger.info(f"Swapped meal {new_meal_id} into {len(swapped)} deliveries of subscription {sub.id}")
        if swapped and sub.chef_id is not None:
            await emit(
                self.notifier,
                sub.chef_id,
                "meal_swapped",
                "Meal swapped",
                f"Customer swapped {len(swapped)} meal(s) next week",
                {"subscriptionId": sub.id, "mealId": new_meal_id, "deliveryIds": swapped},
            )
        return sub, swapped
