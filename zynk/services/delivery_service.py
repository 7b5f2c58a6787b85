"""Delivery modification gate — skip, re-address and mark delivered.

Customers may change a delivery until its per-delivery cutoff (20:00 the day
before); chefs may mark it delivered at any time while it is still scheduled.
Writes are version-checked so concurrent changes to one delivery serialize.
"""

import logging
from datetime import date
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from zynk.clock import Clock
from zynk.constants import DELIVERY_DELIVERED, DELIVERY_SCHEDULED, DELIVERY_SKIPPED
from zynk.errors import BadInputError, ConflictError, ForbiddenError, LockedError, NotFoundError
from zynk.models.delivery import Delivery
from zynk.services.cutoff_policy import delivery_cutoff, is_locked_for_delivery
from zynk.services.notification_service import Notifier, emit

logger = logging.getLogger(__name__)


class DeliveryService:
    def __init__(self, db: AsyncSession, clock: Clock, notifier: Notifier):
        self.db = db
        self.clock = clock
        self.notifier = notifier

    async def _get(self, delivery_id: int) -> Delivery:
        delivery = await self.db.get(Delivery, delivery_id, populate_existing=True)
        if not delivery:
            raise NotFoundError("Delivery not found")
        return delivery

    def _ensure_before_cutoff(self, delivery: Delivery) -> None:
        now = self.clock.now()
        if is_locked_for_delivery(now, delivery.delivery_date):
            cutoff = delivery_cutoff(delivery.delivery_date, now.tzinfo)
            raise LockedError(
                "Cutoff time passed (8 PM the day before delivery)",
                next_available_at=None,
                cutoffAt=cutoff.isoformat(),
            )

    async def _write(self, delivery: Delivery, values: dict[str, Any]) -> bool:
        """Apply `values` if nobody changed the row since it was read.

        On success the delivery is refreshed; on a lost race it is refreshed to
        the winner's state and False is returned.
        """
        result = await self.db.execute(
            update(Delivery)
            .where(
                Delivery.id == delivery.id,
                Delivery.version == delivery.version,
                Delivery.status == DELIVERY_SCHEDULED,
            )
            .values(**values, version=Delivery.version + 1, updated_at=self.clock.now())
            .returning(Delivery.id)
            .execution_options(synchronize_session=False)
        )
        if result.scalar_one_or_none() is None:
            await self.db.rollback()
            await self.db.refresh(delivery)
            return False
        await self.db.commit()
        await self.db.refresh(delivery)
        return True

    async def skip(self, delivery_id: int, actor_id: int) -> Delivery:
        delivery = await self._get(delivery_id)
        if delivery.customer_id != actor_id:
            raise ForbiddenError("Access denied")
        if delivery.status == DELIVERY_SKIPPED:
            return delivery
        self._ensure_before_cutoff(delivery)
        if delivery.status != DELIVERY_SCHEDULED:
            raise ConflictError(f"Cannot skip a {delivery.status} delivery", status=delivery.status)

        if not await self._write(delivery, {"status": DELIVERY_SKIPPED}):
            if delivery.status == DELIVERY_SKIPPED:
                return delivery
            raise ConflictError("Delivery was modified concurrently, please retry", status=delivery.status)

        logger.info(f"Delivery {delivery.id} for {delivery.delivery_date} skipped by user {actor_id}")
        await emit(
            self.notifier,
            delivery.chef_id,
            "delivery_skipped",
            "Meal skipped",
            f"Meal skipped for {delivery.delivery_date.isoformat()}",
            {"deliveryId": delivery.id},
        )
        return delivery

    async def change_address(self, delivery_id: int, actor_id: int, new_address: str) -> Delivery:
        address = (new_address or "").strip()
        if not address:
            raise BadInputError("address is required")

        delivery = await self._get(delivery_id)
        if delivery.customer_id != actor_id:
            raise ForbiddenError("Access denied")
        self._ensure_before_cutoff(delivery)
        if delivery.status != DELIVERY_SCHEDULED:
            raise ConflictError(
                f"Cannot change the address of a {delivery.status} delivery", status=delivery.status
            )

        if not await self._write(delivery, {"address_snapshot": address}):
            raise ConflictError("Delivery was modified concurrently, please retry", status=delivery.status)

        logger.info(f"Delivery {delivery.id} re-addressed by user {actor_id}")
        await emit(
            self.notifier,
            delivery.chef_id,
            "delivery_address_changed",
            "Delivery address updated",
            "Delivery address has been updated by customer",
            {"deliveryId": delivery.id},
        )
        return delivery

    async def mark_delivered(self, delivery_id: int, actor_id: int) -> Delivery:
        delivery = await self._get(delivery_id)
        if delivery.chef_id != actor_id:
            raise ForbiddenError("Access denied")
        if delivery.status == DELIVERY_DELIVERED:
            return delivery
        if delivery.status != DELIVERY_SCHEDULED:
            raise ConflictError(f"Cannot deliver a {delivery.status} delivery", status=delivery.status)

        if not await self._write(
            delivery, {"status": DELIVERY_DELIVERED, "delivered_at": self.clock.now()}
        ):
            if delivery.status == DELIVERY_DELIVERED:
                return delivery
            raise ConflictError(f"Cannot deliver a {delivery.status} delivery", status=delivery.status)

        logger.info(f"Delivery {delivery.id} marked delivered by chef {actor_id}")
        await emit(
            self.notifier,
            delivery.customer_id,
            "meal_delivered",
            "Meal delivered",
            "Meal delivered successfully",
            {"deliveryId": delivery.id},
        )
        return delivery

    # --- Listings ---

    async def list_customer_deliveries(
        self, customer_id: int, from_date: date | None = None
    ) -> list[Delivery]:
        stmt = select(Delivery).where(Delivery.customer_id == customer_id)
        if from_date is not None:
            stmt = stmt.where(Delivery.delivery_date >= from_date)
        result = await self.db.execute(
            stmt.order_by(Delivery.delivery_date, Delivery.id).execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def list_chef_deliveries(self, chef_id: int, on_date: date | None = None) -> list[Delivery]:
        day = on_date or self.clock.now().date()
        result = await self.db.execute(
            select(Delivery)
            .where(Delivery.chef_id == chef_id, Delivery.delivery_date == day)
            .order_by(Delivery.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())
