"""FastAPI dependencies that assemble the services for a request."""

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from zynk.clock import Clock, SystemClock
from zynk.config import get_settings
from zynk.db.session import async_session_factory, get_db
from zynk.services.delivery_service import DeliveryService
from zynk.services.notification_service import DatabaseNotifier, Notifier
from zynk.services.subscription_service import SubscriptionService


def get_clock() -> Clock:
    return SystemClock(get_settings().timezone)


def get_notifier() -> Notifier:
    return DatabaseNotifier(async_session_factory)


def get_subscription_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> SubscriptionService:
    return SubscriptionService(db, clock, notifier, schedule_days=get_settings().schedule_days)


def get_delivery_service(
    db: AsyncSession = Depends(get_db),
    clock: Clock = Depends(get_clock),
    notifier: Notifier = Depends(get_notifier),
) -> DeliveryService:
    return DeliveryService(db, clock, notifier)
