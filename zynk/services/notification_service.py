"""Notification sinks — in-app records plus optional email via Resend.

Notifications are a side channel: `emit` never lets a sink failure reach the
operation that triggered it.
"""

import asyncio
import logging
from html import escape
from typing import Any, Protocol

import resend
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from zynk.config import get_settings
from zynk.constants import NOTIFICATIONS_PER_PAGE
from zynk.errors import NotFoundError
from zynk.models.notification import Notification
from zynk.models.user import User

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(
        self,
        user_id: int,
        type: str,
        title: str,
        message: str,
        metadata: dict[str, Any] | None = None,
    ) -> None: ...


class LoggingNotifier:
    """Writes notifications to the log only."""

    async def notify(self, user_id, type, title, message, metadata=None) -> None:
        logger.info(f"Notification [{type}] for user {user_id}: {title}: {message}")


class DatabaseNotifier:
    """Persists a Notification row in its own session, then emails if configured."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def notify(self, user_id, type, title, message, metadata=None) -> None:
        async with self._session_factory() as db:
            db.add(
                Notification(
                    user_id=user_id, type=type, title=title, message=message, extra=metadata
                )
            )
            user = await db.get(User, user_id)
            await db.commit()

        if user and user.email:
            await send_notification_email(user.email, title, message)


async def send_notification_email(to_email: str, subject: str, message: str) -> bool:
    """Send a notification email via Resend.

    Returns True on success, False when skipped or failed.
    """
    settings = get_settings()
    if not settings.resend_api_key:
        return False

    try:
        await asyncio.to_thread(
            resend.Emails.send,
            {
                "from": settings.email_from,
                "to": [to_email],
                "subject": subject,
                "html": f"<p>{escape(message)}</p>",
            },
        )
        logger.info("Notification email sent to %s", to_email)
        return True
    except Exception as e:
        logger.error("Failed to send email to %s: %s", to_email, e)
        return False


async def emit(
    notifier: Notifier,
    user_id: int,
    type: str,
    title: str,
    message: str,
    metadata: dict[str, Any] | None = None,
) -> None:
    """Fire-and-forget: deliver to the sink, log and continue on failure."""
    try:
        await notifier.notify(user_id, type, title, message, metadata)
    except Exception as e:
        logger.error(f"Failed to emit '{type}' notification for user {user_id}: {e}")


async def list_notifications(
    db: AsyncSession, user_id: int, limit: int = NOTIFICATIONS_PER_PAGE
) -> list[Notification]:
    result = await db.execute(
        select(Notification)
        .where(Notification.user_id == user_id)
        .order_by(Notification.created_at.desc(), Notification.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def mark_read(db: AsyncSession, user_id: int, notification_id: int) -> Notification:
    result = await db.execute(
        select(Notification).where(
            Notification.id == notification_id, Notification.user_id == user_id
        )
    )
    notification = result.scalar_one_or_none()
    if not notification:
        raise NotFoundError("Notification not found")
    notification.is_read = True
    await db.commit()
    await db.refresh(notification)
    return notification
