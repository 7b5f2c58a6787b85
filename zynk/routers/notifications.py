"""In-app notification routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from zynk.db.session import get_db
from zynk.models.user import User
from zynk.schemas.notification import NotificationOut
from zynk.services.auth_service import get_current_user
from zynk.services.notification_service import list_notifications, mark_read

router = APIRouter(prefix="/api/notifications", tags=["notifications"])


@router.get("")
async def get_notifications(
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notifications = await list_notifications(db, user.id)
    return {
        "success": True,
        "notifications": [NotificationOut.model_validate(n) for n in notifications],
    }


@router.post("/{notification_id}/read")
async def read_notification(
    notification_id: int,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    notification = await mark_read(db, user.id, notification_id)
    return {"success": True, "notification": NotificationOut.model_validate(notification)}
