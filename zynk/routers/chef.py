"""Chef routes — the day's deliveries and delivery confirmation."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from zynk.constants import ROLE_CHEF
from zynk.dependencies import get_delivery_service
from zynk.models.user import User
from zynk.schemas.delivery import DeliveryOut
from zynk.services.auth_service import require_role
from zynk.services.delivery_service import DeliveryService

router = APIRouter(prefix="/api/chef", tags=["chef"])

chef_only = require_role(ROLE_CHEF)


@router.get("/deliveries")
async def chef_deliveries(
    on_date: date | None = Query(default=None, alias="date"),
    user: User = Depends(chef_only),
    service: DeliveryService = Depends(get_delivery_service),
):
    deliveries = await service.list_chef_deliveries(user.id, on_date)
    return {"success": True, "deliveries": [DeliveryOut.model_validate(d) for d in deliveries]}


@router.patch("/deliveries/{delivery_id}/delivered")
async def mark_delivered(
    delivery_id: int,
    user: User = Depends(chef_only),
    service: DeliveryService = Depends(get_delivery_service),
):
    delivery = await service.mark_delivered(delivery_id, user.id)
    return {"success": True, "delivery": DeliveryOut.model_validate(delivery)}
