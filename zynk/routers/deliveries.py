"""Customer delivery routes — list, skip and re-address individual deliveries."""

from datetime import date

from fastapi import APIRouter, Depends, Query

from zynk.constants import ROLE_CUSTOMER
from zynk.dependencies import get_delivery_service
from zynk.models.user import User
from zynk.schemas.delivery import DeliveryAddressUpdate, DeliveryOut
from zynk.services.auth_service import require_role
from zynk.services.delivery_service import DeliveryService

router = APIRouter(prefix="/api/deliveries", tags=["deliveries"])

customer_only = require_role(ROLE_CUSTOMER)


@router.get("")
async def list_deliveries(
    from_date: date | None = Query(default=None, alias="from"),
    user: User = Depends(customer_only),
    service: DeliveryService = Depends(get_delivery_service),
):
    deliveries = await service.list_customer_deliveries(user.id, from_date)
    return {
        "success": True,
        "count": len(deliveries),
        "deliveries": [DeliveryOut.model_validate(d) for d in deliveries],
    }


@router.patch("/{delivery_id}/skip")
async def skip_delivery(
    delivery_id: int,
    user: User = Depends(customer_only),
    service: DeliveryService = Depends(get_delivery_service),
):
    delivery = await service.skip(delivery_id, user.id)
    return {"success": True, "delivery": DeliveryOut.model_validate(delivery)}


@router.patch("/{delivery_id}/change-address")
async def change_delivery_address(
    delivery_id: int,
    body: DeliveryAddressUpdate,
    user: User = Depends(customer_only),
    service: DeliveryService = Depends(get_delivery_service),
):
    delivery = await service.change_address(delivery_id, user.id, body.address)
    return {"success": True, "delivery": DeliveryOut.model_validate(delivery)}
