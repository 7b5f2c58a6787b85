"""Payment order routes — open a checkout for a pending subscription."""

from fastapi import APIRouter, Depends

from zynk.constants import ROLE_CUSTOMER, SUB_PENDING
from zynk.dependencies import get_subscription_service
from zynk.errors import ConflictError
from zynk.models.user import User
from zynk.schemas.payment import CreateOrderRequest, PaymentOrderOut
from zynk.services.auth_service import require_role
from zynk.services.payment_service import create_payment_order
from zynk.services.subscription_service import SubscriptionService

router = APIRouter(prefix="/api/payments", tags=["payments"])


@router.post("/create-order", status_code=201)
async def create_order(
    body: CreateOrderRequest,
    user: User = Depends(require_role(ROLE_CUSTOMER)),
    service: SubscriptionService = Depends(get_subscription_service),
):
    sub = await service.get_subscription(body.subscription_id, user.id)
    if sub.status != SUB_PENDING:
        raise ConflictError(f"Subscription is already {sub.status}", status=sub.status)

    order = await create_payment_order(sub)
    await service.attach_payment_order(sub.id, order.order_id, actor_id=user.id)
    return {
        "success": True,
        **PaymentOrderOut(order_id=order.order_id, checkout_url=order.checkout_url).model_dump(
            by_alias=True
        ),
    }
