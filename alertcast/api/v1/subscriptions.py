from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from alertcast.api.deps import get_current_operator, get_push_gateway
from alertcast.core.exceptions import InvalidRecipient
from alertcast.db.session import get_db
from alertcast.schemas.notification import SubscriptionBindResponse, SubscriptionRegisterRequest
from alertcast.services.notification_center import Operator
from alertcast.services.push_gateway import PushGateway
from alertcast.services.subscriptions import SubscriptionService

router = APIRouter()


@router.post("/subscriptions", response_model=SubscriptionBindResponse)
async def register_subscription(
    request: SubscriptionRegisterRequest,
    db: AsyncSession = Depends(get_db),
    gateway: PushGateway = Depends(get_push_gateway),
    current_user: Operator = Depends(get_current_operator),
):
    """
    Register the caller's device subscription and bind it to their identity.

    Binding failures are reported in the response, not raised.
    """
    service = SubscriptionService(db, gateway)
    try:
        subscription, outcome = await service.register(
            current_user.id, request.handle, request.platform
        )
    except InvalidRecipient as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=exc.message)

    return {
        "subscription_id": subscription.id,
        "identity_bound": outcome.identity_bound,
        "tags_bound": outcome.tags_bound,
    }
