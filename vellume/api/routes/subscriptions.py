import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from vellume.api.dependencies import get_subscription_service
from vellume.core.middleware import get_current_user
from vellume.services.subscription_service import SubscriptionService

router = APIRouter()
logger = logging.getLogger(__name__)


class CheckoutRequest(BaseModel):
    plan: Optional[str] = None  # 'premium_monthly' or 'premium_yearly'


@router.post("/checkout")
async def create_checkout(
    request: CheckoutRequest,
    current_user: dict = Depends(get_current_user),
    subscription_service: SubscriptionService = Depends(get_subscription_service),
):
    """
    Start a Stripe checkout session for a premium plan.
    The subscription becomes active once Stripe reports the completed checkout.
    """
    user_id = current_user['uid']
    logger.info(f"create_checkout: Entry - user: {user_id}, plan: {request.plan}")

    checkout_url = subscription_service.create_checkout(user_id, request.plan)

    logger.info(f"create_checkout: Success - user: {user_id}")
    return {"checkout_url": checkout_url}
