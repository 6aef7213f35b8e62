import logging

from fastapi import APIRouter, Depends

from vellume.api.dependencies import get_auth_service, get_entitlement_service
from vellume.core.middleware import get_current_user
from vellume.services.auth_service import AuthService
from vellume.services.entitlement_service import EntitlementService

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/me")
async def get_me(
    current_user: dict = Depends(get_current_user),
    auth_service: AuthService = Depends(get_auth_service),
    entitlements: EntitlementService = Depends(get_entitlement_service),
):
    """
    Get the current user with their subscription and weekly image usage.
    usage.limit is 999 for premium users.
    """
    user_id = current_user['uid']
    logger.info(f"get_me: Entry - user: {user_id}")

    user = auth_service.get_user(user_id)
    usage = entitlements.get_status(user_id)

    logger.info(f"get_me: Success - user: {user_id}, used: {usage.images_this_week}/{usage.limit}")
    return {
        "user": user.to_dict(),
        "subscription": usage.subscription.to_dict() if usage.subscription else None,
        "usage": {
            "images_this_week": usage.images_this_week,
            "limit": usage.limit,
        },
    }
