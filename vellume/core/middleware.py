from fastapi import Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from vellume.core.errors import ApiError
from vellume.core.security import verify_access_token
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> dict:
    """
    Dependency to get current authenticated user from the bearer token.
    Protects routes that require authentication.
    """
    logger.info("get_current_user: Entry")

    user_id = verify_access_token(credentials.credentials) if credentials else None
    if not user_id:
        logger.info("get_current_user: Failure - missing or invalid token")
        raise ApiError(
            "UNAUTHORIZED",
            "Invalid or missing authentication token",
            status.HTTP_401_UNAUTHORIZED,
            headers={"WWW-Authenticate": "Bearer"},
        )

    logger.info(f"get_current_user: Success - {user_id}")
    return {'uid': user_id}
