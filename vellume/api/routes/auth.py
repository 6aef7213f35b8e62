import logging
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from vellume.api.dependencies import get_auth_service
from vellume.core.errors import ApiError
from vellume.services.auth_service import AuthService

router = APIRouter()
logger = logging.getLogger(__name__)


class SignupRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None
    name: Optional[str] = None


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


def _public_user(user) -> dict:
    return {"id": user.id, "email": user.email, "name": user.name}


@router.post("/signup", status_code=status.HTTP_201_CREATED)
async def signup(
    request: SignupRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    """Create an account and return a bearer token for it."""
    if not request.email or not request.password:
        raise ApiError("MISSING_FIELDS", "Email and password are required", 400)

    user, token = auth_service.signup(request.email, request.password, request.name)
    return {"user": _public_user(user), "token": token}


@router.post("/login")
async def login(
    request: LoginRequest,
    auth_service: AuthService = Depends(get_auth_service),
):
    if not request.email or not request.password:
        raise ApiError("MISSING_FIELDS", "Email and password are required", 400)

    user, token = auth_service.login(request.email, request.password)
    return {"user": _public_user(user), "token": token}
