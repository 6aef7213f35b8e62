from jose import JWTError, jwt
from passlib.context import CryptContext
from vellume.core.config import settings
from typing import Optional
import time
import logging

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    """Hash a user password before storing it"""
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """Check a plaintext password against its stored hash"""
    try:
        return pwd_context.verify(password, password_hash)
    except (ValueError, TypeError) as e:
        logger.warning(f"verify_password: Unrecognized hash - {e}")
        return False


def create_access_token(user_id: str, now_seconds: Optional[int] = None) -> str:
    """Issue a signed bearer token for the user, valid for access_token_expire_days"""
    logger.info(f"create_access_token: Entry - {user_id}")

    issued_at = int(now_seconds if now_seconds is not None else time.time())
    payload = {
        "sub": user_id,
        "iat": issued_at,
        "exp": issued_at + settings.access_token_expire_days * 24 * 60 * 60,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    logger.info(f"create_access_token: Success - {user_id}")
    return token


def verify_access_token(token: str) -> Optional[str]:
    """
    Verify signature and expiry of a bearer token.
    Returns the user id it was issued for, or None when the token is not acceptable.
    """
    try:
        payload = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.info(f"verify_access_token: Rejected - {e}")
        return None

    return payload.get("sub") or payload.get("user_id")
