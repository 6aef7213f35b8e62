import logging
import uuid
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from vellume.core.clock import Clock
from vellume.core.errors import ApiError
from vellume.core.security import create_access_token, hash_password, verify_password
from vellume.models.user import User

logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def _token_for(self, user: User) -> str:
        # Tokens are checked against wall-clock time, so they are issued against it too
        return create_access_token(user.id)

    def signup(self, email: str, password: str, name: Optional[str] = None) -> tuple[User, str]:
        self.logger.info(f"signup: Entry - {email}")

        if self.db.query(User).filter(User.email == email).first():
            raise ApiError("USER_EXISTS", "User with this email already exists", 409)

        try:
            now = self.clock.now_ms()
            user = User(
                id=str(uuid.uuid4()),
                email=email,
                name=name or None,
                password_hash=hash_password(password),
                created_at=now,
                updated_at=now,
            )
            self.db.add(user)
            self.db.commit()
            self.db.refresh(user)
        except IntegrityError:
            # Lost a race with a concurrent signup for the same email
            self.db.rollback()
            raise ApiError("USER_EXISTS", "User with this email already exists", 409)
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"signup: Failure - {e}")
            raise

        self.logger.info(f"signup: Success - {user.id}")
        return user, self._token_for(user)

    def login(self, email: str, password: str) -> tuple[User, str]:
        self.logger.info(f"login: Entry - {email}")

        user = self.db.query(User).filter(User.email == email).first()
        if not user or not verify_password(password, user.password_hash):
            self.logger.info(f"login: Rejected - {email}")
            raise ApiError("INVALID_CREDENTIALS", "Invalid email or password", 401)

        self.logger.info(f"login: Success - {user.id}")
        return user, self._token_for(user)

    def get_user(self, user_id: str) -> User:
        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ApiError("USER_NOT_FOUND", "User not found", 404)
        return user
