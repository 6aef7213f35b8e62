from sqlalchemy import Column, String, BigInteger, ForeignKey, Index
from vellume.core.database import Base
import enum


class UsageAction(str, enum.Enum):
    IMAGE_GENERATED = "image_generated"
    CLOUD_IMAGE_GENERATED = "cloud_image_generated"


# Every path that produces an image counts toward the same weekly limit
IMAGE_ACTIONS = frozenset(action.value for action in UsageAction)


class UsageEvent(Base):
    """Append-only billable action. Rows are never updated or deleted."""

    __tablename__ = "usage_tracking"
    __table_args__ = (
        Index("idx_usage_user_action", "user_id", "action", "created_at"),
    )

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), nullable=False)
    action = Column(String, nullable=False)
    created_at = Column(BigInteger, nullable=False)  # epoch ms
