from sqlalchemy import Column, String, BigInteger, ForeignKey
from sqlalchemy.orm import relationship
from vellume.core.database import Base
import enum


class SubscriptionStatus(str, enum.Enum):
    # Mirrors Stripe's vocabulary; any other Stripe status is stored verbatim
    INACTIVE = "inactive"
    ACTIVE = "active"
    CANCELED = "canceled"
    PAST_DUE = "past_due"
    UNPAID = "unpaid"
    INCOMPLETE = "incomplete"
    TRIALING = "trialing"


class Plan(str, enum.Enum):
    FREE = "free"
    PREMIUM_MONTHLY = "premium_monthly"
    PREMIUM_YEARLY = "premium_yearly"


PAID_PLANS = (Plan.PREMIUM_MONTHLY.value, Plan.PREMIUM_YEARLY.value)


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String, primary_key=True, index=True)
    user_id = Column(String, ForeignKey("user.id", ondelete="CASCADE"), unique=True, nullable=False, index=True)
    stripe_customer_id = Column(String, unique=True, nullable=True, index=True)
    stripe_subscription_id = Column(String, unique=True, nullable=True)
    plan = Column(String, nullable=False, default=Plan.FREE.value)
    status = Column(String, nullable=False, default=SubscriptionStatus.INACTIVE.value)
    current_period_end = Column(BigInteger, nullable=True)  # epoch ms
    created_at = Column(BigInteger, nullable=False)
    updated_at = Column(BigInteger, nullable=False)

    # Relationships
    user = relationship("User", back_populates="subscription")

    @property
    def is_premium(self) -> bool:
        return self.status == SubscriptionStatus.ACTIVE.value

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'user_id': self.user_id,
            'stripe_customer_id': self.stripe_customer_id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'plan': self.plan,
            'status': self.status,
            'current_period_end': self.current_period_end,
            'created_at': self.created_at,
            'updated_at': self.updated_at,
        }
