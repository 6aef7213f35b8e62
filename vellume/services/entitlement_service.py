import enum
import logging
from dataclasses import dataclass
from typing import Optional

from vellume.models.subscription import Subscription
from vellume.models.usage_event import IMAGE_ACTIONS
from vellume.services.subscription_service import SubscriptionStore
from vellume.services.usage_ledger import UsageLedger

logger = logging.getLogger(__name__)

# Wire-level stand-in for "unlimited" in the usage.limit field
PREMIUM_LIMIT_SENTINEL = 999


class DenialReason(str, enum.Enum):
    LIMIT_REACHED = "LIMIT_REACHED"
    PREMIUM_REQUIRED = "PREMIUM_REQUIRED"


class Feature(str, enum.Enum):
    UPLOAD = "upload"
    CLOUD_GENERATION = "cloud_generation"


# Features only premium users may use, independent of remaining quota
PREMIUM_ONLY_FEATURES = frozenset({Feature.CLOUD_GENERATION})

DENIAL_MESSAGES = {
    DenialReason.LIMIT_REACHED: "You have reached your weekly limit of {limit} images. Upgrade to Premium for unlimited images.",
    DenialReason.PREMIUM_REQUIRED: "Cloud AI generation is a Premium feature. Upgrade to Premium to unlock it.",
}


@dataclass(frozen=True)
class EntitlementDecision:
    allowed: bool
    reason: Optional[DenialReason]
    used: int
    # None means unlimited
    remaining: Optional[int]
    is_premium: bool
    free_limit: int

    @property
    def limit(self) -> int:
        """Limit as reported to clients."""
        return PREMIUM_LIMIT_SENTINEL if self.is_premium else self.free_limit

    @property
    def message(self) -> Optional[str]:
        if self.reason is None:
            return None
        return DENIAL_MESSAGES[self.reason].format(limit=self.free_limit)


def evaluate(is_premium: bool, count_this_week: int, limit: int, premium_only: bool = False) -> EntitlementDecision:
    """
    Decide whether a billable action is allowed.

    Premium users always pass. Free users are refused a premium-only feature
    with PREMIUM_REQUIRED even when quota remains, otherwise they pass while
    count_this_week < limit and get LIMIT_REACHED after that.
    """
    if count_this_week < 0:
        raise ValueError(f"count_this_week must be >= 0, got {count_this_week}")

    if is_premium:
        return EntitlementDecision(True, None, count_this_week, None, True, limit)

    remaining = max(limit - count_this_week, 0)
    if premium_only:
        return EntitlementDecision(False, DenialReason.PREMIUM_REQUIRED, count_this_week, remaining, False, limit)
    if count_this_week >= limit:
        return EntitlementDecision(False, DenialReason.LIMIT_REACHED, count_this_week, 0, False, limit)
    return EntitlementDecision(True, None, count_this_week, remaining, False, limit)


@dataclass(frozen=True)
class UsageStatus:
    subscription: Optional[Subscription]
    images_this_week: int
    limit: int


class EntitlementService:
    """Reads the subscription and the usage ledger, then applies evaluate()."""

    def __init__(self, store: SubscriptionStore, ledger: UsageLedger, free_limit: int):
        self.store = store
        self.ledger = ledger
        self.free_limit = free_limit
        self.logger = logging.getLogger(__name__)

    def _read(self, user_id: str):
        subscription = self.store.get_by_user_id(user_id)
        is_premium = bool(subscription and subscription.is_premium)
        count = self.ledger.count_recent_usage(user_id, IMAGE_ACTIONS, self.ledger.window_start())
        return subscription, is_premium, count

    def check(self, user_id: str, feature: Feature) -> EntitlementDecision:
        """Evaluate the user's entitlement for `feature` right now. Never cached."""
        self.logger.info(f"check: Entry - user: {user_id}, feature: {feature.value}")

        _, is_premium, count = self._read(user_id)
        decision = evaluate(
            is_premium=is_premium,
            count_this_week=count,
            limit=self.free_limit,
            premium_only=feature in PREMIUM_ONLY_FEATURES,
        )

        if decision.allowed:
            self.logger.info(f"check: Allowed - user: {user_id}, feature: {feature.value}, used: {count}, premium: {is_premium}")
        else:
            self.logger.info(f"check: Denied - user: {user_id}, feature: {feature.value}, reason: {decision.reason.value}, used: {count}")
        return decision

    def get_status(self, user_id: str) -> UsageStatus:
        subscription, is_premium, count = self._read(user_id)
        limit = PREMIUM_LIMIT_SENTINEL if is_premium else self.free_limit
        return UsageStatus(subscription=subscription, images_this_week=count, limit=limit)
