from vellume.models.user import User
from vellume.models.entry import Entry
from vellume.models.subscription import Subscription, SubscriptionStatus, Plan
from vellume.models.usage_event import UsageEvent, UsageAction, IMAGE_ACTIONS

__all__ = ["User", "Entry", "Subscription", "SubscriptionStatus", "Plan", "UsageEvent", "UsageAction", "IMAGE_ACTIONS"]
