import logging
from typing import Optional

from vellume.models.subscription import PAID_PLANS, Plan
from vellume.services.subscription_service import SubscriptionStore

logger = logging.getLogger(__name__)

CHECKOUT_COMPLETED = "checkout.session.completed"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"


def _period_end_ms(stripe_object: dict) -> Optional[int]:
    period_end = stripe_object.get("current_period_end")
    if period_end is None:
        items = (stripe_object.get("items") or {}).get("data") or []
        period_end = items[0].get("current_period_end") if items else None
    return int(period_end) * 1000 if period_end is not None else None


class WebhookReconciler:
    """
    Applies verified Stripe events to the subscription store.

    Rows are located by the identifiers inside the event (metadata user id
    for checkout, Stripe customer id otherwise), never by a user session.
    Events for customers we do not track, and event types we do not act on,
    are accepted and ignored.
    """

    def __init__(self, store: SubscriptionStore, gateway):
        self.store = store
        self.gateway = gateway
        self.logger = logging.getLogger(__name__)
        self._handlers = {
            CHECKOUT_COMPLETED: self._handle_checkout_completed,
            SUBSCRIPTION_UPDATED: self._handle_subscription_updated,
            SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
        }

    def apply(self, event: dict) -> bool:
        """Apply one event. Returns True if the event type was handled."""
        event_type = event.get("type")
        event_id = event.get("id")
        self.logger.info(f"apply: Entry - event: {event_id}, type: {event_type}")

        handler = self._handlers.get(event_type)
        if handler is None:
            self.logger.info(f"apply: Ignored - event: {event_id}, type: {event_type}")
            return False

        stripe_object = (event.get("data") or {}).get("object") or {}
        try:
            handler(stripe_object)
        except Exception as e:
            self.logger.error(f"apply: Failure - event: {event_id}, type: {event_type}, error: {e}")
            raise

        self.logger.info(f"apply: Success - event: {event_id}, type: {event_type}")
        return True

    def _handle_checkout_completed(self, session: dict):
        metadata = session.get("metadata") or {}
        user_id = metadata.get("user_id")
        plan = metadata.get("plan")
        if plan not in PAID_PLANS:
            if plan:
                self.logger.warning(f"_handle_checkout_completed: Unknown plan {plan!r}, using {Plan.PREMIUM_MONTHLY.value}")
            plan = Plan.PREMIUM_MONTHLY.value
        subscription_id = session.get("subscription")

        if not user_id or not subscription_id:
            self.logger.warning(
                f"_handle_checkout_completed: Skipped - session: {session.get('id')}, user: {user_id}, subscription: {subscription_id}"
            )
            return

        # Period end comes from Stripe itself, never from the event body
        current_period_end = self.gateway.get_subscription_period_end(subscription_id)
        self.store.activate(
            user_id=user_id,
            stripe_subscription_id=subscription_id,
            plan=plan,
            current_period_end=current_period_end,
            customer_id=session.get("customer"),
        )

    def _handle_subscription_updated(self, subscription: dict):
        if not subscription.get("status"):
            self.logger.warning(f"_handle_subscription_updated: Skipped - no status on {subscription.get('id')}")
            return
        self.store.update_status_by_customer(
            customer_id=subscription.get("customer"),
            status=subscription.get("status"),
            current_period_end=_period_end_ms(subscription),
        )

    def _handle_subscription_deleted(self, subscription: dict):
        self.store.cancel_by_customer(subscription.get("customer"))
