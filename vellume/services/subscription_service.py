import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from vellume.core.clock import Clock
from vellume.core.errors import ApiError
from vellume.models.subscription import PAID_PLANS, Plan, Subscription, SubscriptionStatus
from vellume.models.user import User

logger = logging.getLogger(__name__)


class SubscriptionStore:
    """
    Keyed access to the subscriptions table, one row per user.

    Writes are idempotent keyed upserts; rows are never deleted.
    """

    def __init__(self, db: Session, clock: Clock):
        self.db = db
        self.clock = clock
        self.logger = logging.getLogger(__name__)

    def get_by_user_id(self, user_id: str) -> Optional[Subscription]:
        return self.db.query(Subscription).filter(Subscription.user_id == user_id).first()

    def get_by_customer_id(self, customer_id: str) -> Optional[Subscription]:
        if not customer_id:
            return None
        return self.db.query(Subscription).filter(Subscription.stripe_customer_id == customer_id).first()

    def _new_row(self, user_id: str) -> Subscription:
        now = self.clock.now_ms()
        subscription = Subscription(
            id=str(uuid.uuid4()),
            user_id=user_id,
            plan=Plan.FREE.value,
            status=SubscriptionStatus.INACTIVE.value,
            created_at=now,
            updated_at=now,
        )
        self.db.add(subscription)
        return subscription

    def attach_customer(self, user_id: str, customer_id: str) -> Subscription:
        """Record the Stripe customer for a user, creating an inactive free row if needed."""
        self.logger.info(f"attach_customer: Entry - user: {user_id}, customer: {customer_id}")

        try:
            subscription = self.get_by_user_id(user_id) or self._new_row(user_id)
            subscription.stripe_customer_id = customer_id
            subscription.updated_at = self.clock.now_ms()
            self.db.commit()
            self.db.refresh(subscription)

            self.logger.info(f"attach_customer: Success - user: {user_id}, subscription: {subscription.id}")
            return subscription
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"attach_customer: Failure - {e}")
            raise

    def activate(
        self,
        user_id: str,
        stripe_subscription_id: str,
        plan: str,
        current_period_end: Optional[int],
        customer_id: Optional[str] = None,
    ) -> Subscription:
        """Upsert keyed by user id: the same checkout applied twice yields the same row."""
        self.logger.info(f"activate: Entry - user: {user_id}, plan: {plan}")

        try:
            subscription = self.get_by_user_id(user_id) or self._new_row(user_id)
            subscription.stripe_subscription_id = stripe_subscription_id
            subscription.plan = plan
            subscription.status = SubscriptionStatus.ACTIVE.value
            subscription.current_period_end = current_period_end
            if customer_id and not subscription.stripe_customer_id:
                subscription.stripe_customer_id = customer_id
            subscription.updated_at = self.clock.now_ms()
            self.db.commit()
            self.db.refresh(subscription)

            self.logger.info(f"activate: Success - user: {user_id}, subscription: {subscription.id}")
            return subscription
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"activate: Failure - {e}")
            raise

    def update_status_by_customer(
        self,
        customer_id: str,
        status: str,
        current_period_end: Optional[int],
    ) -> Optional[Subscription]:
        """Mirror a provider status. Returns None, changing nothing, for an untracked customer."""
        self.logger.info(f"update_status_by_customer: Entry - customer: {customer_id}, status: {status}")

        try:
            subscription = self.get_by_customer_id(customer_id)
            if subscription is None:
                self.logger.info(f"update_status_by_customer: Untracked customer - {customer_id}")
                return None

            subscription.status = status
            subscription.current_period_end = current_period_end
            subscription.updated_at = self.clock.now_ms()
            self.db.commit()

            self.logger.info(f"update_status_by_customer: Success - user: {subscription.user_id}, status: {status}")
            return subscription
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"update_status_by_customer: Failure - {e}")
            raise

    def cancel_by_customer(self, customer_id: str) -> Optional[Subscription]:
        self.logger.info(f"cancel_by_customer: Entry - customer: {customer_id}")

        try:
            subscription = self.get_by_customer_id(customer_id)
            if subscription is None:
                self.logger.info(f"cancel_by_customer: Untracked customer - {customer_id}")
                return None

            subscription.status = SubscriptionStatus.CANCELED.value
            subscription.updated_at = self.clock.now_ms()
            self.db.commit()

            self.logger.info(f"cancel_by_customer: Success - user: {subscription.user_id}")
            return subscription
        except Exception as e:
            self.db.rollback()
            self.logger.error(f"cancel_by_customer: Failure - {e}")
            raise


class SubscriptionService:
    def __init__(self, db: Session, store: SubscriptionStore, gateway, price_ids: dict, success_url: str, cancel_url: str):
        self.db = db
        self.store = store
        self.gateway = gateway
        self.price_ids = price_ids
        self.success_url = success_url
        self.cancel_url = cancel_url
        self.logger = logging.getLogger(__name__)

    def create_checkout(self, user_id: str, plan: Optional[str]) -> str:
        """
        Start a Stripe checkout for a premium plan and return its URL.
        The Stripe customer is created on the first attempt and reused afterwards.
        """
        self.logger.info(f"create_checkout: Entry - user: {user_id}, plan: {plan}")

        if plan not in PAID_PLANS:
            raise ApiError("INVALID_PLAN", "Plan must be premium_monthly or premium_yearly", 400)

        user = self.db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ApiError("USER_NOT_FOUND", "User not found", 404)

        try:
            subscription = self.store.get_by_user_id(user_id)
            customer_id = subscription.stripe_customer_id if subscription else None

            if not customer_id:
                customer_id = self.gateway.create_customer(user.email, user_id)
                self.store.attach_customer(user_id, customer_id)

            checkout_url = self.gateway.create_checkout_session(
                customer_id=customer_id,
                price_id=self.price_ids[plan],
                user_id=user_id,
                plan=plan,
                success_url=self.success_url,
                cancel_url=self.cancel_url,
            )

            self.logger.info(f"create_checkout: Success - user: {user_id}, customer: {customer_id}")
            return checkout_url
        except Exception as e:
            self.logger.error(f"create_checkout: Failure - {e}")
            raise
