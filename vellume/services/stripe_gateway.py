import json
import logging
from typing import Optional

import stripe

from vellume.core.config import settings

logger = logging.getLogger(__name__)

WEBHOOK_TOLERANCE_SECONDS = 300


class StripeGateway:
    """Narrow wrapper over the Stripe SDK calls this service makes."""

    def __init__(self, api_key: str, webhook_secret: str, api_version: Optional[str] = None):
        self.client = stripe.StripeClient(api_key, stripe_version=api_version)
        self.webhook_secret = webhook_secret
        self.logger = logging.getLogger(__name__)

    def create_customer(self, email: str, user_id: str) -> str:
        self.logger.info(f"create_customer: Entry - user: {user_id}")
        customer = self.client.customers.create(params={
            "email": email,
            "metadata": {"user_id": user_id},
        })
        self.logger.info(f"create_customer: Success - user: {user_id}, customer: {customer.id}")
        return customer.id

    def create_checkout_session(
        self,
        customer_id: str,
        price_id: str,
        user_id: str,
        plan: str,
        success_url: str,
        cancel_url: str,
    ) -> str:
        self.logger.info(f"create_checkout_session: Entry - user: {user_id}, plan: {plan}")
        session = self.client.checkout.sessions.create(params={
            "customer": customer_id,
            "mode": "subscription",
            "line_items": [{"price": price_id, "quantity": 1}],
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": {"user_id": user_id, "plan": plan},
        })
        self.logger.info(f"create_checkout_session: Success - user: {user_id}, session: {session.id}")
        return session.url

    def get_subscription_period_end(self, subscription_id: str) -> Optional[int]:
        """Authoritative current period end of a Stripe subscription, in epoch ms."""
        subscription = self.client.subscriptions.retrieve(subscription_id)
        period_end = _current_period_end(subscription)
        return period_end * 1000 if period_end is not None else None

    def construct_event(self, payload: bytes, sig_header: str) -> dict:
        """
        Verify the Stripe-Signature header and decode the event.
        Raises stripe.SignatureVerificationError or ValueError when the event must be rejected.
        """
        body = payload.decode("utf-8")
        stripe.WebhookSignature.verify_header(body, sig_header, self.webhook_secret, WEBHOOK_TOLERANCE_SECONDS)
        event = json.loads(body)
        if not isinstance(event, dict) or "type" not in event:
            raise ValueError("Webhook payload is not a Stripe event")
        return event


def _field(obj, key: str):
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


def _current_period_end(subscription) -> Optional[int]:
    period_end = _field(subscription, "current_period_end")
    if period_end is not None:
        return int(period_end)
    # Newer API versions report the period on the subscription items
    items = _field(_field(subscription, "items"), "data") or []
    if items and _field(items[0], "current_period_end") is not None:
        return int(_field(items[0], "current_period_end"))
    return None


def get_stripe_gateway() -> StripeGateway:
    """Dependency to get the Stripe gateway"""
    return StripeGateway(
        api_key=settings.stripe_secret_key,
        webhook_secret=settings.stripe_webhook_secret,
        api_version=settings.stripe_api_version,
    )
