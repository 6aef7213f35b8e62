"""
Tests for checkout creation, the subscription store and the Stripe gateway
"""

import hashlib
import hmac
import json
import time
from unittest.mock import MagicMock

import pytest
import stripe

from tests.conftest import NOW_MS
from vellume.core.errors import ApiError
from vellume.models.subscription import Subscription
from vellume.services.stripe_gateway import StripeGateway, _current_period_end
from vellume.services.subscription_service import SubscriptionService, SubscriptionStore

WEBHOOK_SECRET = "whsec_test_secret"


def sign_payload(payload: str, secret: str = WEBHOOK_SECRET, timestamp: int = None) -> str:
    """Build a Stripe-Signature header the way Stripe does"""
    timestamp = timestamp or int(time.time())
    signature = hmac.new(secret.encode("utf-8"), f"{timestamp}.{payload}".encode("utf-8"), hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={signature}"


@pytest.fixture
def gateway():
    gateway = MagicMock(spec=StripeGateway)
    gateway.create_customer.return_value = "cus_new"
    gateway.create_checkout_session.return_value = "https://checkout.stripe.com/c/pay/cs_test_1"
    return gateway


@pytest.fixture
def store(db_session, clock):
    return SubscriptionStore(db_session, clock)


@pytest.fixture
def service(db_session, store, gateway):
    return SubscriptionService(
        db=db_session,
        store=store,
        gateway=gateway,
        price_ids={"premium_monthly": "price_monthly_test", "premium_yearly": "price_yearly_test"},
        success_url="vellumeapp://subscription/success",
        cancel_url="vellumeapp://subscription/cancel",
    )


class TestCreateCheckout:
    """Test starting a Stripe checkout"""

    @pytest.mark.parametrize("plan", [None, "", "free", "premium_weekly"])
    def test_invalid_plan_is_rejected(self, service, gateway, make_user, plan):
        user = make_user()

        with pytest.raises(ApiError) as exc_info:
            service.create_checkout(user.id, plan)

        assert exc_info.value.code == "INVALID_PLAN"
        assert exc_info.value.status_code == 400
        gateway.create_checkout_session.assert_not_called()

    def test_unknown_user_is_rejected(self, service):
        with pytest.raises(ApiError) as exc_info:
            service.create_checkout("missing-user", "premium_monthly")
        assert exc_info.value.code == "USER_NOT_FOUND"

    def test_first_checkout_creates_and_stores_customer(self, service, gateway, store, make_user):
        user = make_user(email="reader@example.com")

        url = service.create_checkout(user.id, "premium_yearly")

        assert url == "https://checkout.stripe.com/c/pay/cs_test_1"
        gateway.create_customer.assert_called_once_with("reader@example.com", user.id)
        gateway.create_checkout_session.assert_called_once_with(
            customer_id="cus_new",
            price_id="price_yearly_test",
            user_id=user.id,
            plan="premium_yearly",
            success_url="vellumeapp://subscription/success",
            cancel_url="vellumeapp://subscription/cancel",
        )

        row = store.get_by_user_id(user.id)
        assert row.stripe_customer_id == "cus_new"
        assert row.status == "inactive"
        assert row.plan == "free"

    def test_existing_customer_is_reused(self, service, gateway, make_user, make_subscription):
        user = make_user()
        make_subscription(user.id, status="inactive", plan="free", customer_id="cus_existing")

        service.create_checkout(user.id, "premium_monthly")

        gateway.create_customer.assert_not_called()
        assert gateway.create_checkout_session.call_args.kwargs["customer_id"] == "cus_existing"

    def test_customer_created_once_across_attempts(self, service, gateway, make_user):
        user = make_user()

        service.create_checkout(user.id, "premium_monthly")
        service.create_checkout(user.id, "premium_monthly")

        assert gateway.create_customer.call_count == 1


class TestSubscriptionStore:
    def test_lookup_by_empty_customer_id_finds_nothing(self, store, make_user, make_subscription):
        user = make_user()
        make_subscription(user.id, customer_id=None)
        assert store.get_by_customer_id(None) is None
        assert store.get_by_customer_id("") is None

    def test_activate_keeps_existing_customer(self, store, make_user, make_subscription):
        user = make_user()
        make_subscription(user.id, status="inactive", customer_id="cus_first")

        row = store.activate(user.id, "sub_1", "premium_monthly", NOW_MS, customer_id="cus_other")

        assert row.stripe_customer_id == "cus_first"
        assert row.status == "active"

    def test_update_for_untracked_customer_returns_none(self, store, db_session):
        assert store.update_status_by_customer("cus_ghost", "active", None) is None
        assert store.cancel_by_customer("cus_ghost") is None
        assert db_session.query(Subscription).count() == 0


class TestStripeGateway:
    """Test signature verification and period-end extraction"""

    @pytest.fixture
    def real_gateway(self):
        return StripeGateway(api_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)

    def test_valid_signature_returns_event(self, real_gateway):
        payload = json.dumps({"id": "evt_1", "type": "customer.subscription.deleted", "data": {"object": {}}})

        event = real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload))

        assert event["id"] == "evt_1"
        assert event["type"] == "customer.subscription.deleted"

    def test_wrong_secret_is_rejected(self, real_gateway):
        payload = json.dumps({"id": "evt_1", "type": "customer.subscription.deleted"})

        with pytest.raises(stripe.SignatureVerificationError):
            real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload, secret="whsec_wrong"))

    def test_stale_timestamp_is_rejected(self, real_gateway):
        payload = json.dumps({"id": "evt_1", "type": "customer.subscription.deleted"})
        stale = int(time.time()) - 3600

        with pytest.raises(stripe.SignatureVerificationError):
            real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload, timestamp=stale))

    def test_signed_payload_without_type_is_rejected(self, real_gateway):
        payload = json.dumps({"hello": "world"})

        with pytest.raises(ValueError):
            real_gateway.construct_event(payload.encode("utf-8"), sign_payload(payload))

    def test_period_end_from_subscription(self):
        assert _current_period_end({"current_period_end": 1_765_000_000}) == 1_765_000_000

    def test_period_end_from_first_item(self):
        subscription = {"items": {"data": [{"current_period_end": 1_765_000_123}]}}
        assert _current_period_end(subscription) == 1_765_000_123

    def test_period_end_missing(self):
        assert _current_period_end({"items": {"data": []}}) is None

    def test_get_subscription_period_end_converts_to_ms(self, real_gateway):
        real_gateway.client = MagicMock()
        real_gateway.client.subscriptions.retrieve.return_value = {"current_period_end": 1_765_000_000}

        assert real_gateway.get_subscription_period_end("sub_123") == 1_765_000_000_000
        real_gateway.client.subscriptions.retrieve.assert_called_once_with("sub_123")
