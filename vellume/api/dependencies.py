"""
FastAPI dependency providers.

Every collaborator of the entitlement core is built here per request and
passed in explicitly, so tests can swap any of them via
app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from vellume.core.clock import Clock, get_clock
from vellume.core.config import settings
from vellume.core.database import get_db
from vellume.models.subscription import Plan
from vellume.services.auth_service import AuthService
from vellume.services.entitlement_service import EntitlementService
from vellume.services.entry_service import EntryService
from vellume.services.generation_service import GenerationOrchestrator, get_image_backend
from vellume.services.stripe_gateway import StripeGateway, get_stripe_gateway
from vellume.services.subscription_service import SubscriptionService, SubscriptionStore
from vellume.services.usage_ledger import UsageLedger
from vellume.services.webhook_service import WebhookReconciler


def get_subscription_store(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> SubscriptionStore:
    return SubscriptionStore(db, clock)


def get_usage_ledger(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> UsageLedger:
    return UsageLedger(db, clock)


def get_entitlement_service(
    store: SubscriptionStore = Depends(get_subscription_store),
    ledger: UsageLedger = Depends(get_usage_ledger),
) -> EntitlementService:
    return EntitlementService(store, ledger, free_limit=settings.free_weekly_image_limit)


def get_entry_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> EntryService:
    return EntryService(db, clock)


def get_auth_service(
    db: Session = Depends(get_db),
    clock: Clock = Depends(get_clock),
) -> AuthService:
    return AuthService(db, clock)


def get_subscription_service(
    db: Session = Depends(get_db),
    store: SubscriptionStore = Depends(get_subscription_store),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> SubscriptionService:
    return SubscriptionService(
        db=db,
        store=store,
        gateway=gateway,
        price_ids={
            Plan.PREMIUM_MONTHLY.value: settings.stripe_price_id_monthly,
            Plan.PREMIUM_YEARLY.value: settings.stripe_price_id_yearly,
        },
        success_url=settings.checkout_success_url,
        cancel_url=settings.checkout_cancel_url,
    )


def get_webhook_reconciler(
    store: SubscriptionStore = Depends(get_subscription_store),
    gateway: StripeGateway = Depends(get_stripe_gateway),
) -> WebhookReconciler:
    return WebhookReconciler(store, gateway)


def get_generation_orchestrator(
    backend=Depends(get_image_backend),
) -> GenerationOrchestrator:
    return GenerationOrchestrator(backend, max_retries=settings.ai_max_retries)
