import logging

import stripe
from fastapi import APIRouter, Depends, Request

from vellume.api.dependencies import get_webhook_reconciler
from vellume.core.errors import ApiError
from vellume.services.stripe_gateway import StripeGateway, get_stripe_gateway
from vellume.services.webhook_service import WebhookReconciler

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def handle_stripe_webhook(
    request: Request,
    gateway: StripeGateway = Depends(get_stripe_gateway),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    """Handle Stripe subscription lifecycle events

    No bearer token: the Stripe-Signature header authenticates the sender.
    Nothing is written unless the signature verifies. Event types we do not
    act on are acknowledged so Stripe stops redelivering them.
    """
    signature = request.headers.get("stripe-signature")
    if not signature:
        raise ApiError("MISSING_SIGNATURE", "Missing stripe-signature header", 400)

    payload = await request.body()
    try:
        event = gateway.construct_event(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        # ValueError also covers undecodable and non-JSON payloads
        logger.warning(f"handle_stripe_webhook: Invalid signature - {e}")
        raise ApiError("INVALID_SIGNATURE", "Invalid webhook signature", 400)

    logger.info(f"handle_stripe_webhook: Entry - event: {event.get('id')}, type: {event.get('type')}")

    # Failures propagate as 500 so Stripe redelivers the event
    reconciler.apply(event)

    return {"received": True}
