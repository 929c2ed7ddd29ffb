"""
Stripe billing endpoints.

POST /create-payment-intent  start a strategy-pack or monthly purchase
POST /create-subscription    start (or resume) the recurring monthly plan
POST /billing/webhook        Stripe event callback (signature-checked)
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncSession

from resolve.config import settings
from resolve.database import get_db
from resolve.dependencies.auth import get_current_user, get_optional_context
from resolve.errors import ValidationFailed
from resolve.models.database_models import PlanType, User
from resolve.models.schemas import (
    PaymentIntentRequest,
    PaymentIntentResponse,
    SubscriptionCreateResponse,
    WebhookAck,
)
from resolve.services import billing
from resolve.services.billing import StripeClient, get_stripe_client
from resolve.services.policy import RequestContext

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    context: Optional[RequestContext] = Depends(get_optional_context),
    stripe: StripeClient = Depends(get_stripe_client),
) -> PaymentIntentResponse:
    """
    Create a payment intent and hand its client secret to the checkout page.

    Anonymous checkout is allowed; a signed-in caller's id is attached to the
    intent so the webhook can credit the right account.  The amount is always
    the server-side price for the purchase type.
    """
    metadata = {"type": body.purchase_type}
    if context is not None:
        metadata["user_id"] = context.user_id

    intent = await stripe.create_payment_intent(
        amount=billing.default_amount(body.purchase_type),
        currency=settings.BILLING_CURRENCY,
        metadata=metadata,
    )
    logger.info("Created payment intent %s (%s)", intent["id"], body.purchase_type)
    return PaymentIntentResponse(
        client_secret=intent["client_secret"],
        payment_intent_id=intent["id"],
    )


@router.post("/create-subscription", response_model=SubscriptionCreateResponse)
async def create_subscription(
    user: User = Depends(get_current_user),
    stripe: StripeClient = Depends(get_stripe_client),
) -> SubscriptionCreateResponse:
    """
    Return the caller's monthly subscription, creating the Stripe customer
    and subscription on first use.
    """
    if user.stripe_subscription_id:
        subscription = await stripe.retrieve_subscription(user.stripe_subscription_id)
    else:
        if not user.email:
            raise ValidationFailed("No user email on file")
        metadata = {"user_id": user.id, "type": PlanType.MONTHLY_SUBSCRIPTION.value}
        if not user.stripe_customer_id:
            customer = await stripe.create_customer(email=user.email, name=user.display_name, metadata=metadata)
            user.stripe_customer_id = customer["id"]
        subscription = await stripe.create_subscription(user.stripe_customer_id, metadata=metadata)
        user.stripe_subscription_id = subscription["id"]
        logger.info("Created subscription %s for user %s", subscription["id"], user.id)

    return SubscriptionCreateResponse(
        subscription_id=subscription["id"],
        client_secret=subscription.get("client_secret"),
    )


@router.post("/billing/webhook", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db: AsyncSession = Depends(get_db),
) -> WebhookAck:
    payload = await request.body()
    event = billing.construct_webhook_event(payload, stripe_signature, settings.STRIPE_WEBHOOK_SECRET)
    handled = await billing.apply_webhook_event(db, event)
    return WebhookAck(received=True, handled=handled, event_type=event.get("type"))
