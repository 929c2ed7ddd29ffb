"""
Stripe billing through the official ``stripe`` SDK.

The SDK is synchronous, so every API call runs in the threadpool.  Webhook
events are verified with ``stripe.Webhook.construct_event`` and the paid
amount is checked against the server-side price before anything is granted.
"""
from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Optional

import stripe
from fastapi import status
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool

from resolve.config import settings
from resolve.errors import UpstreamFailure, ValidationFailed
from resolve.models.database_models import PlanType
from resolve.services import accounts

logger = logging.getLogger(__name__)


def construct_webhook_event(
    payload: bytes,
    header: Optional[str],
    secret: str,
    tolerance: Optional[int] = None,
) -> Dict[str, Any]:
    """
    Verify the ``Stripe-Signature`` header and return the event.

    Raises ``ValidationFailed`` for a missing, malformed, stale or
    mismatching signature and for a body that is not JSON.
    """
    if not secret:
        raise UpstreamFailure("Webhook secret not configured", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
    if not header:
        raise ValidationFailed("Missing Stripe-Signature header")

    tolerance = settings.WEBHOOK_TOLERANCE_SECONDS if tolerance is None else tolerance
    try:
        return stripe.Webhook.construct_event(payload, header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as exc:
        logger.warning("Rejected webhook: %s", exc)
        raise ValidationFailed("Invalid webhook signature") from exc
    except ValueError as exc:
        raise ValidationFailed("Invalid webhook payload") from exc


def _client_secret(subscription: Dict[str, Any]) -> Optional[str]:
    invoice = subscription.get("latest_invoice")
    if not isinstance(invoice, dict):
        return None
    secret = invoice.get("confirmation_secret") or {}
    return secret.get("client_secret")


class StripeClient:
    """Payment intents, customers and the monthly subscription."""

    def __init__(self, secret_key: Optional[str] = None, monthly_price_id: Optional[str] = None) -> None:
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.monthly_price_id = (
            monthly_price_id if monthly_price_id is not None else settings.STRIPE_MONTHLY_PRICE_ID
        )

    async def _call(self, operation: str, method: Callable[..., Any], *args: Any, **params: Any) -> Any:
        if not self.secret_key:
            raise UpstreamFailure("Payments are not configured", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        try:
            return await run_in_threadpool(method, *args, api_key=self.secret_key, **params)
        except stripe.StripeError as exc:
            logger.error("%s: Stripe error: %s", operation, exc)
            raise UpstreamFailure(f"Error {operation}: {exc.user_message or 'Stripe request failed'}") from exc

    async def create_payment_intent(self, amount: int, currency: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        return await self._call(
            "creating payment intent",
            stripe.PaymentIntent.create,
            amount=int(amount),
            currency=currency,
            metadata=metadata,
        )

    async def create_customer(self, email: str, name: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        return await self._call(
            "creating customer",
            stripe.Customer.create,
            email=email,
            name=name,
            metadata=metadata,
        )

    async def create_subscription(self, customer_id: str, metadata: Dict[str, str]) -> Dict[str, Any]:
        """Start the monthly plan; the first invoice is confirmed client-side."""
        if not self.monthly_price_id:
            raise UpstreamFailure("Subscriptions are not configured", status_code=status.HTTP_503_SERVICE_UNAVAILABLE)
        subscription = await self._call(
            "creating subscription",
            stripe.Subscription.create,
            customer=customer_id,
            items=[{"price": self.monthly_price_id}],
            payment_behavior="default_incomplete",
            payment_settings={"save_default_payment_method": "on_subscription"},
            expand=["latest_invoice.confirmation_secret"],
            metadata=metadata,
        )
        return {"id": subscription["id"], "status": subscription.get("status"),
                "client_secret": _client_secret(subscription)}

    async def retrieve_subscription(self, subscription_id: str) -> Dict[str, Any]:
        subscription = await self._call(
            "retrieving subscription",
            stripe.Subscription.retrieve,
            subscription_id,
            expand=["latest_invoice.confirmation_secret"],
        )
        return {"id": subscription["id"], "status": subscription.get("status"),
                "client_secret": _client_secret(subscription)}


def get_stripe_client() -> StripeClient:
    """FastAPI dependency; overridden in tests."""
    return StripeClient()


def default_amount(purchase_type: str) -> int:
    """Server-side price in cents; clients never choose the amount."""
    if purchase_type == PlanType.MONTHLY_SUBSCRIPTION.value:
        return settings.MONTHLY_PRICE_CENTS
    return settings.STRATEGY_PACK_PRICE_CENTS


def _paid_in_full(label: str, amount: Optional[int], currency: Optional[str], expected: int) -> bool:
    if (currency or "").lower() != settings.BILLING_CURRENCY.lower():
        logger.warning("%s paid in %r, expected %s; not granting", label, currency, settings.BILLING_CURRENCY)
        return False
    if (amount or 0) < expected:
        logger.warning("%s paid %s cents, expected %d; not granting", label, amount, expected)
        return False
    return True


async def _apply_payment_intent(db: AsyncSession, intent: Dict[str, Any]) -> bool:
    metadata = intent.get("metadata") or {}
    user_id = metadata.get("user_id")
    purchase_type = metadata.get("type")
    label = f"payment_intent {intent.get('id')}"
    if not user_id:
        logger.warning("%s has no user_id metadata", label)
        return False
    if purchase_type not in (PlanType.STRATEGY_PACK.value, PlanType.MONTHLY_SUBSCRIPTION.value):
        logger.info("%s has unhandled type %r", label, purchase_type)
        return False
    if not _paid_in_full(label, intent.get("amount_received"), intent.get("currency"),
                         default_amount(purchase_type)):
        return False

    user = await accounts.get_user(db, user_id)
    if user is None:
        logger.warning("%s references unknown user %s", label, user_id)
        return False

    if purchase_type == PlanType.STRATEGY_PACK.value:
        accounts.grant_strategy_pack(user)
    else:
        accounts.activate_monthly_subscription(user)
    if intent.get("customer"):
        user.stripe_customer_id = intent["customer"]
    await db.flush()
    return True


def _invoice_subscription(invoice: Dict[str, Any]) -> Optional[str]:
    details = (invoice.get("parent") or {}).get("subscription_details") or {}
    return details.get("subscription") or invoice.get("subscription")


async def _apply_invoice(db: AsyncSession, invoice: Dict[str, Any]) -> bool:
    label = f"invoice {invoice.get('id')}"
    subscription_id = _invoice_subscription(invoice)
    if not subscription_id:
        logger.info("%s is not for a subscription", label)
        return False
    if not _paid_in_full(label, invoice.get("amount_paid"), invoice.get("currency"),
                         settings.MONTHLY_PRICE_CENTS):
        return False

    user = await accounts.get_user_by_stripe_ids(db, subscription_id, invoice.get("customer"))
    if user is None:
        logger.warning("%s matches no account (subscription %s)", label, subscription_id)
        return False

    accounts.activate_monthly_subscription(user)
    user.stripe_subscription_id = subscription_id
    await db.flush()
    return True


async def apply_webhook_event(db: AsyncSession, event: Dict[str, Any]) -> bool:
    """
    Apply a verified event.  Returns True when it changed an account.

    ``payment_intent.succeeded`` grants what its metadata names and
    ``invoice.paid`` renews the monthly plan.  Either is refused when the
    amount is short of the price or the currency is not the billing one.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}
    if event_type == "payment_intent.succeeded":
        return await _apply_payment_intent(db, obj)
    if event_type == "invoice.paid":
        return await _apply_invoice(db, obj)
    logger.info("Ignoring Stripe event %s", event_type)
    return False
