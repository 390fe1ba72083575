"""
Stripe Service for hosted checkout sessions, refunds and webhook verification.
"""

import logging
from typing import Any, Dict, List, Optional
from flask import current_app
import stripe

from marketplace.exceptions import InternalError, UnauthenticatedError

logger = logging.getLogger(__name__)


class StripeService:
    """Service to interact with the Stripe API."""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        """Read credentials from config unless given explicitly."""
        self.api_key = api_key or current_app.config.get('STRIPE_SECRET_KEY')
        self.webhook_secret = webhook_secret or current_app.config.get('STRIPE_WEBHOOK_SECRET')
        if not self.api_key:
            logger.warning("Stripe STRIPE_SECRET_KEY not found in config.")

    def _check_key(self):
        """Raise error if the API key is missing."""
        if not self.api_key:
            raise InternalError("Stripe is not configured. Missing STRIPE_SECRET_KEY.")

    def ensure_customer(self, email: Optional[str], existing_id: Optional[str] = None) -> str:
        """Return an existing customer id or create a new customer."""
        if existing_id:
            return existing_id
        self._check_key()
        try:
            customer = stripe.Customer.create(email=email or None, api_key=self.api_key)
        except stripe.StripeError as e:
            logger.exception("Exception creating Stripe customer")
            raise InternalError(f"Failed to create customer: {getattr(e, 'user_message', None) or e}")
        logger.info(f"Stripe customer created: {customer.id}")
        return customer.id

    def create_checkout_session(
        self,
        name: str,
        description: str,
        amount_minor: int,
        currency: str,
        metadata: Dict[str, str],
        success_url: str,
        cancel_url: str,
        customer_id: Optional[str] = None,
        customer_email: Optional[str] = None,
        payment_method_types: Optional[List[str]] = None,
    ) -> Any:
        """
        Create a hosted Checkout Session with a single line item.

        Args:
            name: Product name shown on the hosted page
            description: Line item description
            amount_minor: Amount in the currency's minor unit
            currency: ISO currency code
            metadata: Opaque correlation data returned in webhooks
            success_url / cancel_url: Redirect targets

        Returns:
            The Stripe Checkout Session (``id``, ``url``)
        """
        self._check_key()

        params = dict(
            mode='payment',
            line_items=[{
                'price_data': {
                    'currency': currency,
                    'product_data': {'name': name[:250], 'description': description[:500]},
                    'unit_amount': amount_minor,
                },
                'quantity': 1,
            }],
            success_url=success_url,
            cancel_url=cancel_url,
            metadata=metadata,
            payment_intent_data={'metadata': metadata},
            api_key=self.api_key,
        )
        if payment_method_types:
            params['payment_method_types'] = payment_method_types
        if customer_id:
            params['customer'] = customer_id
        elif customer_email:
            params['customer_email'] = customer_email

        try:
            session = stripe.checkout.Session.create(**params)
        except stripe.StripeError as e:
            logger.exception("Exception creating Stripe checkout session")
            raise InternalError(f"Failed to create payment session: {getattr(e, 'user_message', None) or e}")

        logger.info(f"Stripe checkout session created: {session.id}")
        return session

    def refund_payment(self, payment_intent_id: str, amount_minor: Optional[int] = None,
                       reason: Optional[str] = None) -> Any:
        """
        Refund a captured PaymentIntent, fully or partially.

        Args:
            payment_intent_id: Intent to refund
            amount_minor: Amount in minor units (None refunds the remainder)
            reason: One of Stripe's refund reasons (optional)

        Returns:
            The Stripe Refund (``id``, ``amount``, ``status``)
        """
        self._check_key()

        params = dict(payment_intent=payment_intent_id, api_key=self.api_key)
        if amount_minor is not None:
            params['amount'] = amount_minor
        if reason:
            params['reason'] = reason

        try:
            refund = stripe.Refund.create(**params)
        except stripe.StripeError as e:
            logger.exception(f"Exception refunding payment intent {payment_intent_id}")
            raise InternalError(f"Failed to refund payment: {getattr(e, 'user_message', None) or e}")

        logger.info(f"Stripe refund created: {refund.id} for {payment_intent_id}")
        return refund

    def construct_event(self, payload: bytes, signature: Optional[str]):
        """
        Verify the webhook signature.

        Raises:
            UnauthenticatedError: missing header, bad signature or unparseable payload
        """
        if not signature:
            raise UnauthenticatedError('Missing Stripe signature header.', status_code=400)
        if not self.webhook_secret:
            # Verification is never skipped
            logger.error("STRIPE_WEBHOOK_SECRET is not configured; rejecting webhook")
            raise UnauthenticatedError('Webhook secret not configured', status_code=400)
        try:
            return stripe.Webhook.construct_event(payload, signature, self.webhook_secret)
        except ValueError:
            raise UnauthenticatedError('Invalid payload', status_code=400)
        except stripe.SignatureVerificationError:
            raise UnauthenticatedError('Invalid signature', status_code=400)
