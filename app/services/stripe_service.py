"""
Stripe Service for subscription checkout and webhook verification.
"""

import json
import logging
from typing import Dict, Any, Optional
from flask import current_app
import stripe

logger = logging.getLogger(__name__)


class StripeService:
    """Service to interact with the Stripe API."""

    def __init__(self, api_key: Optional[str] = None, webhook_secret: Optional[str] = None):
        """Read keys from config unless given."""
        self.api_key = api_key or current_app.config.get('STRIPE_SECRET_KEY')
        self.webhook_secret = webhook_secret or current_app.config.get('STRIPE_WEBHOOK_SECRET')
        if not self.api_key:
            logger.warning("[STRIPE] STRIPE_SECRET_KEY not found in config.")

    def _check_key(self):
        """Raise error if the API key is missing."""
        if not self.api_key:
            raise ValueError("Stripe not configured. Missing STRIPE_SECRET_KEY.")

    def create_checkout_session(self, email: Optional[str], user_id: Optional[str]) -> str:
        """
        Create a subscription Checkout Session.

        Args:
            email: Prefilled customer email (optional)
            user_id: Caller's account id, stored as metadata (optional)

        Returns:
            str: Hosted checkout URL
        """
        self._check_key()
        cfg = current_app.config

        params = {
            'payment_method_types': ['card'],
            'mode': 'subscription',
            'line_items': [{'price': cfg.get('STRIPE_PRICE_ID'), 'quantity': 1}],
            'metadata': {'userId': str(user_id) if user_id else ''},
            'success_url': cfg.get('CHECKOUT_SUCCESS_URL'),
            'cancel_url': cfg.get('CHECKOUT_CANCEL_URL'),
        }
        if email:
            params['customer_email'] = email

        try:
            session = stripe.checkout.Session.create(api_key=self.api_key, **params)
        except Exception:
            logger.exception("[STRIPE] Exception creating checkout session")
            raise

        logger.info(f"[STRIPE] Checkout session created: {session.id}")
        return session.url

    def construct_event(self, payload: bytes, sig_header: Optional[str]) -> Dict[str, Any]:
        """
        Verify the Stripe-Signature header against the raw body and parse it.

        Raises:
            stripe.SignatureVerificationError: Signature missing, stale or wrong
            ValueError: Secret not configured or body is not JSON
        """
        if not self.webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET not configured")

        body = payload.decode('utf-8') if isinstance(payload, bytes) else payload
        stripe.WebhookSignature.verify_header(
            body, sig_header or '', self.webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
        )

        event = json.loads(body)
        if not isinstance(event, dict) or 'type' not in event:
            raise ValueError("Malformed event payload")
        return event
