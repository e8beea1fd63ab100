"""
Webhooks Blueprint for Stripe notifications.
Provisions accounts on checkout and deactivates profiles on cancellation.
"""

import logging
import stripe
from flask import Blueprint, request, jsonify
from app.database import get_session
from app.exceptions import AccountCreationError, BusinessLogicError
from app.services.provisioning_service import handle_event
from app.services.stripe_service import StripeService
from app.blueprints.metrics import webhook_events_total

logger = logging.getLogger(__name__)

webhooks_bp = Blueprint('webhooks', __name__)


@webhooks_bp.route('/api/webhook', methods=['POST'])
@webhooks_bp.route('/webhooks/stripe', methods=['POST'])
def stripe_webhook():
    """
    Handle Stripe webhook notifications.

    Handled events:
    - checkout.session.completed (create/find account, activate profile)
    - customer.subscription.deleted, invoice.payment_failed (deactivate)

    The signature is checked on the raw body before anything else.
    """
    payload = request.get_data()
    signature = request.headers.get('Stripe-Signature', '')

    try:
        event = StripeService().construct_event(payload, signature)
    except (stripe.SignatureVerificationError, ValueError) as e:
        logger.warning(f"[WEBHOOK] Rejected delivery: {e}")
        webhook_events_total.labels(event_type='unknown', outcome='invalid_signature').inc()
        return jsonify({'error': f'Webhook Error: {e}'}), 400

    event_type = event.get('type')
    logger.info(f"[WEBHOOK] Received Stripe event: type={event_type} id={event.get('id')}")

    session = get_session()
    try:
        outcome = handle_event(session, event)

    except BusinessLogicError as e:
        webhook_events_total.labels(event_type=event_type, outcome='rejected').inc()
        return jsonify({'error': e.message}), 400

    except AccountCreationError as e:
        webhook_events_total.labels(event_type=event_type, outcome='error').inc()
        return jsonify({'error': e.message}), 500

    except Exception as e:
        logger.exception(f"[WEBHOOK] Error processing {event_type}: {e}")
        session.rollback()
        webhook_events_total.labels(event_type=event_type, outcome='error').inc()
        return jsonify({'error': 'Erro interno'}), 500

    webhook_events_total.labels(event_type=event_type, outcome=outcome).inc()
    return jsonify({'received': True}), 200
