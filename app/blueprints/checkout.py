"""Checkout blueprint - starts a Stripe subscription checkout."""
import logging
from flask import Blueprint, jsonify, g
from app.services.stripe_service import StripeService
from app.utils.http import request_payload

logger = logging.getLogger(__name__)

checkout_bp = Blueprint('checkout', __name__)


@checkout_bp.route('/api/create-checkout', methods=['POST'])
def create_checkout():
    """
    Create a Checkout Session and return its URL.

    Body (JSON or form): {email?, userId?}. A signed-in caller's email and
    id are used when the body omits them.
    """
    data = request_payload()
    ctx = g.get('session_ctx')

    email = (data.get('email') or '').strip() or (ctx.email if ctx else None)
    user_id = data.get('userId') or (str(ctx.user_id) if ctx else None)

    try:
        url = StripeService().create_checkout_session(email, user_id)
    except Exception as e:
        logger.error(f"[STRIPE] Checkout creation failed: {e}")
        return jsonify({'error': str(e)}), 500

    return jsonify({'url': url}), 200
