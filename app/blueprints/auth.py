"""
Authentication blueprint (JSON).
Handles login, logout, session state and password reset.
"""

import logging
from flask import Blueprint, jsonify, request, url_for, session, g, current_app
from flask_wtf.csrf import generate_csrf
from app.database import get_session
from app.models import Profile
from app.middleware import SessionEvent, apply_session_event, RECOVERY_KEY
from app.services import auth_service
from app.services.email_service import send_password_reset_email
from app.utils.http import request_payload

logger = logging.getLogger(__name__)

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')

FORGOT_PASSWORD_MESSAGE = 'Se o e-mail estiver cadastrado, você receberá instruções para acessar sua conta.'


def _user_dict(user) -> dict:
    return {'id': user.id, 'email': user.email, 'full_name': user.full_name}


@auth_bp.route('/login', methods=['POST'])
def login():
    """Login - validates email + password and starts the session."""
    data = request_payload()
    user = auth_service.authenticate(
        get_session(),
        (data.get('email') or '').strip(),
        data.get('password') or ''
    )
    apply_session_event(SessionEvent.SIGNED_IN, user)
    return jsonify({'status': 'ok', 'user': _user_dict(user)}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Logout - clears the session (and any wizard draft)."""
    apply_session_event(SessionEvent.SIGNED_OUT)
    return jsonify({'status': 'ok'}), 200


@auth_bp.route('/session', methods=['GET'])
def current_session():
    """Current session, CSRF token and subscription flags."""
    ctx = g.get('session_ctx')
    body = {
        'authenticated': ctx is not None,
        'user': _user_dict(g.user) if ctx else None,
        'csrf_token': generate_csrf(),
        'password_recovered': bool(session.pop(RECOVERY_KEY, False)),
        'subscription': None,
    }

    if ctx:
        profile = get_session().get(Profile, ctx.user_id)
        body['subscription'] = {
            'is_active': bool(profile and profile.is_active),
            'status': profile.subscription_status if profile else None,
            'required': bool(current_app.config.get('REQUIRE_ACTIVE_SUBSCRIPTION')),
        }

    return jsonify(body), 200


# =====================================================
# PASSWORD RESET FLOW
# =====================================================

@auth_bp.route('/forgot-password', methods=['POST'])
def forgot_password():
    """
    Request password reset link.

    Always answers with the same message, whether or not the email exists.
    """
    email = (request_payload().get('email') or '').strip()
    if email:
        user = auth_service.create_reset_token(get_session(), email)
        if user:
            reset_link = url_for('auth.reset_password', token=user.reset_password_token, _external=True)
            send_password_reset_email(user.email, reset_link)
            logger.info(f"[AUTH] Reset link issued for user {user.id}")

    return jsonify({'status': 'ok', 'message': FORGOT_PASSWORD_MESSAGE}), 200


@auth_bp.route('/reset-password/<token>', methods=['GET', 'POST'])
def reset_password(token: str):
    """
    GET: tell whether the token is still valid.
    POST: set the new password (min 6 chars) and end any current login.
    """
    db_session = get_session()

    if request.method == 'GET':
        valid = auth_service.find_by_reset_token(db_session, token) is not None
        return jsonify({'valid': valid}), 200 if valid else 400

    data = request_payload()
    auth_service.reset_password(
        db_session,
        token,
        data.get('password') or '',
        data.get('password_confirm')
    )
    apply_session_event(SessionEvent.PASSWORD_RECOVERY)
    return jsonify({'status': 'ok', 'message': 'Senha redefinida. Faça login.'}), 200
