"""
Provisioning service: turns Stripe subscription events into accounts
and profile billing state.

Replays of the same event are safe: accounts are looked up by normalized
email before creating, and profile writes are plain upserts.
"""
import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple

from flask import current_app, has_request_context, url_for
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.exceptions import AccountCreationError, BusinessLogicError
from app.models import AppUser, Profile, normalize_email
from app.services.auth_service import create_reset_token
from app.services.email_service import send_password_reset_email, send_welcome_email

logger = logging.getLogger(__name__)

PASSWORD_ALPHABET = 'ABCDEFGHJKMNPQRSTUVWXYZabcdefghjkmnpqrstuvwxyz23456789'
PASSWORD_LENGTH = 10

CHECKOUT_COMPLETED = 'checkout.session.completed'
DEACTIVATING_EVENTS = ('customer.subscription.deleted', 'invoice.payment_failed')


def generate_password(length: int = PASSWORD_LENGTH) -> str:
    """Random password without look-alike characters (no I, l, O, 0, 1)."""
    return ''.join(secrets.choice(PASSWORD_ALPHABET) for _ in range(length))


def find_account(session: Session, email: str) -> Optional[AppUser]:
    return session.query(AppUser).filter(AppUser.email == normalize_email(email)).first()


def find_or_create_account(session: Session, email: str, nome: str = '') -> Tuple[AppUser, Optional[str]]:
    """
    Look up the account for an email or create it with a generated password.

    Returns:
        (user, password) where password is None when the account already existed

    Raises:
        AccountCreationError: The account could not be inserted
    """
    user = find_account(session, email)
    if user:
        logger.info(f"[WEBHOOK] Existing account for {user.email} (id={user.id})")
        return user, None

    password = generate_password()
    try:
        user = AppUser(
            email=normalize_email(email),
            full_name=nome or None,
            active=True,
            email_verified=True,
        )
        user.set_password(password)
        session.add(user)
        session.commit()
    except IntegrityError:
        # Concurrent delivery of the same event created it first
        session.rollback()
        user = find_account(session, email)
        if user:
            return user, None
        logger.exception(f"[WEBHOOK] Could not create account for {email}")
        raise AccountCreationError()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(f"[WEBHOOK] Could not create account for {email}")
        raise AccountCreationError()

    logger.info(f"[WEBHOOK] Created account {user.email} (id={user.id})")
    return user, password


def activate_profile(session: Session, user_id: int, customer_id: Optional[str],
                     subscription_id: Optional[str]) -> Profile:
    """Upsert the profile of a paying account as active."""
    profile = session.get(Profile, user_id)
    if profile is None:
        profile = Profile(id=user_id)
        session.add(profile)

    profile.is_active = True
    profile.stripe_customer_id = customer_id
    profile.stripe_subscription_id = subscription_id
    profile.subscription_status = 'active'
    profile.updated_at = datetime.now(timezone.utc)
    session.commit()
    return profile


def deactivate_by_customer(session: Session, customer_id: Optional[str]) -> int:
    """
    Mark every profile of a Stripe customer inactive.

    Returns:
        Number of profiles updated
    """
    if not customer_id:
        return 0

    profiles = session.query(Profile).filter(Profile.stripe_customer_id == customer_id).all()
    for profile in profiles:
        profile.is_active = False
        profile.subscription_status = 'inactive'
        profile.updated_at = datetime.now(timezone.utc)
    session.commit()

    logger.info(f"[WEBHOOK] Deactivated {len(profiles)} profile(s) for customer {customer_id}")
    return len(profiles)


def _reset_link(token: str) -> str:
    if has_request_context():
        return url_for('auth.reset_password', token=token, _external=True)
    return f"{current_app.config.get('APP_URL', '').rstrip('/')}/auth/reset-password/{token}"


def send_access_link(session: Session, user: AppUser) -> bool:
    """
    Email a password-reset link to an account whose welcome email was lost.

    Used when a checkout is redelivered for an account that was created but
    never got its profile: the generated password died with the failed
    delivery, so the payer needs another way in.
    """
    logger.warning(f"[WEBHOOK] Account {user.email} (id={user.id}) had no profile; sending access link")
    try:
        user = create_reset_token(session, user.email)
        if user is None:
            return False
        if send_password_reset_email(user.email, _reset_link(user.reset_password_token)):
            return True
        logger.error(f"[WEBHOOK] Access link not delivered to {user.email}")
    except Exception:
        logger.exception(f"[WEBHOOK] Access link failed for {user.email}")
    return False


def handle_checkout_completed(session: Session, checkout: Dict[str, Any]) -> AppUser:
    """
    Provision access after a successful checkout.

    Raises:
        BusinessLogicError: No payer email in the event
        AccountCreationError: Account insert failed
    """
    details = checkout.get('customer_details') or {}
    email = details.get('email') or checkout.get('customer_email')
    nome = details.get('name') or ''

    if not email:
        raise BusinessLogicError('Email não encontrado')

    user, password = find_or_create_account(session, email, nome)
    had_profile = session.get(Profile, user.id) is not None
    activate_profile(session, user.id, checkout.get('customer'), checkout.get('subscription'))

    if password:
        try:
            if not send_welcome_email(user.email, password, nome):
                logger.error(f"[WEBHOOK] Welcome email not delivered to {user.email}")
        except Exception:
            logger.exception(f"[WEBHOOK] Welcome email failed for {user.email}")
    elif not had_profile:
        send_access_link(session, user)

    return user


def handle_event(session: Session, event: Dict[str, Any]) -> str:
    """
    Apply a verified Stripe event.

    Returns:
        str: 'provisioned', 'deactivated' or 'ignored'
    """
    event_type = event.get('type')
    obj = (event.get('data') or {}).get('object') or {}

    if event_type == CHECKOUT_COMPLETED:
        handle_checkout_completed(session, obj)
        return 'provisioned'

    if event_type in DEACTIVATING_EVENTS:
        deactivate_by_customer(session, obj.get('customer'))
        return 'deactivated'

    logger.info(f"[WEBHOOK] Unhandled event type: {event_type}")
    return 'ignored'
