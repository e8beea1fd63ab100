"""
Authentication service for account credentials.

Handles password login and the password reset token flow.
"""
import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional
from sqlalchemy.orm import Session
from app.exceptions import AuthenticationError, BusinessLogicError
from app.models import AppUser, normalize_email

logger = logging.getLogger(__name__)

RESET_TOKEN_TTL = timedelta(hours=1)
MIN_PASSWORD_LENGTH = 6


def authenticate(session: Session, email: str, password: str) -> AppUser:
    """
    Validate email + password.

    Raises:
        BusinessLogicError: Missing email or password
        AuthenticationError: Unknown account, inactive account or wrong password
    """
    if not email or not password:
        raise BusinessLogicError('Email e senha são obrigatórios.')

    user = session.query(AppUser).filter_by(email=normalize_email(email)).first()

    if not user or not user.active or not user.check_password(password):
        logger.info(f"[AUTH] Failed login for {normalize_email(email)}")
        raise AuthenticationError('Email ou senha incorretos.')

    return user


def create_reset_token(session: Session, email: str) -> Optional[AppUser]:
    """
    Store a fresh reset token (valid for 1 hour) on the account.

    Returns:
        AppUser with the new token, or None when no active account matches
    """
    user = session.query(AppUser).filter_by(email=normalize_email(email)).first()
    if not user or not user.active:
        return None

    user.reset_password_token = secrets.token_urlsafe(32)
    # Use UTC for expiration to match timezone=True column
    user.reset_password_expires = datetime.now(timezone.utc) + RESET_TOKEN_TTL
    session.commit()
    return user


def _as_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def find_by_reset_token(session: Session, token: str) -> Optional[AppUser]:
    """Account owning a valid (unexpired) reset token."""
    if not token:
        return None
    user = session.query(AppUser).filter_by(reset_password_token=token).first()
    if not user or not user.reset_password_expires:
        return None
    if _as_utc(user.reset_password_expires) < datetime.now(timezone.utc):
        return None
    return user


def reset_password(session: Session, token: str, password: str, password_confirm: Optional[str] = None) -> AppUser:
    """
    Set a new password using a reset token.

    Raises:
        BusinessLogicError: Invalid/expired token, short password or mismatch
    """
    user = find_by_reset_token(session, token)
    if not user:
        raise BusinessLogicError('O link de recuperação é inválido ou expirou.')

    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise BusinessLogicError(f'A senha deve ter pelo menos {MIN_PASSWORD_LENGTH} caracteres.')

    if password_confirm is not None and password != password_confirm:
        raise BusinessLogicError('As senhas não coincidem.')

    user.set_password(password)
    user.reset_password_token = None
    user.reset_password_expires = None
    session.commit()

    logger.info(f"[AUTH] Password reset for user {user.id}")
    return user
