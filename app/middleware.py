"""Middleware for authentication and session context."""
import enum
from dataclasses import dataclass
from functools import wraps
from flask import session, g, current_app
from sqlalchemy.exc import SQLAlchemyError
from app.database import get_session
from app.exceptions import AuthenticationError, SubscriptionRequiredError
from app.models import AppUser, Profile

# Flask session keys
AUTH_KEYS = ('user_id', 'email')
DRAFT_KEY = 'proposta_draft'
RECOVERY_KEY = 'password_recovered'


@dataclass(frozen=True)
class SessionContext:
    """Authenticated account for the current request."""
    user_id: int
    email: str


class SessionEvent(enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"


def load_session_context():
    """
    Resolve the session once per request.

    Sets g.session_ctx (SessionContext or None) and g.user.
    """
    g.session_ctx = None
    g.user = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        user = get_session().query(AppUser).filter_by(id=user_id, active=True).first()
    except SQLAlchemyError as e:
        current_app.logger.error(f"Error in load_session_context: {e}")
        return

    if user:
        g.user = user
        g.session_ctx = SessionContext(user_id=user.id, email=user.email)
    else:
        # Account removed or deactivated since login
        for key in AUTH_KEYS:
            session.pop(key, None)


def apply_session_event(event: SessionEvent, user: AppUser | None = None):
    """
    Apply an auth state change to the Flask session.

    This is the only writer of auth keys. Signing in or out drops any
    wizard draft so it never leaks between accounts.
    """
    if event is SessionEvent.SIGNED_IN:
        if user is None:
            raise ValueError("SIGNED_IN requires a user")
        session.clear()
        session.permanent = True
        session['user_id'] = user.id
        session['email'] = user.email
        g.user = user
        g.session_ctx = SessionContext(user_id=user.id, email=user.email)
        current_app.logger.info(f"[AUTH] Signed in user {user.id}")

    elif event is SessionEvent.SIGNED_OUT:
        session.clear()
        g.user = None
        g.session_ctx = None

    elif event is SessionEvent.PASSWORD_RECOVERY:
        # A password change ends the current login
        for key in AUTH_KEYS:
            session.pop(key, None)
        session[RECOVERY_KEY] = True
        g.user = None
        g.session_ctx = None


def require_login(f):
    """
    Decorator: Require an authenticated session.

    Raises AuthenticationError (401) otherwise.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('session_ctx') is None:
            raise AuthenticationError('Faça login para continuar.')
        return f(*args, **kwargs)
    return decorated_function


def require_active_subscription(f):
    """
    Decorator: Require an active profile when REQUIRE_ACTIVE_SUBSCRIPTION is on.

    Must be used AFTER require_login.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if current_app.config.get('REQUIRE_ACTIVE_SUBSCRIPTION'):
            profile = get_session().get(Profile, g.session_ctx.user_id)
            if profile is None or not profile.is_active:
                raise SubscriptionRequiredError()
        return f(*args, **kwargs)
    return decorated_function
