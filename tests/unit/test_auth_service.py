"""
Unit tests for credential checks and reset tokens.
"""

from datetime import datetime, timedelta, timezone
import pytest
from app.exceptions import AuthenticationError, BusinessLogicError
from app.services.auth_service import (
    authenticate, create_reset_token, find_by_reset_token, reset_password,
)


class TestAuthenticate:

    def test_valid(self, session, user1):
        assert authenticate(session, f' {user1.email.upper()} ', 'password123').id == user1.id

    def test_wrong_password(self, session, user1):
        with pytest.raises(AuthenticationError):
            authenticate(session, user1.email, 'nope')

    def test_unknown_email(self, session):
        with pytest.raises(AuthenticationError):
            authenticate(session, 'ninguem@test.com', 'password123')

    def test_missing_fields(self, session):
        with pytest.raises(BusinessLogicError):
            authenticate(session, '', 'password123')


class TestResetToken:

    def test_token_valid_for_one_hour(self, session, user1):
        user = create_reset_token(session, user1.email)
        expires = user.reset_password_expires
        if expires.tzinfo is None:
            expires = expires.replace(tzinfo=timezone.utc)

        remaining = expires - datetime.now(timezone.utc)
        assert timedelta(minutes=59) < remaining <= timedelta(hours=1)
        assert find_by_reset_token(session, user.reset_password_token).id == user1.id

    def test_unknown_email_gets_no_token(self, session):
        assert create_reset_token(session, 'ninguem@test.com') is None

    def test_new_token_replaces_old(self, session, user1):
        first = create_reset_token(session, user1.email).reset_password_token
        second = create_reset_token(session, user1.email).reset_password_token
        assert first != second
        assert find_by_reset_token(session, first) is None

    def test_reset_clears_token(self, session, user1):
        token = create_reset_token(session, user1.email).reset_password_token
        user = reset_password(session, token, 'novasenha1', 'novasenha1')

        assert user.check_password('novasenha1')
        assert user.reset_password_token is None
        assert find_by_reset_token(session, token) is None

    def test_reset_validation(self, session, user1):
        token = create_reset_token(session, user1.email).reset_password_token
        with pytest.raises(BusinessLogicError):
            reset_password(session, token, '12345')
        with pytest.raises(BusinessLogicError):
            reset_password(session, token, 'novasenha1', 'diferente')
        with pytest.raises(BusinessLogicError):
            reset_password(session, 'invalido', 'novasenha1')
