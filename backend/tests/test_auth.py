"""
Authentication tests: password policy, bcrypt verification and bearer
session lifecycle.
"""

from datetime import timedelta

import pytest

from bookstore.errors import InvalidRequestError
from bookstore.models import SessionToken
from bookstore.services import auth_service, session_service
from bookstore.services.auth_service import PasswordValidationError
from bookstore.time_utils import utcnow
from conftest import PASSWORD


class TestPasswords:

    @pytest.mark.parametrize("password", [
        "Sh0rt!",
        "alllowercase1!",
        "ALLUPPERCASE1!",
        "NoDigitsHere!",
        "NoSpecial123",
    ])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_verify(self, password_hash):
        assert auth_service.verify_password(PASSWORD, password_hash) is True
        assert auth_service.verify_password("Password123?", password_hash) is False
        assert auth_service.verify_password(PASSWORD, "not-a-bcrypt-hash") is False
        assert auth_service.verify_password("", password_hash) is False

    def test_duplicate_username(self, db_session, admin):
        with pytest.raises(InvalidRequestError):
            auth_service.create_user("admin", PASSWORD)

    def test_unknown_role(self, db_session):
        with pytest.raises(InvalidRequestError):
            auth_service.create_user("boss", PASSWORD, role="OWNER")

    def test_authenticate_records_login(self, db_session, cashier):
        assert auth_service.authenticate("kassir", "wrong") is None
        assert cashier.last_login_at is None

        user = auth_service.authenticate(" kassir ", PASSWORD)
        assert user.id == cashier.id
        assert user.last_login_at is not None

    def test_inactive_user_cannot_log_in(self, db_session, cashier):
        cashier.is_active = False
        db_session.commit()
        assert auth_service.authenticate("kassir", PASSWORD) is None


class TestSessions:

    def test_round_trip_and_revoke(self, db_session, admin):
        record, token = session_service.create_session(admin.id)

        assert record.token_hash == session_service.hash_token(token)
        assert session_service.validate_session(token).id == admin.id

        assert session_service.revoke_session(token) is True
        assert session_service.revoke_session(token) is False
        assert session_service.validate_session(token) is None

    def test_expired_session(self, db_session, admin):
        record, token = session_service.create_session(admin.id)
        record.expires_at = utcnow() - timedelta(minutes=1)
        db_session.commit()

        assert session_service.validate_session(token) is None

    def test_deactivated_user_session_revoked(self, db_session, admin):
        record, token = session_service.create_session(admin.id)
        admin.is_active = False
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, record.id).is_revoked is True

    def test_ttl_from_config(self, app, db_session, admin, monkeypatch):
        monkeypatch.setitem(app.config, "SESSION_TTL_HOURS", 2)

        record, _ = session_service.create_session(admin.id)

        assert record.expires_at - record.created_at == timedelta(hours=2)
