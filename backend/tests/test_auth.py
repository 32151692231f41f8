"""
Operator authentication and session token tests.
"""

from datetime import timedelta

import pytest

from pdv.errors import ConflictError
from pdv.models import SessionToken
from pdv.services import auth_service, session_service
from pdv.services.auth_service import PasswordValidationError

from conftest import OPERATOR_PASSWORD


class TestPasswords:
    @pytest.mark.parametrize("password", ["short1", "onlyletters", "12345678"])
    def test_weak_passwords_rejected(self, password):
        with pytest.raises(PasswordValidationError):
            auth_service.validate_password_strength(password)

    def test_verify(self, password_hash):
        assert auth_service.verify_password(OPERATOR_PASSWORD, password_hash)
        assert not auth_service.verify_password("wrong-pass1", password_hash)
        assert not auth_service.verify_password(OPERATOR_PASSWORD, "not-a-bcrypt-hash")


class TestOperators:
    def test_duplicate_username(self, db_session, operator):
        with pytest.raises(ConflictError):
            auth_service.create_operator("caixa1", "another123")

    def test_authenticate(self, db_session, operator):
        assert auth_service.authenticate("caixa1", OPERATOR_PASSWORD).id == operator.id
        assert auth_service.authenticate("caixa1", "wrong-pass1") is None
        assert auth_service.authenticate("nobody", OPERATOR_PASSWORD) is None

    def test_inactive_operator_cannot_log_in(self, db_session, operator):
        operator.is_active = False
        db_session.commit()
        assert auth_service.authenticate("caixa1", OPERATOR_PASSWORD) is None


class TestSessions:
    def test_token_is_stored_hashed(self, db_session, operator):
        session, token = session_service.create_session(operator.id)
        assert session.token_hash == session_service.hash_token(token)
        assert session.token_hash != token

    def test_validate_and_revoke(self, db_session, operator):
        _, token = session_service.create_session(operator.id)
        assert session_service.validate_session(token).operator.id == operator.id

        assert session_service.revoke_session(token) is True
        assert session_service.validate_session(token) is None
        assert session_service.revoke_session(token) is False

    def test_idle_session_is_revoked(self, db_session, operator):
        session, token = session_service.create_session(operator.id)
        session.last_used_at = session.last_used_at - timedelta(hours=3)
        db_session.commit()

        assert session_service.validate_session(token) is None
        assert db_session.get(SessionToken, session.id).revoked_reason == "Idle timeout"

    def test_expired_session(self, db_session, operator):
        session, token = session_service.create_session(operator.id)
        session.expires_at = session.created_at - timedelta(seconds=1)
        db_session.commit()
        assert session_service.validate_session(token) is None

    def test_deactivated_operator_loses_session(self, db_session, operator):
        _, token = session_service.create_session(operator.id)
        operator.is_active = False
        db_session.commit()
        assert session_service.validate_session(token) is None
