import pytest

from app.core.errors import AuthError, AuthErrorKind
from app.models.auth import AuthSession
from app.services.session_manager import SessionManager, require_identity_match


@pytest.fixture
def sessions(clock) -> SessionManager:
    return SessionManager(clock=clock)


def add_session(db, token: str, wallet: str, expires_at: int) -> None:
    db.add(AuthSession(token=token, wallet_address=wallet, expires_at=expires_at, created_at=0))
    db.commit()


class TestResolve:
    def test_resolves_wallet(self, db, sessions, clock):
        add_session(db, "tok", "W1", int(clock.now) + 10)
        assert sessions.resolve(db, "tok") == "W1"

    @pytest.mark.parametrize("token", [None, "", "   "])
    def test_missing_token(self, db, sessions, token):
        with pytest.raises(AuthError) as exc_info:
            sessions.resolve(db, token)
        assert exc_info.value.kind == AuthErrorKind.MISSING_TOKEN

    def test_unknown_token(self, db, sessions):
        with pytest.raises(AuthError) as exc_info:
            sessions.resolve(db, "nope")
        assert exc_info.value.kind == AuthErrorKind.INVALID_TOKEN

    def test_expired_session_is_deleted(self, db, sessions, clock):
        """Expired at use: rejected, row removed, next lookup is InvalidToken"""
        add_session(db, "old", "W1", int(clock.now))

        with pytest.raises(AuthError) as exc_info:
            sessions.resolve(db, "old")
        assert exc_info.value.kind == AuthErrorKind.EXPIRED
        assert db.query(AuthSession).count() == 0

        with pytest.raises(AuthError) as exc_info:
            sessions.resolve(db, "old")
        assert exc_info.value.kind == AuthErrorKind.INVALID_TOKEN


class TestIdentityMatch:
    def test_match(self):
        assert require_identity_match("W1", "W1") == "W1"

    @pytest.mark.parametrize("requested", ["W2", "", None])
    def test_mismatch(self, requested):
        with pytest.raises(AuthError) as exc_info:
            require_identity_match("W1", requested)
        assert exc_info.value.kind == AuthErrorKind.IDENTITY_MISMATCH
        assert exc_info.value.http_status == 403
