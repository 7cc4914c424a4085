import time
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.errors import AuthError, AuthErrorKind
from app.models.auth import AuthSession


class SessionManager:
    """Resolves bearer tokens to wallet addresses. Expiry is enforced lazily at use."""

    def __init__(self, clock: Callable[[], float] = time.time):
        self.clock = clock

    def resolve(self, db: Session, token: Optional[str]) -> str:
        token = (token or "").strip()
        if not token:
            raise AuthError(AuthErrorKind.MISSING_TOKEN, "Missing bearer token.")

        session = db.query(AuthSession).filter(AuthSession.token == token).first()
        if session is None:
            raise AuthError(AuthErrorKind.INVALID_TOKEN, "Invalid session.")

        if int(self.clock()) >= session.expires_at:
            db.delete(session)
            db.commit()
            raise AuthError(AuthErrorKind.EXPIRED, "Session expired.")

        return session.wallet_address


def require_identity_match(authenticated_wallet: str, requested_wallet: Optional[str]) -> str:
    """
    Guard for identity-scoped mutations: the wallet named in the request body
    must be the wallet the session belongs to.
    """
    if not requested_wallet or requested_wallet.strip() != authenticated_wallet:
        raise AuthError(
            AuthErrorKind.IDENTITY_MISMATCH,
            "Authenticated wallet does not match request wallet.",
        )
    return authenticated_wallet
