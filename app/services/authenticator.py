"""
Wallet challenge issuance and verification.

issue():  POST /auth/challenge -> new AuthChallenge row, expired rows purged
verify(): POST /auth/verify    -> newest unexpired challenge checked against
          the wallet signature; on success every challenge of the wallet is
          dropped and a new AuthSession is minted.
"""

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import AuthError, AuthErrorKind, ValidationError, ValidationErrorKind
from app.core.wallet_auth import (
    build_auth_message,
    generate_nonce,
    generate_session_token,
    normalize_wallet_address,
    verify_signature,
)
from app.models.auth import AuthChallenge, AuthSession

logger = logging.getLogger(__name__)


@dataclass
class IssuedChallenge:
    wallet_address: str
    nonce: str
    message: str
    expires_at: int


@dataclass
class IssuedSession:
    token: str
    wallet_address: str
    expires_at: int


def canonical_wallet(wallet_address: str) -> str:
    try:
        return normalize_wallet_address(wallet_address)
    except ValueError as e:
        raise ValidationError(ValidationErrorKind.MALFORMED_INPUT, str(e))


class Authenticator:
    def __init__(
        self,
        challenge_ttl_seconds: int = settings.CHALLENGE_TTL_SECONDS,
        session_ttl_seconds: int = settings.SESSION_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.challenge_ttl_seconds = challenge_ttl_seconds
        self.session_ttl_seconds = session_ttl_seconds
        self.clock = clock

    def _now(self) -> int:
        return int(self.clock())

    def issue(self, db: Session, wallet_address: str) -> IssuedChallenge:
        wallet = canonical_wallet(wallet_address)
        now = self._now()
        nonce = generate_nonce()
        expires_at = now + self.challenge_ttl_seconds

        db.query(AuthChallenge).filter(AuthChallenge.expires_at <= now).delete(
            synchronize_session=False
        )
        db.add(
            AuthChallenge(
                wallet_address=wallet,
                nonce=nonce,
                expires_at=expires_at,
                created_at=now,
            )
        )
        db.commit()

        return IssuedChallenge(
            wallet_address=wallet,
            nonce=nonce,
            message=build_auth_message(wallet, nonce),
            expires_at=expires_at,
        )

    def latest_valid_challenge(self, db: Session, wallet_address: str) -> Optional[AuthChallenge]:
        return (
            db.query(AuthChallenge)
            .filter(
                AuthChallenge.wallet_address == wallet_address,
                AuthChallenge.expires_at > self._now(),
            )
            .order_by(AuthChallenge.id.desc())
            .first()
        )

    def verify(self, db: Session, wallet_address: str, signature: bytes) -> IssuedSession:
        wallet = canonical_wallet(wallet_address)
        challenge = self.latest_valid_challenge(db, wallet)
        if challenge is None:
            raise AuthError(
                AuthErrorKind.NO_ACTIVE_CHALLENGE,
                "No active challenge. Request /auth/challenge first.",
            )

        message = build_auth_message(wallet, challenge.nonce)
        if not verify_signature(wallet, message, signature):
            logger.warning("rejected wallet signature for %s", wallet)
            raise AuthError(AuthErrorKind.INVALID_SIGNATURE, "Invalid wallet signature.")

        now = self._now()
        # one-shot: every outstanding nonce of this wallet dies with the first success
        db.query(AuthChallenge).filter(AuthChallenge.wallet_address == wallet).delete(
            synchronize_session=False
        )
        db.query(AuthSession).filter(AuthSession.expires_at <= now).delete(
            synchronize_session=False
        )
        token = generate_session_token()
        expires_at = now + self.session_ttl_seconds
        db.add(
            AuthSession(
                token=token,
                wallet_address=wallet,
                expires_at=expires_at,
                created_at=now,
            )
        )
        db.commit()

        return IssuedSession(token=token, wallet_address=wallet, expires_at=expires_at)
