from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

import app.schemas.auth as schemas
from app.core.config import settings
from app.core.dependencies import get_authenticator
from app.core.errors import AuthError, AuthErrorKind
from app.core.rate_limit import limiter
from app.core.wallet_auth import decode_signature
from app.db.session import get_db
from app.services.authenticator import Authenticator

router = APIRouter()
group_tags = ["Auth"]


@router.post(
    "/challenge",
    tags=group_tags,
    response_model=schemas.ChallengeResponse,
    status_code=status.HTTP_200_OK,
)
@limiter.limit(settings.RATE_LIMIT_AUTH)
def issue_challenge(
    request: Request,
    body: schemas.ChallengeRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.ChallengeResponse:
    """
    Issue a one-time challenge for a wallet.

    The returned `message` must be signed by the wallet and sent to /auth/verify
    before `expiresAt` (unix seconds). Issuing again makes older challenges unusable.
    """
    challenge = authenticator.issue(db, body.walletAddress)
    return schemas.ChallengeResponse(
        walletAddress=challenge.wallet_address,
        nonce=challenge.nonce,
        message=challenge.message,
        expiresAt=challenge.expires_at,
    )


@router.post(
    "/verify",
    tags=group_tags,
    response_model=schemas.VerifyResponse,
)
@limiter.limit(settings.RATE_LIMIT_AUTH)
def verify_challenge(
    request: Request,
    body: schemas.VerifyRequest,
    db: Session = Depends(get_db),
    authenticator: Authenticator = Depends(get_authenticator),
) -> schemas.VerifyResponse:
    """Verify the signed challenge and return a bearer session token."""
    try:
        signature = decode_signature(body.signatureBase64)
    except ValueError as e:
        raise AuthError(AuthErrorKind.INVALID_SIGNATURE, str(e))

    session = authenticator.verify(db, body.walletAddress, signature)
    return schemas.VerifyResponse(
        authenticated=True,
        walletAddress=session.wallet_address,
        token=session.token,
        expiresAt=session.expires_at,
    )
