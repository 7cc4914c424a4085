"""
Service error taxonomy.

Every failure the core reports to a caller is a ``SymbioteError`` subclass
carrying a stable ``kind`` string and the HTTP status the API layer answers
with. ``main.py`` registers one exception handler that renders

    {"error": "<kind>", "detail": "<message>"}

so clients can branch on ``error`` without parsing messages.
"""

from enum import Enum
from typing import Dict, Optional


class AuthErrorKind(str, Enum):
    MISSING_TOKEN = "MissingToken"
    INVALID_TOKEN = "InvalidToken"
    EXPIRED = "Expired"
    NO_ACTIVE_CHALLENGE = "NoActiveChallenge"
    INVALID_SIGNATURE = "InvalidSignature"
    IDENTITY_MISMATCH = "IdentityMismatch"


class ValidationErrorKind(str, Enum):
    NO_LINKED_ASSET = "NoLinkedAsset"
    ON_CHAIN_FAILURE = "OnChainFailure"
    SIGNER_MISMATCH = "SignerMismatch"
    NOT_A_SWAP = "NotASwap"
    BELOW_MINIMUM_VOLUME = "BelowMinimumVolume"
    MALFORMED_INPUT = "MalformedInput"


class ConflictErrorKind(str, Enum):
    ALREADY_PROCESSED = "AlreadyProcessed"


class NotFoundErrorKind(str, Enum):
    UNKNOWN_TRANSACTION = "UnknownTransaction"
    UNKNOWN_ASSET = "UnknownAsset"


class ExternalServiceErrorKind(str, Enum):
    LEDGER_UNREACHABLE = "LedgerUnreachable"
    INFERENCE_UNREACHABLE = "InferenceUnreachable"
    SWAP_BUILDER_FAILURE = "SwapBuilderFailure"


class SymbioteError(Exception):
    """Base class for every failure surfaced by the core."""

    status_code: int = 500
    status_overrides: Dict[str, int] = {}

    def __init__(self, kind: Enum, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail or kind.value
        super().__init__(self.detail)

    @property
    def http_status(self) -> int:
        return self.status_overrides.get(self.kind.value, self.status_code)

    def to_dict(self) -> Dict[str, str]:
        return {"error": self.kind.value, "detail": self.detail}


class AuthError(SymbioteError):
    status_code = 401
    status_overrides = {
        AuthErrorKind.NO_ACTIVE_CHALLENGE.value: 400,
        AuthErrorKind.IDENTITY_MISMATCH.value: 403,
    }


class ValidationError(SymbioteError):
    status_code = 400


class ConflictError(SymbioteError):
    status_code = 409


class NotFoundError(SymbioteError):
    status_code = 404


class ExternalServiceError(SymbioteError):
    status_code = 502
