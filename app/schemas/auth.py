from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel


class ChallengeRequest(BaseModel):
    """Request model for challenge issuance - input validation"""

    walletAddress: str = Field(..., description="base58 wallet address")


class ChallengeResponse(CustomBaseModel):
    """Response model for challenge issuance - output"""

    walletAddress: str = ""
    nonce: str = ""
    message: str = ""
    expiresAt: int = 0


class VerifyRequest(BaseModel):
    """Request model for wallet verification - input validation"""

    walletAddress: str = Field(..., description="base58 wallet address")
    signatureBase64: str = Field(..., description="Signature of the challenge message")


class VerifyResponse(CustomBaseModel):
    """Response model for authentication - output"""

    authenticated: bool = True
    walletAddress: str = ""
    token: str = ""
    tokenType: str = "bearer"
    expiresAt: int = 0
