from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel


class ConfirmTradeRequest(BaseModel):
    """Request model for swap confirmation - input validation"""

    walletAddress: str = Field(..., description="base58 wallet address")
    signature: str = Field(..., description="Confirmed swap transaction signature")


class PersonalityUpdate(CustomBaseModel):
    """Post-trade personality inference, defaulted field by field"""

    personality: str = "Neutral"
    reason: str = "Updated from latest trade behavior."


class EvolutionResult(CustomBaseModel):
    """State written to the ledger after a settled trade"""

    mint: str = ""
    level: int = 1
    xp: int = 0
    personality: str = "Neutral"
    xpDelta: int = 0
    reason: str = ""
    tradeVolume: float = 0.0


class ConfirmTradeResponse(CustomBaseModel):
    confirmed: bool = True
    signature: str = ""
    tradeVolume: float = 0.0
    evolvedState: EvolutionResult = Field(default_factory=EvolutionResult)
