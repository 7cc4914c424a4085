from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from app.schemas.my_base_model import CustomBaseModel

SOL_MINT = "So11111111111111111111111111111111111111112"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
DEFAULT_RECOMMENDATION_TEXT = "You are overexposed to risk, rotate into SOL and stables."


class ConnectRequest(BaseModel):
    walletAddress: str = Field(..., description="base58 wallet address")
    symbioteMint: Optional[str] = Field(None, description="Symbiote pet mint to link")


class ConnectResponse(CustomBaseModel):
    status: str = "connected"
    walletAddress: str = ""
    symbioteMint: Optional[str] = None
    autoPlayActive: bool = False


class PlayTurnRequest(BaseModel):
    walletAddress: str = Field(..., description="base58 wallet address")


class AutoPlayRequest(BaseModel):
    walletAddress: str = Field(..., description="base58 wallet address")
    enabled: bool = Field(..., description="Turn autoplay on or off")
    intervalSec: Optional[int] = Field(None, description="Seconds between turns, floor 60")


class AutoPlayResponse(CustomBaseModel):
    walletAddress: str = ""
    enabled: bool = False
    intervalSec: int = 0
    autoPlayActive: bool = False


class SuggestTradeRequest(BaseModel):
    walletAddress: str = Field(..., description="base58 wallet address")


# ============================================
# Inference output
# ============================================


class TradeIntent(CustomBaseModel):
    """Swap the symbiote wants its owner to sign"""

    text: str = "Rotate some risk into SOL."
    input_mint: str = SOL_MINT
    output_mint: str = USDC_MINT
    amount_lamports_or_units: str = "10000000"


class TurnPlan(CustomBaseModel):
    """One game turn as produced by the game master model"""

    game_name: str = "Symbiote Arena"
    objective: str = "Preserve energy while compounding XP."
    move_text: str = "The Symbiote scouts liquidity corridors."
    outcome_text: str = "No catastrophic encounter this round."
    archetype: str = "Explorer"
    requires_trade: bool = False
    trade: TradeIntent = Field(default_factory=TradeIntent)


class SymbioteAssessment(CustomBaseModel):
    """Read of the owner's trading behaviour plus the swap the symbiote suggests"""

    risk_profile: str = "Balanced"
    personality: str = "Adaptive"
    reaction: str = "I am adapting to your current market tempo."
    recommendation: TradeIntent = Field(
        default_factory=lambda: TradeIntent(text=DEFAULT_RECOMMENDATION_TEXT)
    )


# ============================================
# State views
# ============================================


class SymbioteStateOut(CustomBaseModel):
    mint: str = ""
    owner: Optional[str] = None
    level: int = 1
    xp: int = 0
    personality: str = "Neutral"
    uri: Optional[str] = None


class GameProfileOut(CustomBaseModel):
    wallet_address: str = ""
    mode: str = "Agentic"
    archetype: str = "Explorer"
    streak: int = 0
    energy: int = 100
    auto_play: bool = False
    tick_interval_sec: int = 300


class GameActionOut(CustomBaseModel):
    id: int = 0
    game_name: str = ""
    objective: str = ""
    move_text: str = ""
    outcome_text: str = ""
    tx_base64: Optional[str] = None
    created_at: Optional[datetime] = None


class TurnResponse(CustomBaseModel):
    walletAddress: str = ""
    symbioteMint: str = ""
    turn: TurnPlan = Field(default_factory=TurnPlan)
    gameProfile: GameProfileOut = Field(default_factory=GameProfileOut)
    readyToSignSwapTransaction: Optional[str] = None
    jupiterQuote: Optional[Dict[str, Any]] = None
    referralFeeAccount: Optional[str] = None


class AgentStateResponse(CustomBaseModel):
    walletAddress: str = ""
    profile: Optional[GameProfileOut] = None
    symbiote: Optional[SymbioteStateOut] = None
    recentActions: List[GameActionOut] = Field(default_factory=list)
    autoPlayActive: bool = False


class SuggestTradeResponse(CustomBaseModel):
    walletAddress: str = ""
    riskProfile: str = "Balanced"
    symbioteReaction: str = ""
    personality: str = "Adaptive"
    recommendation: TradeIntent = Field(default_factory=TradeIntent)
    jupiterQuote: Optional[Dict[str, Any]] = None
    readyToSignSwapTransaction: Optional[str] = None
    referralFeeAccount: Optional[str] = None
