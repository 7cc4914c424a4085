from app.models.auth import AuthChallenge, AuthSession
from app.models.game import GameAction, GameProfile, Memory, TradeSuggestion
from app.models.symbiote import SymbioteState
from app.models.trades import TradeRecord
from app.models.users import User

__all__ = [
    "AuthChallenge",
    "AuthSession",
    "GameAction",
    "GameProfile",
    "Memory",
    "SymbioteState",
    "TradeRecord",
    "TradeSuggestion",
    "User",
]
