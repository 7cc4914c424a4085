"""
FastAPI Dependencies
This module wires the service singletons and provides the session guard that
every identity-scoped route depends on.
Usage in endpoints:
    @router.post("/protected")
    async def protected_route(wallet_address: str = Depends(get_current_wallet)):
        # wallet_address is resolved from the bearer session
        return {"user": wallet_address}
Flow:
1. Client sends request with Authorization: Bearer <token> header
2. FastAPI calls get_current_wallet() dependency
3. _extract_token() strips the Bearer prefix
4. SessionManager.resolve() looks the token up (expired rows are deleted)
5. Returns wallet_address to the route handler
Tests swap any service through app.dependency_overrides.
"""

from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from app.db.session import get_db
from app.services.authenticator import Authenticator
from app.services.autoplay import AutoplayScheduler
from app.services.game_engine import GameEngine
from app.services.inference import SymbioteInference
from app.services.ledger import Ledger
from app.services.session_manager import SessionManager
from app.services.swap_plan import JupiterSwapPlanner
from app.services.trade_settlement import TradeSettlement
from app.services.wallet_watch import WalletWatcher

authenticator = Authenticator()
session_manager = SessionManager()
ledger = Ledger()
inference = SymbioteInference()
game_engine = GameEngine(ledger, inference, JupiterSwapPlanner())
# the scheduler drives turns as the service itself, not as an end-user session
autoplay_scheduler = AutoplayScheduler(game_engine.autoplay_turn)
trade_settlement = TradeSettlement(ledger, inference)
wallet_watcher = WalletWatcher(ledger, game_engine.react_to_activity)


def _extract_token(authorization: Optional[str]) -> Optional[str]:
    """
    Extract the session token from the Authorization header.
    Supports both "Bearer <token>" and plain token formats.
    """
    if not authorization:
        return None
    authorization = authorization.strip()
    if authorization.lower().startswith("bearer "):
        return authorization[7:].strip()
    return authorization


def get_authenticator() -> Authenticator:
    return authenticator


def get_session_manager() -> SessionManager:
    return session_manager


def get_ledger() -> Ledger:
    return ledger


def get_game_engine() -> GameEngine:
    return game_engine


def get_autoplay_scheduler() -> AutoplayScheduler:
    return autoplay_scheduler


def get_trade_settlement() -> TradeSettlement:
    return trade_settlement


def get_wallet_watcher() -> WalletWatcher:
    return wallet_watcher


def get_current_wallet(
    authorization: Optional[str] = Header(None, alias="Authorization"),
    db: Session = Depends(get_db),
    sessions: SessionManager = Depends(get_session_manager),
) -> str:
    """
    returning wallet address of the bearer session.
    """
    return sessions.resolve(db, _extract_token(authorization))
