"""
Game turns for a wallet's symbiote.

run_turn() is the turn-advance operation: user triggered through
POST /agent/play-turn (swap plan allowed) and called by the autoplay scheduler
through autoplay_turn() (swap plan suppressed, nothing for a human to sign).

suggest_trade() backs POST /suggest-trade; react_to_activity() is what the
wallet watcher calls when a watched wallet shows new signatures.
"""

import asyncio
import json
import logging
from dataclasses import asdict
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ValidationError, ValidationErrorKind
from app.core.wallet_auth import normalize_wallet_address
from app.db.session import SessionLocal
from app.models.game import GameAction, GameProfile, Memory, TradeSuggestion
from app.models.trades import TradeRecord
from app.models.users import User
from app.schemas.game import (
    GameProfileOut,
    SuggestTradeResponse,
    SymbioteAssessment,
    TurnPlan,
    TurnResponse,
)
from app.services.ledger import Ledger

logger = logging.getLogger(__name__)

TRADE_ENERGY_COST = 8
IDLE_ENERGY_GAIN = 3


def get_user(db: Session, wallet_address: str) -> Optional[User]:
    return db.query(User).filter(User.wallet_address == wallet_address).first()


def upsert_user(db: Session, wallet_address: str, symbiote_mint: Optional[str]) -> User:
    """Create the user row or link a new mint; a missing mint keeps the current one."""
    user = get_user(db, wallet_address)
    if user is None:
        user = User(wallet_address=wallet_address, symbiote_mint=symbiote_mint)
        db.add(user)
    elif symbiote_mint:
        user.symbiote_mint = symbiote_mint
    db.commit()
    return user


def get_profile(db: Session, wallet_address: str) -> Optional[GameProfile]:
    return db.query(GameProfile).filter(GameProfile.wallet_address == wallet_address).first()


def upsert_profile(db: Session, wallet_address: str, **patch: Any) -> GameProfile:
    profile = get_profile(db, wallet_address)
    if profile is None:
        profile = GameProfile(
            wallet_address=wallet_address,
            mode="Agentic",
            archetype="Explorer",
            streak=0,
            energy=100,
            auto_play=False,
            tick_interval_sec=settings.GAME_TICK_SECONDS,
        )
        db.add(profile)
    for key, value in patch.items():
        setattr(profile, key, value)
    db.commit()
    db.refresh(profile)
    return profile


def save_memory(db: Session, wallet_address: str, role: str, content: str) -> None:
    db.add(Memory(wallet_address=wallet_address, role=role, content=content))


def recent_memory(db: Session, wallet_address: str, limit: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(Memory)
        .filter(Memory.wallet_address == wallet_address)
        .order_by(Memory.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {"role": row.role, "content": row.content, "created_at": row.created_at}
        for row in reversed(rows)
    ]


def recent_trades(db: Session, wallet_address: str, limit: int) -> List[Dict[str, Any]]:
    rows = (
        db.query(TradeRecord)
        .filter(TradeRecord.wallet_address == wallet_address)
        .order_by(TradeRecord.id.desc())
        .limit(limit)
        .all()
    )
    return [
        {
            "signature": row.signature,
            "volume": row.volume_estimate,
            "personality": row.personality,
            "recorded_at": row.recorded_at,
        }
        for row in rows
    ]


def recent_actions(db: Session, wallet_address: str, limit: int = 20) -> List[GameAction]:
    return (
        db.query(GameAction)
        .filter(GameAction.wallet_address == wallet_address)
        .order_by(GameAction.id.desc())
        .limit(limit)
        .all()
    )


def canonical_mint(symbiote_mint: Optional[str]) -> Optional[str]:
    if not symbiote_mint:
        return None
    try:
        return normalize_wallet_address(symbiote_mint)
    except ValueError as e:
        raise ValidationError(ValidationErrorKind.MALFORMED_INPUT, f"invalid symbiote mint: {e}")


def configure_autoplay(
    db: Session, wallet_address: str, enabled: bool, interval_sec: Optional[int] = None
) -> GameProfile:
    interval = max(
        settings.AUTOPLAY_MIN_INTERVAL_SECONDS,
        int(interval_sec or settings.GAME_TICK_SECONDS),
    )
    return upsert_profile(
        db,
        wallet_address,
        mode="Agentic",
        auto_play=enabled,
        tick_interval_sec=interval,
    )


def save_suggestion(
    db: Session, wallet_address: str, assessment: SymbioteAssessment, quote: Dict[str, Any]
) -> None:
    db.add(
        TradeSuggestion(
            wallet_address=wallet_address,
            risk_profile=assessment.risk_profile,
            personality=assessment.personality,
            reaction=assessment.reaction,
            recommendation=assessment.recommendation.text,
            quote_json=json.dumps(quote),
        )
    )


class GameEngine:
    """Every database phase runs in the default executor, off the event loop."""

    def __init__(
        self,
        ledger: Ledger,
        inference,
        swap_planner,
        session_factory: Callable[[], Session] = SessionLocal,
    ):
        self.ledger = ledger
        self.inference = inference
        self.swap_planner = swap_planner
        self.session_factory = session_factory

    # ---- blocking phases ----

    def _turn_context(self, db: Session, wallet_address: str) -> Tuple[str, list, list]:
        user = get_user(db, wallet_address)
        if user is None or not user.symbiote_mint:
            raise ValidationError(
                ValidationErrorKind.NO_LINKED_ASSET,
                "Wallet is not connected to a symbiote mint.",
            )
        return (
            user.symbiote_mint,
            recent_trades(db, wallet_address, 20),
            recent_memory(db, wallet_address, 20),
        )

    def _record_turn(
        self,
        db: Session,
        wallet_address: str,
        mint: str,
        turn: TurnPlan,
        tx_base64: Optional[str],
    ) -> GameProfileOut:
        before = upsert_profile(db, wallet_address)
        energy_change = -TRADE_ENERGY_COST if turn.requires_trade else IDLE_ENERGY_GAIN
        after = upsert_profile(
            db,
            wallet_address,
            archetype=turn.archetype,
            streak=before.streak + 1,
            energy=max(0, min(100, before.energy + energy_change)),
        )
        profile = GameProfileOut.from_record(after)

        save_memory(db, wallet_address, "assistant", f"GAME_TURN {json.dumps(turn.model_dump())}")
        db.add(
            GameAction(
                wallet_address=wallet_address,
                symbiote_mint=mint,
                game_name=turn.game_name,
                objective=turn.objective,
                move_text=turn.move_text,
                outcome_text=turn.outcome_text,
                tx_base64=tx_base64,
            )
        )
        db.commit()
        return profile

    def _suggestion_context(self, db: Session, wallet_address: str) -> Tuple[list, list]:
        return recent_trades(db, wallet_address, 20), recent_memory(db, wallet_address, 15)

    def _record_assessment(
        self,
        db: Session,
        wallet_address: str,
        assessment: SymbioteAssessment,
        quote: Optional[Dict[str, Any]] = None,
    ) -> None:
        save_memory(db, wallet_address, "assistant", assessment.model_dump_json())
        if quote is not None:
            save_suggestion(db, wallet_address, assessment, quote)
        db.commit()

    # ---- operations ----

    async def run_turn(
        self, db: Session, wallet_address: str, allow_swap_build: bool = True
    ) -> TurnResponse:
        loop = asyncio.get_running_loop()
        mint, history, memory = await loop.run_in_executor(
            None, self._turn_context, db, wallet_address
        )

        symbiote = await self.ledger.fetch_asset_state(mint)
        turn = await self.inference.infer_turn(
            {
                "walletAddress": wallet_address,
                "symbiote": asdict(symbiote) if symbiote else None,
                "history": history,
                "memory": memory,
            }
        )

        swap_plan = None
        if allow_swap_build and turn.requires_trade:
            swap_plan = await self.swap_planner.build_swap_plan(wallet_address, turn.trade)

        tx_base64 = swap_plan.swap_transaction_base64 if swap_plan else None
        profile = await loop.run_in_executor(
            None, self._record_turn, db, wallet_address, mint, turn, tx_base64
        )

        return TurnResponse(
            walletAddress=wallet_address,
            symbioteMint=mint,
            turn=turn,
            gameProfile=profile,
            readyToSignSwapTransaction=tx_base64,
            jupiterQuote=swap_plan.quote if swap_plan else None,
            referralFeeAccount=settings.JUPITER_REFERRAL_FEE_ACCOUNT or None,
        )

    async def autoplay_turn(self, wallet_address: str) -> TurnResponse:
        loop = asyncio.get_running_loop()
        db = self.session_factory()
        try:
            turn = await self.run_turn(db, wallet_address, allow_swap_build=False)
            logger.debug("autoplay turn for %s: %s", wallet_address, turn.turn.move_text)
            return turn
        finally:
            await loop.run_in_executor(None, db.close)

    async def suggest_trade(self, db: Session, wallet_address: str) -> SuggestTradeResponse:
        """Assess the wallet and build the swap the symbiote recommends, unsigned."""
        loop = asyncio.get_running_loop()
        history, memory = await loop.run_in_executor(
            None, self._suggestion_context, db, wallet_address
        )
        assessment = await self.inference.infer_symbiote_state(
            {"walletAddress": wallet_address, "history": history, "memory": memory}
        )
        swap_plan = await self.swap_planner.build_swap_plan(
            wallet_address, assessment.recommendation
        )
        await loop.run_in_executor(
            None, self._record_assessment, db, wallet_address, assessment, swap_plan.quote
        )

        return SuggestTradeResponse(
            walletAddress=wallet_address,
            riskProfile=assessment.risk_profile,
            symbioteReaction=assessment.reaction,
            personality=assessment.personality,
            recommendation=assessment.recommendation,
            jupiterQuote=swap_plan.quote,
            readyToSignSwapTransaction=swap_plan.swap_transaction_base64,
            referralFeeAccount=settings.JUPITER_REFERRAL_FEE_ACCOUNT or None,
        )

    async def react_to_activity(self, wallet_address: str, signatures: List[str]) -> None:
        """New on-chain activity for a watched wallet: refresh the symbiote's read of it."""
        loop = asyncio.get_running_loop()
        db = self.session_factory()
        try:
            history, memory = await loop.run_in_executor(
                None, self._suggestion_context, db, wallet_address
            )
            assessment = await self.inference.infer_symbiote_state(
                {
                    "walletAddress": wallet_address,
                    "history": history,
                    "memory": memory,
                    "newSignatures": signatures,
                }
            )
            await loop.run_in_executor(
                None, self._record_assessment, db, wallet_address, assessment
            )
        finally:
            await loop.run_in_executor(None, db.close)
