"""
Trade settlement: apply a confirmed swap to the symbiote exactly once.

confirm() runs, in order:
1. idempotency pre-check (trade_records row or an in-flight claim)
2. linked symbiote mint for the wallet
3. fetch the confirmed transaction from the ledger
4. on-chain execution succeeded
5. wallet is one of the signers
6. at least one instruction targets the swap program
7. volume estimate >= MIN_CONFIRM_VOLUME
8. personality inference + evolution write
9. trade_records insert; the unique signature turns a lost race into AlreadyProcessed

The in-flight claim only covers this process. Across processes the unique
constraint on trade_records.signature is what holds.
"""

import logging
import math
import time
from typing import Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    ConflictError,
    ConflictErrorKind,
    NotFoundError,
    NotFoundErrorKind,
    ValidationError,
    ValidationErrorKind,
)
from app.models.game import Memory
from app.models.trades import TradeRecord
from app.models.users import User
from app.schemas.trade import EvolutionResult
from app.services.ledger import AssetState, Ledger, TokenBalance

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_ESTIMATE = 5.0
XP_PER_LEVEL = 1000


def estimate_trade_volume(
    pre_balances: List[TokenBalance], post_balances: List[TokenBalance]
) -> float:
    """
    Largest absolute token balance change across the transaction.

    Balances are matched on (account_index, mint); a post entry without a pre
    entry counts from 0. No change at all falls back to DEFAULT_VOLUME_ESTIMATE.
    """
    pre: Dict[Tuple[int, str], float] = {
        (b.account_index, b.mint): b.amount for b in pre_balances
    }
    max_delta = 0.0
    for b in post_balances:
        delta = abs(b.amount - pre.get((b.account_index, b.mint), 0.0))
        if delta > max_delta:
            max_delta = delta
    return max_delta if max_delta > 0 else DEFAULT_VOLUME_ESTIMATE


def xp_gain(volume: float) -> int:
    # half-up, not banker's rounding
    return int(math.floor(max(1.0, volume) + 0.5))


def level_for_xp(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


class TradeSettlement:
    def __init__(
        self,
        ledger: Ledger,
        inference,
        swap_program_id: str = settings.SWAP_PROGRAM_ID,
        min_volume: float = settings.MIN_CONFIRM_VOLUME,
        clock: Callable[[], float] = time.time,
    ):
        self.ledger = ledger
        self.inference = inference
        self.swap_program_id = swap_program_id
        self.min_volume = min_volume
        self.clock = clock
        self._in_flight: Set[str] = set()

    def is_processed(self, db: Session, signature: str) -> bool:
        return (
            db.query(TradeRecord.id).filter(TradeRecord.signature == signature).first()
            is not None
        )

    def _linked_mint(self, db: Session, wallet_address: str) -> Optional[str]:
        user = db.query(User).filter(User.wallet_address == wallet_address).first()
        return user.symbiote_mint if user else None

    async def confirm(self, db: Session, wallet_address: str, signature: str) -> EvolutionResult:
        signature = (signature or "").strip()
        if not signature:
            raise ValidationError(ValidationErrorKind.MALFORMED_INPUT, "signature is required")

        # no await between the check and the claim
        if signature in self._in_flight or self.is_processed(db, signature):
            raise ConflictError(
                ConflictErrorKind.ALREADY_PROCESSED, "Trade signature already processed."
            )
        self._in_flight.add(signature)
        try:
            return await self._settle(db, wallet_address, signature)
        finally:
            self._in_flight.discard(signature)

    async def _settle(self, db: Session, wallet_address: str, signature: str) -> EvolutionResult:
        mint = self._linked_mint(db, wallet_address)
        if not mint:
            raise ValidationError(
                ValidationErrorKind.NO_LINKED_ASSET,
                "Wallet is not connected to a symbiote mint.",
            )

        tx = await self.ledger.fetch_transaction(signature)
        if tx is None:
            raise NotFoundError(NotFoundErrorKind.UNKNOWN_TRANSACTION, "Transaction not found.")
        if not tx.succeeded:
            raise ValidationError(
                ValidationErrorKind.ON_CHAIN_FAILURE, "Transaction failed on-chain."
            )
        if wallet_address not in tx.signers:
            raise ValidationError(
                ValidationErrorKind.SIGNER_MISMATCH,
                "Swap signer does not match authenticated wallet.",
            )
        if self.swap_program_id not in tx.instructions:
            raise ValidationError(ValidationErrorKind.NOT_A_SWAP, "Not a swap transaction.")

        volume = estimate_trade_volume(tx.pre_token_balances, tx.post_token_balances)
        if volume < self.min_volume:
            raise ValidationError(
                ValidationErrorKind.BELOW_MINIMUM_VOLUME,
                f"Trade volume below minimum threshold ({self.min_volume}).",
            )

        previous = await self.ledger.fetch_asset_state(mint)
        previous_xp = previous.xp if previous else 0
        previous_personality = previous.personality if previous else "Neutral"
        update = await self.inference.infer_personality(
            {
                "wallet_address": wallet_address,
                "trade_volume": volume,
                "personality": previous_personality,
            }
        )

        delta = xp_gain(volume)
        new_xp = previous_xp + delta
        applied = await self.ledger.apply_evolution(
            mint,
            AssetState(
                mint=mint,
                level=level_for_xp(new_xp),
                xp=new_xp,
                personality=update.personality,
                owner=previous.owner if previous else wallet_address,
            ),
        )

        result = EvolutionResult(
            mint=mint,
            level=applied.level if applied else level_for_xp(new_xp),
            xp=applied.xp if applied else new_xp,
            personality=applied.personality if applied else update.personality,
            xpDelta=delta,
            reason=update.reason,
            tradeVolume=volume,
        )
        self._record(db, wallet_address, signature, volume, result)
        logger.info("settled trade %s for %s (+%s xp)", signature, wallet_address, delta)
        return result

    def _record(
        self,
        db: Session,
        wallet_address: str,
        signature: str,
        volume: float,
        result: EvolutionResult,
    ) -> None:
        db.add(
            TradeRecord(
                signature=signature,
                wallet_address=wallet_address,
                volume_estimate=volume,
                personality=result.personality,
                recorded_at=int(self.clock()),
            )
        )
        db.add(
            Memory(
                wallet_address=wallet_address,
                role="system",
                content=f"Evolved symbiote to {result.model_dump_json()}",
            )
        )
        try:
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.warning("trade %s recorded concurrently", signature)
            raise ConflictError(
                ConflictErrorKind.ALREADY_PROCESSED, "Trade signature already processed."
            )
