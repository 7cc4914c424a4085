from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import app.schemas.trade as schemas
from app.core.dependencies import get_current_wallet, get_trade_settlement
from app.db.session import get_db
from app.services.session_manager import require_identity_match
from app.services.trade_settlement import TradeSettlement

router = APIRouter()
group_tags = ["Trade"]


@router.post(
    "/confirm-trade",
    tags=group_tags,
    response_model=schemas.ConfirmTradeResponse,
)
async def confirm_trade(
    body: schemas.ConfirmTradeRequest,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    settlement: TradeSettlement = Depends(get_trade_settlement),
) -> schemas.ConfirmTradeResponse:
    """
    Settle a confirmed swap transaction and evolve the wallet's symbiote.

    Responses:
    - 200: evolved state
    - 400: NoLinkedAsset, OnChainFailure, SignerMismatch, NotASwap, BelowMinimumVolume
    - 404: UnknownTransaction
    - 409: AlreadyProcessed
    """
    require_identity_match(wallet_address, body.walletAddress)
    evolved = await settlement.confirm(db, wallet_address, body.signature)
    return schemas.ConfirmTradeResponse(
        confirmed=True,
        signature=body.signature.strip(),
        tradeVolume=evolved.tradeVolume,
        evolvedState=evolved,
    )
