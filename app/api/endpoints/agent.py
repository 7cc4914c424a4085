from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

import app.schemas.game as schemas
from app.core.dependencies import (
    get_autoplay_scheduler,
    get_current_wallet,
    get_game_engine,
    get_ledger,
    get_wallet_watcher,
)
from app.db.session import get_db
from app.services import game_engine as games
from app.services.autoplay import AutoplayScheduler
from app.services.game_engine import GameEngine
from app.services.ledger import Ledger
from app.services.session_manager import require_identity_match
from app.services.wallet_watch import WalletWatcher

router = APIRouter()
group_tags: List[str] = ["Agent"]


@router.post(
    "/connect-wallet",
    tags=group_tags,
    response_model=schemas.ConnectResponse,
)
async def connect_wallet(
    body: schemas.ConnectRequest,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    scheduler: AutoplayScheduler = Depends(get_autoplay_scheduler),
    watcher: WalletWatcher = Depends(get_wallet_watcher),
) -> schemas.ConnectResponse:
    """
    Link a symbiote mint to the wallet and make sure it has a game profile.
    Omitting symbioteMint keeps the mint linked earlier. Reconnecting restarts
    the wallet activity watch.
    """
    require_identity_match(wallet_address, body.walletAddress)
    mint = games.canonical_mint(body.symbioteMint)

    user = games.upsert_user(db, wallet_address, mint)
    games.upsert_profile(db, wallet_address)
    active = await scheduler.reconcile(wallet_address)
    watcher.watch(wallet_address)
    return schemas.ConnectResponse(
        status="connected",
        walletAddress=wallet_address,
        symbioteMint=user.symbiote_mint,
        autoPlayActive=active,
    )


@router.post(
    "/agent/play-turn",
    tags=group_tags,
    response_model=schemas.TurnResponse,
)
async def play_turn(
    body: schemas.PlayTurnRequest,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    engine: GameEngine = Depends(get_game_engine),
) -> schemas.TurnResponse:
    """Play one turn now; may return an unsigned swap transaction for the owner to sign."""
    require_identity_match(wallet_address, body.walletAddress)
    return await engine.run_turn(db, wallet_address, allow_swap_build=True)


@router.get(
    "/agent/state/{walletAddress}",
    tags=group_tags,
    response_model=schemas.AgentStateResponse,
)
async def agent_state(
    walletAddress: str,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    ledger: Ledger = Depends(get_ledger),
    scheduler: AutoplayScheduler = Depends(get_autoplay_scheduler),
) -> schemas.AgentStateResponse:
    require_identity_match(wallet_address, walletAddress)

    profile = games.get_profile(db, wallet_address)
    user = games.get_user(db, wallet_address)
    symbiote = None
    if user and user.symbiote_mint:
        state = await ledger.fetch_asset_state(user.symbiote_mint)
        if state:
            symbiote = schemas.SymbioteStateOut.from_record(state)

    return schemas.AgentStateResponse(
        walletAddress=wallet_address,
        profile=schemas.GameProfileOut.from_record(profile) if profile else None,
        symbiote=symbiote,
        recentActions=[
            schemas.GameActionOut.from_record(action)
            for action in games.recent_actions(db, wallet_address, 12)
        ],
        autoPlayActive=scheduler.is_running(wallet_address),
    )


@router.post(
    "/agent/auto-play",
    tags=group_tags,
    response_model=schemas.AutoPlayResponse,
)
async def configure_auto_play(
    body: schemas.AutoPlayRequest,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    scheduler: AutoplayScheduler = Depends(get_autoplay_scheduler),
) -> schemas.AutoPlayResponse:
    """
    Turn autoplay on or off. The interval is clamped to at least 60 seconds;
    any running loop for the wallet is replaced.
    """
    require_identity_match(wallet_address, body.walletAddress)
    profile = games.configure_autoplay(db, wallet_address, body.enabled, body.intervalSec)
    active = await scheduler.reconcile(wallet_address)
    return schemas.AutoPlayResponse(
        walletAddress=wallet_address,
        enabled=body.enabled,
        intervalSec=profile.tick_interval_sec,
        autoPlayActive=active,
    )


@router.post(
    "/suggest-trade",
    tags=group_tags,
    response_model=schemas.SuggestTradeResponse,
)
async def suggest_trade(
    body: schemas.SuggestTradeRequest,
    wallet_address: str = Depends(get_current_wallet),
    db: Session = Depends(get_db),
    engine: GameEngine = Depends(get_game_engine),
) -> schemas.SuggestTradeResponse:
    """
    Ask the symbiote to read the wallet's recent trades and propose a swap.

    The response carries the symbiote's risk profile and reaction plus an unsigned
    swap transaction (base64) that the owner signs client-side. Nothing is executed here.
    """
    require_identity_match(wallet_address, body.walletAddress)
    return await engine.suggest_trade(db, wallet_address)
