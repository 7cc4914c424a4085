import asyncio
import base64
import os
from typing import Dict, Generator, List, Optional, Tuple
from unittest.mock import patch

os.environ.setdefault("DATABASE_URL", "sqlite://")

import base58
import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

import main
from main import app
from app import models  # noqa: F401
from app.core import dependencies
from app.core.config import settings
from app.db.base import Base
from app.db.session import get_db
from app.core.rate_limit import limiter
from app.schemas.game import SymbioteAssessment, TradeIntent, TurnPlan
from app.schemas.trade import PersonalityUpdate
from app.services.autoplay import AutoplayScheduler
from app.services.game_engine import GameEngine
from app.services.ledger import AssetState, LedgerTransaction, TokenBalance
from app.services.swap_plan import SwapPlan
from app.services.trade_settlement import TradeSettlement
from app.services.wallet_watch import WalletWatcher


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

SWAP_PROGRAM_ID = settings.SWAP_PROGRAM_ID


def override_get_db() -> Generator:
    """Override database dependency for testing"""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


class Wallet:
    """Throwaway ed25519 keypair standing in for a browser wallet."""

    def __init__(self):
        self.key = Ed25519PrivateKey.generate()
        raw = self.key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw)
        self.address = base58.b58encode(raw).decode()

    def sign(self, message: str) -> bytes:
        return self.key.sign(message.encode("utf-8"))

    def sign_base64(self, message: str) -> str:
        return base64.b64encode(self.sign(message)).decode()


class FakeClock:
    def __init__(self, now: float = 1_700_000_000):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeLedger:
    """In-memory ledger; every call yields to the event loop once."""

    def __init__(self):
        self.transactions: Dict[str, LedgerTransaction] = {}
        self.assets: Dict[str, AssetState] = {}
        self.applied: List[Tuple[str, AssetState]] = []
        self.signatures: Dict[str, List[str]] = {}
        self.on_fetch = None

    async def fetch_transaction(self, signature: str) -> Optional[LedgerTransaction]:
        await asyncio.sleep(0)
        if self.on_fetch is not None:
            self.on_fetch(signature)
        return self.transactions.get(signature)

    async def fetch_asset_state(self, mint: str) -> Optional[AssetState]:
        await asyncio.sleep(0)
        return self.assets.get(mint)

    async def apply_evolution(self, mint: str, state: AssetState) -> AssetState:
        await asyncio.sleep(0)
        self.applied.append((mint, state))
        self.assets[mint] = state
        return state

    async def fetch_recent_signatures(self, address: str, limit: int = 10) -> List[str]:
        await asyncio.sleep(0)
        return list(self.signatures.get(address, []))[:limit]


class FakeInference:
    def __init__(self, personality: str = "Calculated"):
        self.personality = personality
        self.turn = TurnPlan()
        self.assessment = SymbioteAssessment(
            risk_profile="Aggressive",
            personality="Restless",
            reaction="You chase every green candle.",
            recommendation=TradeIntent(text="Park half in USDC.", amount_lamports_or_units="5000000"),
        )
        self.personality_calls = 0
        self.turn_calls = 0
        self.assessment_calls = 0
        self.assessment_contexts: List[dict] = []

    async def infer_personality(self, context):
        self.personality_calls += 1
        return PersonalityUpdate(personality=self.personality, reason="steady hands")

    async def infer_turn(self, context):
        self.turn_calls += 1
        return self.turn

    async def infer_symbiote_state(self, context):
        self.assessment_calls += 1
        self.assessment_contexts.append(context)
        return self.assessment


class FakeSwapPlanner:
    def __init__(self):
        self.calls = 0

    async def build_swap_plan(self, wallet_address, intent) -> SwapPlan:
        self.calls += 1
        return SwapPlan(quote={"inAmount": intent.amount_lamports_or_units}, swap_transaction_base64="AQID")


def make_swap_tx(
    signature: str,
    signer: str,
    pre: Optional[List[TokenBalance]] = None,
    post: Optional[List[TokenBalance]] = None,
    program: str = SWAP_PROGRAM_ID,
    succeeded: bool = True,
) -> LedgerTransaction:
    if pre is None and post is None:
        pre = [TokenBalance(account_index=0, mint="USDC", amount=100.0)]
        post = [TokenBalance(account_index=0, mint="USDC", amount=80.0)]
    return LedgerTransaction(
        signature=signature,
        succeeded=succeeded,
        signers=[signer],
        instructions=["ComputeBudget111111111111111111111111111111", program],
        pre_token_balances=pre or [],
        post_token_balances=post or [],
    )


@pytest.fixture(autouse=True)
def tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def other_wallet() -> Wallet:
    return Wallet()


@pytest.fixture
def fake_ledger() -> FakeLedger:
    return FakeLedger()


@pytest.fixture
def fake_inference() -> FakeInference:
    return FakeInference()


@pytest.fixture
def fake_swap_planner() -> FakeSwapPlanner:
    return FakeSwapPlanner()


@pytest.fixture
def settlement(fake_ledger, fake_inference, clock) -> TradeSettlement:
    return TradeSettlement(fake_ledger, fake_inference, swap_program_id=SWAP_PROGRAM_ID, clock=clock)


@pytest.fixture
def game_engine(fake_ledger, fake_inference, fake_swap_planner) -> GameEngine:
    return GameEngine(fake_ledger, fake_inference, fake_swap_planner, session_factory=TestingSessionLocal)


@pytest.fixture
def scheduler(game_engine) -> AutoplayScheduler:
    return AutoplayScheduler(game_engine.autoplay_turn, session_factory=TestingSessionLocal)


@pytest.fixture
def watcher(fake_ledger, game_engine) -> WalletWatcher:
    return WalletWatcher(fake_ledger, game_engine.react_to_activity, interval_seconds=3600)


@pytest.fixture
def client(fake_ledger, settlement, game_engine, scheduler, watcher) -> TestClient:
    """Create a test client for the FastAPI application"""
    limiter.reset()
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[dependencies.get_ledger] = lambda: fake_ledger
    app.dependency_overrides[dependencies.get_trade_settlement] = lambda: settlement
    app.dependency_overrides[dependencies.get_game_engine] = lambda: game_engine
    app.dependency_overrides[dependencies.get_autoplay_scheduler] = lambda: scheduler
    app.dependency_overrides[dependencies.get_wallet_watcher] = lambda: watcher
    with patch.object(main, "autoplay_scheduler", scheduler), patch.object(main, "wallet_watcher", watcher):
        with TestClient(app) as test_client:
            yield test_client
    app.dependency_overrides.clear()


def login(client: TestClient, wallet: Wallet) -> str:
    """Run the challenge/verify handshake and return the session token."""
    challenge = client.post("/auth/challenge", json={"walletAddress": wallet.address}).json()
    response = client.post(
        "/auth/verify",
        json={
            "walletAddress": wallet.address,
            "signatureBase64": wallet.sign_base64(challenge["message"]),
        },
    )
    assert response.status_code == 200, response.text
    return response.json()["token"]


def auth_header(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
