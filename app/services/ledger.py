"""
Ledger collaborators.

SolanaRpcLedger reads confirmed transactions over JSON-RPC (getTransaction,
jsonParsed encoding) and flattens them into LedgerTransaction.

SymbioteStateLedger holds the evolution state (level / xp / personality) of
every symbiote mint and is the writer trade settlement applies evolutions to.

Both expose async methods; the blocking work (requests, SQLAlchemy) runs in the
default executor.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

import requests
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import ExternalServiceError, ExternalServiceErrorKind
from app.db.session import SessionLocal
from app.models.symbiote import SymbioteState

logger = logging.getLogger(__name__)


@dataclass
class TokenBalance:
    account_index: int
    mint: str
    amount: float


@dataclass
class LedgerTransaction:
    signature: str
    succeeded: bool
    signers: List[str] = field(default_factory=list)
    instructions: List[str] = field(default_factory=list)  # program ids
    pre_token_balances: List[TokenBalance] = field(default_factory=list)
    post_token_balances: List[TokenBalance] = field(default_factory=list)


@dataclass
class AssetState:
    mint: str
    level: int = 1
    xp: int = 0
    personality: str = "Neutral"
    owner: Optional[str] = None
    uri: Optional[str] = None


def _token_balances(entries: Optional[List[Dict[str, Any]]]) -> List[TokenBalance]:
    balances = []
    for entry in entries or []:
        ui_amount = (entry.get("uiTokenAmount") or {}).get("uiAmount")
        balances.append(
            TokenBalance(
                account_index=int(entry.get("accountIndex", 0)),
                mint=str(entry.get("mint", "")),
                amount=float(ui_amount or 0),
            )
        )
    return balances


def parse_transaction(signature: str, result: Dict[str, Any]) -> LedgerTransaction:
    """Flatten a jsonParsed getTransaction result."""
    meta = result.get("meta") or {}
    message = (result.get("transaction") or {}).get("message") or {}

    signers = [
        key.get("pubkey", "")
        for key in message.get("accountKeys", [])
        if isinstance(key, dict) and key.get("signer")
    ]
    programs = [
        ix.get("programId", "")
        for ix in message.get("instructions", [])
        if isinstance(ix, dict) and ix.get("programId")
    ]
    return LedgerTransaction(
        signature=signature,
        succeeded=meta.get("err") is None,
        signers=signers,
        instructions=programs,
        pre_token_balances=_token_balances(meta.get("preTokenBalances")),
        post_token_balances=_token_balances(meta.get("postTokenBalances")),
    )


class SolanaRpcLedger:
    def __init__(
        self,
        rpc_url: str = settings.SOLANA_RPC_URL,
        timeout: float = settings.HTTP_TIMEOUT_SECONDS,
    ):
        self.rpc_url = rpc_url
        self.timeout = timeout

    def _rpc(self, method: str, params: list) -> Any:
        body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params}
        try:
            response = requests.post(self.rpc_url, json=body, timeout=self.timeout)
        except requests.RequestException as e:
            raise ExternalServiceError(
                ExternalServiceErrorKind.LEDGER_UNREACHABLE, f"RPC {method} failed: {e}"
            )
        if response.status_code != 200:
            raise ExternalServiceError(
                ExternalServiceErrorKind.LEDGER_UNREACHABLE,
                f"RPC {method} failed: {response.status_code} {response.text}",
            )
        try:
            data = response.json()
        except ValueError:
            raise ExternalServiceError(
                ExternalServiceErrorKind.LEDGER_UNREACHABLE,
                f"RPC {method} returned a non-JSON body",
            )
        if not isinstance(data, dict):
            raise ExternalServiceError(
                ExternalServiceErrorKind.LEDGER_UNREACHABLE,
                f"RPC {method} returned an unexpected payload",
            )
        if data.get("error"):
            raise ExternalServiceError(
                ExternalServiceErrorKind.LEDGER_UNREACHABLE,
                f"RPC {method} error: {data['error']}",
            )
        return data.get("result")

    def _fetch_transaction(self, signature: str) -> Optional[LedgerTransaction]:
        result = self._rpc(
            "getTransaction",
            [
                signature,
                {
                    "encoding": "jsonParsed",
                    "commitment": "confirmed",
                    "maxSupportedTransactionVersion": 0,
                },
            ],
        )
        if not result:
            return None
        return parse_transaction(signature, result)

    async def fetch_transaction(self, signature: str) -> Optional[LedgerTransaction]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_transaction, signature)

    def _fetch_recent_signatures(self, address: str, limit: int) -> List[str]:
        result = self._rpc(
            "getSignaturesForAddress",
            [address, {"limit": limit, "commitment": "confirmed"}],
        )
        return [
            entry["signature"]
            for entry in result or []
            if isinstance(entry, dict) and entry.get("signature")
        ]

    async def fetch_recent_signatures(self, address: str, limit: int = 10) -> List[str]:
        """Newest first, as the RPC node returns them."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch_recent_signatures, address, limit)


class SymbioteStateLedger:
    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self.session_factory = session_factory

    def _fetch(self, mint: str) -> Optional[AssetState]:
        db = self.session_factory()
        try:
            row = db.query(SymbioteState).filter(SymbioteState.mint == mint).first()
            if row is None:
                return None
            return AssetState(
                mint=row.mint,
                level=row.level,
                xp=row.xp,
                personality=row.personality,
                owner=row.owner,
                uri=row.uri,
            )
        finally:
            db.close()

    def _apply(self, mint: str, state: AssetState) -> AssetState:
        db = self.session_factory()
        try:
            row = db.query(SymbioteState).filter(SymbioteState.mint == mint).first()
            if row is None:
                row = SymbioteState(mint=mint, owner=state.owner)
                db.add(row)
            row.level = state.level
            row.xp = state.xp
            row.personality = state.personality
            db.commit()
            logger.info("evolved %s to level %s xp %s", mint, state.level, state.xp)
            return AssetState(
                mint=row.mint,
                level=row.level,
                xp=row.xp,
                personality=row.personality,
                owner=row.owner,
                uri=row.uri,
            )
        finally:
            db.close()

    async def fetch_asset_state(self, mint: str) -> Optional[AssetState]:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._fetch, mint)

    async def apply_evolution(self, mint: str, state: AssetState) -> AssetState:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._apply, mint, state)


class Ledger:
    """Reader and writer pair handed to the services."""

    def __init__(
        self,
        reader: Optional[SolanaRpcLedger] = None,
        writer: Optional[SymbioteStateLedger] = None,
    ):
        self.reader = reader or SolanaRpcLedger()
        self.writer = writer or SymbioteStateLedger()

    async def fetch_transaction(self, signature: str) -> Optional[LedgerTransaction]:
        return await self.reader.fetch_transaction(signature)

    async def fetch_recent_signatures(self, address: str, limit: int = 10) -> List[str]:
        return await self.reader.fetch_recent_signatures(address, limit)

    async def fetch_asset_state(self, mint: str) -> Optional[AssetState]:
        return await self.writer.fetch_asset_state(mint)

    async def apply_evolution(self, mint: str, state: AssetState) -> AssetState:
        return await self.writer.apply_evolution(mint, state)
