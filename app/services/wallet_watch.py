"""
Wallet watcher: one activity poller per connected wallet.

watch() follows the same discipline as the autoplay scheduler: any poller the
wallet already has is cancelled before the new one is registered, so a wallet
never has two. Each poller asks the ledger for the wallet's newest signatures;
the first poll only sets the baseline, later polls hand unseen signatures to
on_activity. Failures on either side are logged and the poller keeps going.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional

from app.core.config import settings

logger = logging.getLogger(__name__)

ActivityHandler = Callable[[str, List[str]], Awaitable[object]]

SIGNATURE_WINDOW = 10


@dataclass
class WatchedWallet:
    wallet_address: str
    task: Optional[asyncio.Task] = None


class WalletWatcher:
    def __init__(
        self,
        ledger,
        on_activity: ActivityHandler,
        interval_seconds: int = settings.WALLET_WATCH_INTERVAL_SECONDS,
        enabled: bool = settings.WALLET_WATCH_ENABLED,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.ledger = ledger
        self.on_activity = on_activity
        self.interval_seconds = interval_seconds
        self.enabled = enabled
        self._sleep = sleep
        self._watched: Dict[str, WatchedWallet] = {}

    def watch(self, wallet_address: str) -> bool:
        """Start (or restart) polling the wallet. Must run inside the event loop."""
        self.unwatch(wallet_address)
        if not self.enabled:
            return False

        watched = WatchedWallet(wallet_address=wallet_address)
        watched.task = asyncio.get_running_loop().create_task(
            self._run(watched), name=f"wallet-watch:{wallet_address}"
        )
        self._watched[wallet_address] = watched
        logger.info("watching %s every %ss", wallet_address, self.interval_seconds)
        return True

    def unwatch(self, wallet_address: str) -> bool:
        watched = self._watched.pop(wallet_address, None)
        if watched is None:
            return False
        if watched.task is not None:
            watched.task.cancel()
        return True

    def is_watching(self, wallet_address: str) -> bool:
        return wallet_address in self._watched

    def watched_wallets(self) -> List[str]:
        return list(self._watched)

    async def _run(self, watched: WatchedWallet) -> None:
        wallet_address = watched.wallet_address
        seen: Optional[set] = None
        while True:
            try:
                signatures = await self.ledger.fetch_recent_signatures(
                    wallet_address, SIGNATURE_WINDOW
                )
            except Exception:
                logger.exception("signature poll failed for %s", wallet_address)
            else:
                if seen is not None:
                    fresh = [s for s in signatures if s not in seen]
                    if fresh:
                        await self._react(wallet_address, fresh)
                # only the current window is kept; older signatures never come back
                seen = set(signatures)
            await self._sleep(self.interval_seconds)

    async def _react(self, wallet_address: str, signatures: List[str]) -> None:
        try:
            await self.on_activity(wallet_address, signatures)
        except Exception:
            logger.exception("activity handler failed for %s", wallet_address)

    async def shutdown(self) -> None:
        tasks = []
        for wallet_address in list(self._watched):
            watched = self._watched.pop(wallet_address)
            if watched.task is not None:
                watched.task.cancel()
                tasks.append(watched.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("wallet watcher stopped (%s wallets)", len(tasks))
