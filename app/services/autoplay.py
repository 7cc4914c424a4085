"""
Autoplay scheduler: one recurring turn loop per wallet.

Per wallet the state is Idle (no loop) or Running (one ScheduledLoop).
reconcile() tears the current loop down before reading the profile and again
right before starting the new one, so repeated reconfiguration can never leave
two loops alive for one wallet.

Ticks are fire-and-forget: a tick that is still waiting on the ledger or the
model when the next interval elapses does not hold that next tick back, so two
turns for the same wallet can be in flight at once. A failing tick is logged
and dropped; the loop keeps going. Ticks belong to the scheduler, not to the
loop that spawned them: replacing a loop leaves its running ticks to finish,
shutdown() cancels all of them.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, List, Optional, Set, Tuple

from sqlalchemy.orm import Session

from app.core.config import settings
from app.db.session import SessionLocal
from app.models.game import GameProfile

logger = logging.getLogger(__name__)

TurnRunner = Callable[[str], Awaitable[object]]


@dataclass
class ScheduledLoop:
    wallet_address: str
    interval_seconds: int
    task: Optional[asyncio.Task] = None


class AutoplayScheduler:
    def __init__(
        self,
        turn_runner: TurnRunner,
        session_factory: Callable[[], Session] = SessionLocal,
        min_interval_seconds: int = settings.AUTOPLAY_MIN_INTERVAL_SECONDS,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.turn_runner = turn_runner
        self.session_factory = session_factory
        self.min_interval_seconds = min_interval_seconds
        self._sleep = sleep
        self._loops: Dict[str, ScheduledLoop] = {}
        self._ticks: Set[asyncio.Task] = set()

    def _load_config(self, wallet_address: str) -> Optional[Tuple[bool, int]]:
        db = self.session_factory()
        try:
            profile = (
                db.query(GameProfile)
                .filter(GameProfile.wallet_address == wallet_address)
                .first()
            )
            if profile is None:
                return None
            return bool(profile.auto_play), int(profile.tick_interval_sec or 0)
        finally:
            db.close()

    def effective_interval(self, configured: int) -> int:
        return max(self.min_interval_seconds, int(configured or 0))

    async def reconcile(self, wallet_address: str) -> bool:
        """
        Bring the wallet's loop in line with its stored profile.
        Returns True when a loop is running afterwards.
        """
        self.cancel(wallet_address)

        loop = asyncio.get_running_loop()
        config = await loop.run_in_executor(None, self._load_config, wallet_address)
        # a concurrent reconcile may have started a loop while the profile was read
        self.cancel(wallet_address)
        if config is None or not config[0]:
            return False

        scheduled = ScheduledLoop(
            wallet_address=wallet_address,
            interval_seconds=self.effective_interval(config[1]),
        )
        scheduled.task = loop.create_task(
            self._run(scheduled), name=f"autoplay:{wallet_address}"
        )
        self._loops[wallet_address] = scheduled
        logger.info(
            "autoplay started for %s every %ss", wallet_address, scheduled.interval_seconds
        )
        return True

    def cancel(self, wallet_address: str) -> bool:
        scheduled = self._loops.pop(wallet_address, None)
        if scheduled is None:
            return False
        if scheduled.task is not None:
            scheduled.task.cancel()
        logger.info("autoplay stopped for %s", wallet_address)
        return True

    async def _run(self, scheduled: ScheduledLoop) -> None:
        while True:
            await self._sleep(scheduled.interval_seconds)
            tick = asyncio.create_task(
                self._tick(scheduled.wallet_address),
                name=f"autoplay-tick:{scheduled.wallet_address}",
            )
            self._ticks.add(tick)
            tick.add_done_callback(self._ticks.discard)

    async def _tick(self, wallet_address: str) -> None:
        try:
            await self.turn_runner(wallet_address)
        except Exception:
            logger.exception("auto play turn failed for %s", wallet_address)

    def is_running(self, wallet_address: str) -> bool:
        return wallet_address in self._loops

    def interval_for(self, wallet_address: str) -> Optional[int]:
        scheduled = self._loops.get(wallet_address)
        return scheduled.interval_seconds if scheduled else None

    def active_wallets(self) -> List[str]:
        return list(self._loops)

    def in_flight_ticks(self) -> int:
        return len(self._ticks)

    async def shutdown(self) -> None:
        """Cancel every loop and every in-flight tick, including ticks of replaced loops."""
        pending: List[asyncio.Task] = []
        for wallet_address in list(self._loops):
            scheduled = self._loops.pop(wallet_address)
            if scheduled.task is not None:
                pending.append(scheduled.task)
        pending.extend(self._ticks)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._ticks.clear()
        logger.info("autoplay scheduler stopped (%s tasks)", len(pending))
