import asyncio
from typing import List, Tuple

from app.models.game import Memory, TradeSuggestion
from app.services.wallet_watch import WalletWatcher
from tests.conftest import FakeLedger


class Gate:
    """Sleep stand-in: each poll waits until the test opens the next interval."""

    def __init__(self):
        self.waiting = 0
        self._event = asyncio.Event()

    async def __call__(self, seconds: float) -> None:
        self.waiting += 1
        await self._event.wait()
        self._event = asyncio.Event()

    async def next_interval(self) -> None:
        self._event.set()
        await spin()


async def spin(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def watch_tasks(wallet_address: str) -> List[asyncio.Task]:
    return [
        task
        for task in asyncio.all_tasks()
        if task.get_name() == f"wallet-watch:{wallet_address}" and not task.done()
    ]


class Reactions:
    def __init__(self, fail: bool = False):
        self.calls: List[Tuple[str, List[str]]] = []
        self.fail = fail

    async def __call__(self, wallet_address: str, signatures: List[str]):
        self.calls.append((wallet_address, signatures))
        if self.fail:
            raise RuntimeError("model offline")


class TestWalletWatcher:
    def test_first_poll_is_only_a_baseline(self, wallet):
        ledger = FakeLedger()
        ledger.signatures[wallet.address] = ["S2", "S1"]
        reactions = Reactions()

        async def scenario():
            gate = Gate()
            watcher = WalletWatcher(ledger, reactions, sleep=gate)
            watcher.watch(wallet.address)
            await spin()
            assert reactions.calls == []

            ledger.signatures[wallet.address] = ["S4", "S3", "S2", "S1"]
            await gate.next_interval()
            await gate.next_interval()
            await watcher.shutdown()

        asyncio.run(scenario())
        assert reactions.calls == [(wallet.address, ["S4", "S3"])]

    def test_rewatch_keeps_one_poller(self, wallet):
        async def scenario():
            watcher = WalletWatcher(FakeLedger(), Reactions(), sleep=Gate())
            for _ in range(4):
                assert watcher.watch(wallet.address) is True
            await spin()
            count = len(watch_tasks(wallet.address))
            await watcher.shutdown()
            await spin()
            return count, len(watch_tasks(wallet.address)), watcher.watched_wallets()

        assert asyncio.run(scenario()) == (1, 0, [])

    def test_failures_keep_polling(self, wallet):
        ledger = FakeLedger()
        calls = {"n": 0}
        reactions = Reactions(fail=True)

        async def flaky(address, limit=10):
            calls["n"] += 1
            if calls["n"] == 2:
                raise ConnectionError("rpc down")
            return [f"S{calls['n']}"]

        ledger.fetch_recent_signatures = flaky

        async def scenario():
            gate = Gate()
            watcher = WalletWatcher(ledger, reactions, sleep=gate)
            watcher.watch(wallet.address)
            await spin()
            for _ in range(3):
                await gate.next_interval()
            running = watcher.is_watching(wallet.address) and len(watch_tasks(wallet.address)) == 1
            await watcher.shutdown()
            return running

        assert asyncio.run(scenario()) is True
        assert calls["n"] == 4
        assert [signatures for _, signatures in reactions.calls] == [["S3"], ["S4"]]

    def test_disabled_watcher_does_nothing(self, wallet):
        async def scenario():
            watcher = WalletWatcher(FakeLedger(), Reactions(), enabled=False)
            return watcher.watch(wallet.address), watcher.is_watching(wallet.address)

        assert asyncio.run(scenario()) == (False, False)

    def test_unwatch(self, wallet):
        async def scenario():
            watcher = WalletWatcher(FakeLedger(), Reactions(), sleep=Gate())
            watcher.watch(wallet.address)
            await spin()
            stopped = watcher.unwatch(wallet.address)
            await spin()
            return stopped, watcher.unwatch(wallet.address), len(watch_tasks(wallet.address))

        assert asyncio.run(scenario()) == (True, False, 0)


class TestReactToActivity:
    def test_records_assessment_without_suggestion(self, db, wallet, fake_inference, game_engine):
        asyncio.run(game_engine.react_to_activity(wallet.address, ["S9"]))

        assert fake_inference.assessment_calls == 1
        assert fake_inference.assessment_contexts[0]["newSignatures"] == ["S9"]
        memory = db.query(Memory).filter(Memory.wallet_address == wallet.address).all()
        assert len(memory) == 1
        assert '"risk_profile":"Aggressive"' in memory[0].content
        assert db.query(TradeSuggestion).count() == 0
