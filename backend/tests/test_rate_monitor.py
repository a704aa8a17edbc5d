import asyncio
import threading
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from wallet.db.base import Base
from wallet.services.analytics import RATE_CACHE_WRITE_FAILED, RATE_FETCH_FAILED, RATE_UPDATE
from wallet.services.errors import CacheWriteError, DecodeError, NetworkError
from wallet.services.ledger import InputTransaction, LedgerStore
from wallet.services.rate_cache import PriceSample, RateCache
from wallet.services.rate_monitor import MonitorState, RateMonitor

SEEDED_AT = datetime(2026, 1, 1, tzinfo=timezone.utc)


class ScriptedFetcher:
    """Returns (or raises) scripted results in order, repeating the last one."""

    def __init__(self, *results, delay: float = 0.0):
        self.results = list(results)
        self.delay = delay
        self.calls = 0
        self.in_flight = 0
        self.max_in_flight = 0

    async def fetch(self) -> Decimal:
        self.calls += 1
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            r = self.results.pop(0) if len(self.results) > 1 else self.results[0]
            if isinstance(r, Exception):
                raise r
            return Decimal(r)
        finally:
            self.in_flight -= 1

    async def aclose(self):
        pass


class RecordingObserver:
    def __init__(self):
        self._lock = threading.Lock()
        self.events: list[tuple[str, dict]] = []

    def notify(self, event_name, parameters):
        with self._lock:
            self.events.append((event_name, dict(parameters)))

    def named(self, name):
        with self._lock:
            return [p for n, p in self.events if n == name]


class FailingCache:
    def load(self):
        return None

    def store(self, sample):
        raise CacheWriteError("disk full")


@pytest.fixture()
def session_factory(tmp_path):
    eng = create_engine(f"sqlite+pysqlite:///{tmp_path / 'wallet.db'}", future=True)
    Base.metadata.create_all(eng)
    return sessionmaker(bind=eng, autoflush=False, autocommit=False, future=True)


@pytest.fixture()
def cache(session_factory):
    return RateCache(session_factory)


def _monitor(fetcher, cache, observer=None, **kw) -> RateMonitor:
    kw.setdefault("poll_interval", 0.01)
    return RateMonitor(fetcher, cache, observer, **kw)


async def _wait_for(predicate, timeout: float = 2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(0.005)


@pytest.mark.parametrize("kw", [{"poll_interval": 0}, {"poll_interval": -1}, {"stop_grace_s": 0}])
def test_invalid_configuration_fails_construction(cache, kw):
    with pytest.raises(ValueError):
        RateMonitor(ScriptedFetcher("1"), cache, **kw)


def test_subscriber_before_any_value_receives_absence(cache):
    async def scenario():
        monitor = _monitor(ScriptedFetcher("1"), cache)
        sub = monitor.subscribe()
        return await sub.get(timeout=1)

    assert asyncio.run(scenario()) is None


def test_new_subscriber_receives_cached_value_before_first_fetch(cache):
    cache.store(PriceSample(Decimal("50000"), SEEDED_AT))
    fetcher = ScriptedFetcher("60000", delay=10)

    async def scenario():
        monitor = _monitor(fetcher, cache, stop_grace_s=0.05)
        monitor.start()
        sub = monitor.subscribe()
        first = await sub.get(timeout=1)
        await monitor.stop()
        return first

    first = asyncio.run(scenario())
    assert first == PriceSample(Decimal("50000"), SEEDED_AT)


def test_failed_fetch_keeps_previous_value(cache):
    cache.store(PriceSample(Decimal("50000"), SEEDED_AT))
    fetcher = ScriptedFetcher(NetworkError("offline"))
    observer = RecordingObserver()

    async def scenario():
        monitor = _monitor(fetcher, cache, observer)
        monitor.start()
        sub = monitor.subscribe()
        seen = await sub.get(timeout=1)
        await _wait_for(lambda: fetcher.calls >= 3)
        await monitor.stop()
        await monitor.flush_notifications(timeout=1)
        return monitor, sub, seen

    monitor, sub, seen = asyncio.run(scenario())

    assert seen.rate_usd == Decimal("50000")
    assert monitor.current.rate_usd == Decimal("50000")
    # stale value keeps its original timestamp
    assert monitor.current.observed_at == SEEDED_AT
    assert sub.pending() == 0
    assert monitor.state is MonitorState.stopped
    failures = observer.named(RATE_FETCH_FAILED)
    assert len(failures) >= 3
    assert failures[0] == {"error": "offline"}
    assert observer.named(RATE_UPDATE) == []


def test_decode_failure_is_treated_like_network_failure(cache):
    observer = RecordingObserver()

    async def scenario():
        monitor = _monitor(ScriptedFetcher(DecodeError("bad json")), cache, observer)
        assert await monitor.poll_once() is None
        await monitor.flush_notifications(timeout=1)
        return monitor

    monitor = asyncio.run(scenario())
    assert monitor.current is None
    assert observer.named(RATE_FETCH_FAILED) == [{"error": "bad json"}]


def test_successful_fetch_updates_cache_and_subscribers(cache, session_factory):
    observer = RecordingObserver()
    store = LedgerStore(session_factory)

    def write_ledger():
        for _ in range(20):
            store.save(InputTransaction.income(Decimal("0.1")))

    async def scenario():
        monitor = _monitor(ScriptedFetcher("60000"), cache, observer)
        sub = monitor.subscribe()
        monitor.start()
        writer = asyncio.create_task(asyncio.to_thread(write_ledger))
        first = await sub.get(timeout=1)
        update = await sub.get(timeout=2)
        await writer
        await monitor.stop()
        await monitor.flush_notifications(timeout=1)
        return first, update

    first, update = asyncio.run(scenario())

    assert first is None
    assert update.rate_usd == Decimal("60000")
    assert cache.load().rate_usd == Decimal("60000")
    assert observer.named(RATE_UPDATE)[0] == {"rate": "60000"}
    assert store.fetch_balance() == Decimal("2")
    assert store.count() == 20


def test_updates_arrive_in_order_without_dedup(cache):
    fetcher = ScriptedFetcher("1", "1", "2", "3")

    async def scenario():
        monitor = _monitor(fetcher, cache)
        sub = monitor.subscribe()
        monitor.start()
        got = [await sub.get(timeout=1) for _ in range(5)]
        await monitor.stop()
        return got

    got = asyncio.run(scenario())
    assert got[0] is None
    assert [s.rate_usd for s in got[1:]] == [Decimal("1"), Decimal("1"), Decimal("2"), Decimal("3")]


def test_unsubscribing_does_not_affect_others(cache):
    async def scenario():
        monitor = _monitor(ScriptedFetcher("7"), cache)
        a = monitor.subscribe()
        b = monitor.subscribe()
        a.close()
        await monitor.poll_once()
        remaining = [v async for v in a]
        got_b = [await b.get(timeout=1), await b.get(timeout=1)]
        return remaining, got_b

    remaining, got_b = asyncio.run(scenario())
    assert remaining == [None]
    assert got_b[0] is None
    assert got_b[1].rate_usd == Decimal("7")


def test_async_with_subscription_closes_it(cache):
    async def scenario():
        monitor = _monitor(ScriptedFetcher("7"), cache)
        async with monitor.subscribe() as sub:
            await sub.get(timeout=1)
        await monitor.poll_once()
        return sub, [v async for v in sub]

    sub, leftover = asyncio.run(scenario())
    assert sub.closed
    assert leftover == []


def test_cache_write_failure_still_publishes(cache):
    observer = RecordingObserver()

    async def scenario():
        monitor = _monitor(ScriptedFetcher("42000"), FailingCache(), observer)
        sub = monitor.subscribe()
        await monitor.poll_once()
        values = [await sub.get(timeout=1), await sub.get(timeout=1)]
        await monitor.flush_notifications(timeout=1)
        return values

    values = asyncio.run(scenario())
    assert values[1].rate_usd == Decimal("42000")
    assert observer.named(RATE_CACHE_WRITE_FAILED) == [{"error": "disk full"}]
    assert observer.named(RATE_UPDATE) == [{"rate": "42000"}]


def test_slow_observer_does_not_stall_the_loop(cache):
    release = threading.Event()

    class SlowObserver:
        def notify(self, event_name, parameters):
            release.wait(5)

    fetcher = ScriptedFetcher("1")

    async def scenario():
        monitor = _monitor(fetcher, cache, SlowObserver())
        monitor.start()
        await _wait_for(lambda: fetcher.calls >= 3)
        await monitor.stop()
        release.set()
        await monitor.flush_notifications(timeout=5)

    asyncio.run(scenario())
    assert fetcher.calls >= 3


def test_start_is_idempotent(cache):
    fetcher = ScriptedFetcher("1", delay=0.02)

    async def scenario():
        monitor = _monitor(fetcher, cache)
        monitor.start()
        monitor.start()
        monitor.start()
        await asyncio.sleep(0.15)
        await monitor.stop()

    asyncio.run(scenario())
    assert fetcher.max_in_flight == 1


def test_stop_aborts_interval_wait_promptly(cache):
    fetcher = ScriptedFetcher("1")

    async def scenario():
        monitor = _monitor(fetcher, cache, poll_interval=60)
        monitor.start()
        await _wait_for(lambda: fetcher.calls == 1)
        await asyncio.sleep(0.05)
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        await monitor.stop()
        return loop.time() - t0

    elapsed = asyncio.run(scenario())
    assert elapsed < 1.0
    assert fetcher.calls == 1


def test_stop_cancels_a_hung_fetch_after_grace_period(cache):
    fetcher = ScriptedFetcher("1", delay=30)

    async def scenario():
        monitor = _monitor(fetcher, cache, stop_grace_s=0.05)
        monitor.start()
        await _wait_for(lambda: fetcher.in_flight == 1)
        loop = asyncio.get_running_loop()
        t0 = loop.time()
        await monitor.stop()
        return loop.time() - t0

    elapsed = asyncio.run(scenario())
    assert elapsed < 1.0
    assert fetcher.in_flight == 0


def test_restart_resumes_polling_without_overlap(cache):
    fetcher = ScriptedFetcher("1", delay=0.02)

    async def scenario():
        monitor = _monitor(fetcher, cache)
        monitor.start()
        await _wait_for(lambda: fetcher.calls >= 2)
        await monitor.stop()
        stopped_at = fetcher.calls
        await asyncio.sleep(0.05)
        assert fetcher.calls == stopped_at

        monitor.start()
        assert monitor.state is MonitorState.running
        await _wait_for(lambda: fetcher.calls > stopped_at)
        await monitor.stop()
        return stopped_at

    stopped_at = asyncio.run(scenario())
    assert fetcher.calls > stopped_at
    assert fetcher.max_in_flight == 1


def test_restart_while_previous_loop_is_finishing(cache):
    fetcher = ScriptedFetcher("1", delay=0.05)

    async def scenario():
        monitor = _monitor(fetcher, cache)
        monitor.start()
        await _wait_for(lambda: fetcher.in_flight == 1)
        stopping = asyncio.create_task(monitor.stop())
        await asyncio.sleep(0)
        monitor.start()
        await stopping
        await _wait_for(lambda: fetcher.calls >= 3)
        await monitor.stop()

    asyncio.run(scenario())
    assert fetcher.max_in_flight == 1
