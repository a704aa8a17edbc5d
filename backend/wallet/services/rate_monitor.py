from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from enum import Enum

from sqlalchemy.exc import SQLAlchemyError

from wallet.services.analytics import RATE_CACHE_WRITE_FAILED, RATE_FETCH_FAILED, RATE_UPDATE, Observer
from wallet.services.errors import CacheError, FetchError
from wallet.services.rate_cache import PriceSample, RateCache
from wallet.services.rate_fetcher import RateFetcher
from wallet.utils.timezone import utc_now

logger = logging.getLogger(__name__)

_CLOSED = object()


class MonitorState(str, Enum):
    idle = "idle"
    running = "running"
    stopped = "stopped"


class Subscription:
    """Stream of ``PriceSample | None`` values from a :class:`RateMonitor`.

    The value current at subscription time is always the first item.
    """

    def __init__(self, monitor: RateMonitor):
        self._monitor = monitor
        self._queue: asyncio.Queue = asyncio.Queue()
        self.closed = False

    def _push(self, value: PriceSample | None) -> None:
        self._queue.put_nowait(value)

    def __aiter__(self):
        return self

    async def __anext__(self) -> PriceSample | None:
        if self.closed and self._queue.empty():
            raise StopAsyncIteration
        value = await self._queue.get()
        if value is _CLOSED:
            raise StopAsyncIteration
        return value

    async def get(self, timeout: float | None = None) -> PriceSample | None:
        return await asyncio.wait_for(self.__anext__(), timeout)

    def pending(self) -> int:
        return self._queue.qsize()

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        self._monitor._unsubscribe(self)
        self._queue.put_nowait(_CLOSED)

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc):
        self.close()


class RateMonitor:
    """Polls the price source and broadcasts every successful sample.

    Fetch failures never escape the loop: the last published sample stays
    current (with its original ``observed_at``) and the failure is reported to
    the observer. Must be driven from a single event loop.
    """

    def __init__(
        self,
        fetcher: RateFetcher,
        cache: RateCache,
        observer: Observer | None = None,
        *,
        poll_interval: float = 5.0,
        stop_grace_s: float = 1.0,
        clock: Callable[[], datetime] = utc_now,
    ):
        if poll_interval <= 0:
            raise ValueError("poll_interval must be positive")
        if stop_grace_s <= 0:
            raise ValueError("stop_grace_s must be positive")

        self._fetcher = fetcher
        self._cache = cache
        self._observer = observer
        self.poll_interval = float(poll_interval)
        self.stop_grace_s = float(stop_grace_s)
        self._clock = clock

        self._state = MonitorState.idle
        self._current: PriceSample | None = None
        self._subscribers: list[Subscription] = []
        self._task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._notifications: set[asyncio.Future] = set()

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def current(self) -> PriceSample | None:
        return self._current

    def subscribe(self) -> Subscription:
        sub = Subscription(self)
        sub._push(self._current)
        self._subscribers.append(sub)
        return sub

    def _unsubscribe(self, sub: Subscription) -> None:
        try:
            self._subscribers.remove(sub)
        except ValueError:
            pass

    def _publish(self, sample: PriceSample) -> None:
        self._current = sample
        for sub in list(self._subscribers):
            sub._push(sample)

    def _notify(self, event_name: str, parameters: Mapping[str, str]) -> None:
        if self._observer is None:
            return
        loop = asyncio.get_running_loop()
        fut = loop.run_in_executor(None, self._observer.notify, event_name, dict(parameters))
        self._notifications.add(fut)
        fut.add_done_callback(self._notification_done)

    def _notification_done(self, fut: asyncio.Future) -> None:
        self._notifications.discard(fut)
        if fut.cancelled():
            return
        exc = fut.exception()
        if exc is not None:
            logger.error("observer notify failed", exc_info=exc)

    async def flush_notifications(self, timeout: float | None = None) -> None:
        if self._notifications:
            await asyncio.wait(set(self._notifications), timeout=timeout)

    def _seed_from_cache(self) -> None:
        try:
            sample = self._cache.load()
        except SQLAlchemyError:
            logger.exception("rate cache load failed; starting without a value")
            return
        if sample is not None:
            logger.info("seeded rate from cache: %s observed at %s", sample.rate_usd, sample.observed_at)
            self._publish(sample)

    def start(self) -> None:
        if self._state is MonitorState.running:
            return
        if self._current is None:
            # blocking read on the event loop; one primary-key lookup
            self._seed_from_cache()

        self._state = MonitorState.running
        self._stop_event = asyncio.Event()
        previous = self._task if self._task is not None and not self._task.done() else None
        self._task = asyncio.get_running_loop().create_task(self._run(self._stop_event, previous))
        logger.info("rate monitor started (interval=%ss)", self.poll_interval)

    async def stop(self) -> None:
        if self._state is not MonitorState.running:
            return
        self._state = MonitorState.stopped
        self._stop_event.set()

        task = self._task
        done, _ = await asyncio.wait({task}, timeout=self.stop_grace_s)
        if not done:
            task.cancel()
            await asyncio.wait({task})
        logger.info("rate monitor stopped")

    async def aclose(self) -> None:
        await self.stop()
        await self._fetcher.aclose()

    async def _run(self, stop_event: asyncio.Event, previous: asyncio.Task | None) -> None:
        if previous is not None:
            await asyncio.wait({previous})

        while not stop_event.is_set():
            try:
                await self.poll_once()
            except Exception:
                logger.exception("rate monitor iteration failed")

            try:
                await asyncio.wait_for(stop_event.wait(), timeout=self.poll_interval)
            except asyncio.TimeoutError:
                pass

    async def poll_once(self) -> PriceSample | None:
        try:
            rate = await self._fetcher.fetch()
        except FetchError as e:
            logger.warning("rate fetch failed: %s; holding last value", e)
            self._notify(RATE_FETCH_FAILED, {"error": str(e)})
            return None

        sample = PriceSample(rate_usd=rate, observed_at=self._clock())
        try:
            await asyncio.to_thread(self._cache.store, sample)
        except CacheError as e:
            logger.warning("rate cache write failed: %s", e)
            self._notify(RATE_CACHE_WRITE_FAILED, {"error": str(e)})

        self._publish(sample)
        self._notify(RATE_UPDATE, {"rate": str(rate)})
        return sample
