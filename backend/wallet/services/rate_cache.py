from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from wallet.models.cached_rate import CachedRate
from wallet.services.errors import CacheWriteError
from wallet.utils.timezone import from_db_utc, to_db_utc

logger = logging.getLogger(__name__)

BTC_USD_SLOT = "bitcoin_usd"


@dataclass(frozen=True)
class PriceSample:
    rate_usd: Decimal
    observed_at: datetime

    def __post_init__(self):
        if not isinstance(self.rate_usd, Decimal) or not self.rate_usd.is_finite() or self.rate_usd <= 0:
            raise ValueError(f"rate_usd must be a positive Decimal, got {self.rate_usd!r}")


class RateCache:
    """Last known price, one row in ``cached_rates``.

    ``store`` replaces the row inside a single transaction; readers see either
    the previous sample or the new one.
    """

    def __init__(self, session_factory: sessionmaker[Session], slot: str = BTC_USD_SLOT):
        self._session_factory = session_factory
        self.slot = slot
        self._lock = threading.Lock()

    def load(self) -> PriceSample | None:
        with self._lock:
            with self._session_factory() as s:
                row = s.execute(select(CachedRate).where(CachedRate.slot == self.slot)).scalar_one_or_none()
                if row is None:
                    return None
                try:
                    return PriceSample(rate_usd=Decimal(row.rate_usd), observed_at=from_db_utc(row.observed_at))
                except (InvalidOperation, ValueError):
                    logger.warning("ignoring undecodable cached rate in slot %s: %r", self.slot, row.rate_usd)
                    return None

    def store(self, sample: PriceSample) -> None:
        with self._lock:
            try:
                with self._session_factory() as s:
                    row = s.get(CachedRate, self.slot)
                    if row is None:
                        row = CachedRate(slot=self.slot)
                    row.rate_usd = str(sample.rate_usd)
                    row.observed_at = to_db_utc(sample.observed_at)
                    s.add(row)
                    s.commit()
            except SQLAlchemyError as e:
                raise CacheWriteError(f"cache_write_failed: {e}") from e
