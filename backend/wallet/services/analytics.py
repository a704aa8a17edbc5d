from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from wallet.models.analytics_event import AnalyticsEvent
from wallet.utils.timezone import to_db_utc, utc_now

logger = logging.getLogger(__name__)

RATE_UPDATE = "rate_update"
RATE_FETCH_FAILED = "rate_fetch_failed"
RATE_CACHE_WRITE_FAILED = "rate_cache_write_failed"
TRANSACTION_ADDED = "transaction_added"


class Observer(Protocol):
    def notify(self, event_name: str, parameters: Mapping[str, str]) -> None: ...


class AnalyticsService:
    """Observer that records events in ``analytics_events``."""

    def __init__(self, session_factory: sessionmaker[Session]):
        self._session_factory = session_factory

    def notify(self, event_name: str, parameters: Mapping[str, str]) -> None:
        params = {str(k): str(v) for k, v in (parameters or {}).items()}
        row = AnalyticsEvent(name=event_name, parameters=params, created_at=to_db_utc(utc_now()))
        with self._session_factory() as s:
            s.add(row)
            s.commit()
        logger.debug("analytics event %s %s", event_name, params)

    def get_events(
        self,
        names: Iterable[str] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[AnalyticsEvent]:
        q = select(AnalyticsEvent).order_by(AnalyticsEvent.created_at.asc(), AnalyticsEvent.id.asc())

        names = set(names or ())
        if names:
            q = q.where(AnalyticsEvent.name.in_(sorted(names)))
        if start is not None:
            q = q.where(AnalyticsEvent.created_at >= to_db_utc(start))
        if end is not None:
            q = q.where(AnalyticsEvent.created_at <= to_db_utc(end))
        if limit is not None:
            q = q.limit(limit)

        with self._session_factory() as s:
            return list(s.execute(q).scalars().all())
