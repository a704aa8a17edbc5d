from wallet.core.config import settings
from wallet.db.session import SessionLocal
from wallet.services.analytics import AnalyticsService
from wallet.services.ledger import LedgerStore
from wallet.services.rate_cache import RateCache
from wallet.services.rate_fetcher import RateFetcher
from wallet.services.rate_monitor import RateMonitor

analytics = AnalyticsService(SessionLocal)
ledger_store = LedgerStore(SessionLocal, page_size=settings.ledger_page_size)
rate_monitor = RateMonitor(
    RateFetcher(settings.rate_source_url, timeout_s=settings.rate_request_timeout_seconds),
    RateCache(SessionLocal),
    analytics,
    poll_interval=settings.rate_poll_interval_seconds,
    stop_grace_s=settings.rate_monitor_stop_grace_seconds,
)

def get_ledger() -> LedgerStore:
    return ledger_store

def get_monitor() -> RateMonitor:
    return rate_monitor

def get_analytics() -> AnalyticsService:
    return analytics
