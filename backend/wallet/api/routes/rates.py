from fastapi import APIRouter, Depends

from wallet.api.deps import get_monitor
from wallet.schemas.rate import RateOut
from wallet.services.rate_monitor import RateMonitor

router = APIRouter(prefix="/rate", tags=["rates"])


@router.get("", response_model=RateOut | None)
def current_rate(monitor: RateMonitor = Depends(get_monitor)):
    # Stale values keep their original observed_at.
    return monitor.current
