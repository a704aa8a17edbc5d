from fastapi import APIRouter, Depends, Query
from datetime import datetime

from wallet.api.deps import get_analytics
from wallet.schemas.analytics import AnalyticsEventOut
from wallet.services.analytics import AnalyticsService

router = APIRouter(prefix="/events", tags=["analytics"])


@router.get("", response_model=list[AnalyticsEventOut])
def list_events(
    name: list[str] | None = Query(default=None),
    start: datetime | None = Query(default=None),
    end: datetime | None = Query(default=None),
    limit: int = Query(default=200, ge=1, le=1000),
    analytics: AnalyticsService = Depends(get_analytics),
):
    return analytics.get_events(names=name, start=start, end=end, limit=limit)
