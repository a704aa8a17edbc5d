import logging

from fastapi import APIRouter, Depends, Query, HTTPException

from wallet.api.deps import get_analytics, get_ledger
from wallet.schemas.transaction import TxCreate, TxOut
from wallet.services.analytics import TRANSACTION_ADDED, AnalyticsService
from wallet.services.errors import PersistenceError, ValidationError
from wallet.services.ledger import InputTransaction, LedgerStore

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/transactions", tags=["transactions"])


@router.get("", response_model=list[TxOut])
def list_transactions(
    page: int = Query(0, ge=0),
    page_size: int | None = Query(None, ge=1, le=500),
    ledger: LedgerStore = Depends(get_ledger),
):
    try:
        return ledger.fetch_page(page, page_size)
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.code)


@router.post("", response_model=TxOut)
def add_tx(
    body: TxCreate,
    ledger: LedgerStore = Depends(get_ledger),
    analytics: AnalyticsService = Depends(get_analytics),
):
    try:
        t = ledger.save(InputTransaction(amount=body.amount, category=body.category), body.timestamp)
    except ValidationError as e:
        raise HTTPException(status_code=422, detail=e.code, headers={"X-Error-Message": str(e)})
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.code)

    # the transaction is committed; a failed event must not fail the request
    try:
        analytics.notify(
            TRANSACTION_ADDED,
            {"id": t.id, "amount": str(t.amount), "category": t.category.value if t.category else ""},
        )
    except Exception:
        logger.exception("failed to record %s for %s", TRANSACTION_ADDED, t.id)
    return t
