from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException

from wallet.api.deps import get_ledger, get_monitor
from wallet.schemas.ledger import BalanceOut
from wallet.services.errors import PersistenceError
from wallet.services.ledger import LedgerStore
from wallet.services.rate_monitor import RateMonitor

router = APIRouter(prefix="/balance", tags=["ledger"])

Q2 = Decimal("0.01")


@router.get("", response_model=BalanceOut)
def balance(ledger: LedgerStore = Depends(get_ledger), monitor: RateMonitor = Depends(get_monitor)):
    try:
        btc = ledger.fetch_balance()
    except PersistenceError as e:
        raise HTTPException(status_code=503, detail=e.code)

    rate = monitor.current
    usd = (btc * rate.rate_usd).quantize(Q2) if rate is not None else None
    return BalanceOut(btc=btc, usd=usd)
