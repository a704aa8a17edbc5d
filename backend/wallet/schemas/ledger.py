from pydantic import BaseModel
from decimal import Decimal

class BalanceOut(BaseModel):
    btc: Decimal
    usd: Decimal | None = None
