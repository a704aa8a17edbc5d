from pydantic import BaseModel
from datetime import datetime
from decimal import Decimal

class RateOut(BaseModel):
    rate_usd: Decimal
    observed_at: datetime

    class Config:
        from_attributes = True
