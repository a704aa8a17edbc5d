from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from decimal import Decimal

from wallet.services.validation import TransactionCategory

class TxCreate(BaseModel):
    amount: Decimal = Field(description="BTC, at most 8 fractional digits")
    category: str | None = None
    timestamp: datetime | None = None

    @field_validator("category")
    @classmethod
    def category_trim(cls, v: str | None):
        if v is None:
            return None
        v = v.strip().lower()
        return v or None

class TxOut(BaseModel):
    id: str
    amount: Decimal
    category: TransactionCategory | None
    timestamp: datetime

    class Config:
        from_attributes = True
