from sqlalchemy import DateTime, String, func
from sqlalchemy.orm import Mapped, mapped_column
from wallet.db.base import Base


class CachedRate(Base):
    __tablename__ = "cached_rates"

    slot: Mapped[str] = mapped_column(String(32), primary_key=True)
    rate_usd: Mapped[str] = mapped_column(String(64))
    observed_at: Mapped[DateTime] = mapped_column(DateTime)
    updated_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now(), onupdate=func.now())
