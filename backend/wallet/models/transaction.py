from sqlalchemy import BigInteger, CheckConstraint, DateTime, Integer, String, func
from sqlalchemy.orm import Mapped, mapped_column
from wallet.db.base import Base


class Transaction(Base):
    __tablename__ = "transactions"

    # Insertion order; breaks ties between equal timestamps.
    seq: Mapped[int] = mapped_column(Integer, primary_key=True)
    id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    timestamp: Mapped[DateTime] = mapped_column(DateTime, index=True)
    amount_sats: Mapped[int] = mapped_column(BigInteger)
    category: Mapped[str | None] = mapped_column(String(16), nullable=True)
    created_at: Mapped[DateTime] = mapped_column(DateTime, server_default=func.now())

    __table_args__ = (
        CheckConstraint(
            "(amount_sats >= 0 AND category IS NULL) OR (amount_sats < 0 AND category IS NOT NULL)",
            name="ck_transactions_category_matches_sign",
        ),
    )
