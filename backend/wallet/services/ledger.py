from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from wallet.models.transaction import Transaction
from wallet.services.errors import InvalidAmount, PersistenceReadError, PersistenceWriteError
from wallet.services.validation import TransactionCategory, coerce_category, from_sats, to_sats, validate
from wallet.utils.timezone import from_db_utc, to_db_utc, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 20


def _to_dec(v) -> Decimal:
    if isinstance(v, Decimal):
        return v
    try:
        return Decimal(str(v))
    except (InvalidOperation, ValueError, TypeError):
        raise InvalidAmount(f"amount is not a number: {v!r}") from None


@dataclass(frozen=True)
class InputTransaction:
    amount: Decimal
    category: TransactionCategory | None = None

    @classmethod
    def income(cls, amount) -> InputTransaction:
        return cls(amount=_to_dec(amount))

    @classmethod
    def expense(cls, amount, category: TransactionCategory | str) -> InputTransaction:
        return cls(amount=_to_dec(amount), category=category)


@dataclass(frozen=True)
class TransactionRecord:
    id: str
    amount: Decimal
    category: TransactionCategory | None
    timestamp: datetime

    @property
    def is_income(self) -> bool:
        return self.amount >= 0


def _record(row: Transaction) -> TransactionRecord:
    return TransactionRecord(
        id=row.id,
        amount=from_sats(row.amount_sats),
        category=TransactionCategory(row.category) if row.category is not None else None,
        timestamp=from_db_utc(row.timestamp),
    )


class LedgerStore:
    """Append-only transaction ledger.

    Writes are serialized by a process-wide lock so ids and insertion order are
    assigned one at a time. Reads run unlocked, one SQL statement each, and so
    see the ledger either before or after any given write.
    """

    def __init__(self, session_factory: sessionmaker[Session], page_size: int = DEFAULT_PAGE_SIZE):
        if int(page_size) <= 0:
            raise ValueError("page_size must be positive")
        self._session_factory = session_factory
        self.page_size = int(page_size)
        self._write_lock = threading.Lock()

    def save(self, input: InputTransaction, timestamp: datetime | None = None) -> TransactionRecord:
        """Validate and append one entry; ``timestamp`` defaults to now (UTC).

        Amounts are kept as whole satoshis, so more than 8 fractional digits
        raises ``InvalidAmount`` rather than being rounded.
        """
        amount = _to_dec(input.amount)
        validate(amount, input.category)
        category = coerce_category(input.category)

        row = Transaction(
            id=str(uuid.uuid4()),
            timestamp=to_db_utc(timestamp or utc_now()),
            amount_sats=to_sats(amount),
            category=category.value if category is not None else None,
        )

        with self._write_lock:
            try:
                with self._session_factory() as s:
                    s.add(row)
                    s.commit()
                    s.refresh(row)
                    record = _record(row)
            except SQLAlchemyError as e:
                logger.exception("ledger write failed")
                raise PersistenceWriteError(str(e)) from e

        logger.debug("saved transaction %s amount=%s category=%s", record.id, record.amount, category)
        return record

    def fetch_page(self, page_index: int, page_size: int | None = None) -> list[TransactionRecord]:
        if page_index < 0:
            raise ValueError("page_index must be >= 0")
        size = self.page_size if page_size is None else int(page_size)
        if size <= 0:
            raise ValueError("page_size must be positive")

        q = (
            select(Transaction)
            .order_by(Transaction.timestamp.desc(), Transaction.seq.desc())
            .offset(page_index * size)
            .limit(size)
        )
        try:
            with self._session_factory() as s:
                rows = s.execute(q).scalars().all()
                return [_record(r) for r in rows]
        except SQLAlchemyError as e:
            raise PersistenceReadError(str(e)) from e

    def fetch_balance(self) -> Decimal:
        try:
            with self._session_factory() as s:
                total = s.execute(select(func.coalesce(func.sum(Transaction.amount_sats), 0))).scalar_one()
        except SQLAlchemyError as e:
            raise PersistenceReadError(str(e)) from e
        return from_sats(total)

    def count(self) -> int:
        try:
            with self._session_factory() as s:
                return int(s.execute(select(func.count()).select_from(Transaction)).scalar_one())
        except SQLAlchemyError as e:
            raise PersistenceReadError(str(e)) from e
