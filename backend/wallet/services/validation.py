from __future__ import annotations

from decimal import Decimal
from enum import Enum

from wallet.services.errors import CategoryOnIncome, InvalidAmount, MissingCategoryForExpense, UnknownCategory

# Amounts are stored as whole satoshis in a BIGINT column.
SATS_EXPONENT = 8
MAX_ABS_AMOUNT = Decimal("92233720368")


class TransactionCategory(str, Enum):
    groceries = "groceries"
    taxi = "taxi"
    electronics = "electronics"
    restaurant = "restaurant"
    other = "other"


def coerce_category(category) -> TransactionCategory | None:
    if category is None or isinstance(category, TransactionCategory):
        return category
    try:
        return TransactionCategory(str(category).strip().lower())
    except ValueError:
        raise UnknownCategory(f"unknown category: {category!r}") from None


def _has_sub_satoshi_digits(amount: Decimal) -> bool:
    t = amount.as_tuple()
    extra = -SATS_EXPONENT - t.exponent
    if extra <= 0:
        return False
    return any(t.digits[-extra:])


def validate(amount: Decimal, category: TransactionCategory | str | None) -> None:
    """Check the income/expense invariant for one ledger entry.

    Income (``amount >= 0``) never has a category; an expense (``amount < 0``)
    always has one. Amounts must be finite and representable in satoshis.
    """
    if not isinstance(amount, Decimal):
        raise InvalidAmount(f"amount must be a Decimal, got {type(amount).__name__}")
    if not amount.is_finite():
        raise InvalidAmount("amount must be finite")
    if _has_sub_satoshi_digits(amount):
        raise InvalidAmount(f"amount has more than {SATS_EXPONENT} fractional digits (smallest unit is 1 satoshi)")
    if abs(amount) >= MAX_ABS_AMOUNT:
        raise InvalidAmount("amount is out of range")

    if amount >= 0 and category is not None:
        raise CategoryOnIncome()

    category = coerce_category(category)
    if amount < 0 and category is None:
        raise MissingCategoryForExpense()


def to_sats(amount: Decimal) -> int:
    return int(amount.scaleb(SATS_EXPONENT))


def from_sats(sats: int | None) -> Decimal:
    if not sats:
        return Decimal("0")
    return Decimal(int(sats)).scaleb(-SATS_EXPONENT)
