import os
import random
from datetime import timedelta
from decimal import Decimal

from wallet.db.session import SessionLocal
from wallet.services.ledger import InputTransaction, LedgerStore
from wallet.services.validation import TransactionCategory
from wallet.utils.timezone import utc_now


def random_input(rng: random.Random) -> InputTransaction:
    if rng.random() < 0.5:
        return InputTransaction.income(Decimal(rng.randint(1_00, 1000_00)) / 100)
    amount = -(Decimal(rng.randint(1_00, 200_00)) / 100)
    return InputTransaction.expense(amount, rng.choice(list(TransactionCategory)))


def seed_sample_transactions(store: LedgerStore, count: int = 100, seed: int | None = None) -> int:
    """Fill an empty ledger with ``count`` entries spread over the last week.

    Returns the number of rows written (0 when the ledger already has data).
    """
    if store.count() > 0:
        return 0

    rng = random.Random(seed)
    now = utc_now()
    week = timedelta(days=7).total_seconds()
    for _ in range(count):
        ts = now - timedelta(seconds=rng.uniform(0, week))
        store.save(random_input(rng), ts)
    return count


def main():
    count = int(os.environ.get("SEED_TRANSACTIONS", "100"))
    store = LedgerStore(SessionLocal)
    written = seed_sample_transactions(store, count)
    print(f"seeded {written} transactions" if written else "ledger not empty; skipping")

if __name__ == "__main__":
    main()
