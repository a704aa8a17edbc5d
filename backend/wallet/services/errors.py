"""Error taxonomy shared by the rate monitor and the ledger store.

Every error carries a stable ``code`` used as the HTTP ``detail`` value.
"""


class WalletError(Exception):
    code = "wallet_error"


class FetchError(WalletError):
    code = "fetch_failed"


class NetworkError(FetchError):
    code = "rate_network_error"


class DecodeError(FetchError):
    code = "rate_decode_error"


class CacheError(WalletError):
    code = "cache_error"


class CacheWriteError(CacheError):
    code = "cache_write_failed"


class ValidationError(WalletError):
    code = "invalid_transaction"


class MissingCategoryForExpense(ValidationError):
    code = "missing_category_for_expense"

    def __init__(self, message: str = "An expense transaction must have a category."):
        super().__init__(message)


class CategoryOnIncome(ValidationError):
    code = "category_on_income"

    def __init__(self, message: str = "An income transaction cannot have a category."):
        super().__init__(message)


class InvalidAmount(ValidationError):
    code = "invalid_amount"


class UnknownCategory(ValidationError):
    code = "unknown_category"


class PersistenceError(WalletError):
    code = "persistence_error"


class PersistenceWriteError(PersistenceError):
    code = "persistence_write_failed"


class PersistenceReadError(PersistenceError):
    code = "persistence_read_failed"
