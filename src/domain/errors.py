from __future__ import annotations

from decimal import Decimal


class CostingError(Exception):
    """Base class for every failure that aborts a costing run."""

    def __init__(
        self,
        message: str,
        *,
        seq: int | None = None,
        currency: str | None = None,
        requested: Decimal | None = None,
        available: Decimal | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.seq = seq
        self.currency = currency
        self.requested = requested
        self.available = available

    def __str__(self) -> str:
        if self.seq is None:
            return self.message
        return f"record seq={self.seq}: {self.message}"


class InvalidQuantityError(CostingError):
    pass


class InsufficientLotBalanceError(CostingError):
    pass


class InsufficientFundsError(CostingError):
    pass


class UnknownCurrencyError(CostingError):
    pass


class ChronologyViolationError(CostingError):
    pass


class MissingValuationError(CostingError):
    pass


class DuplicateRecordError(CostingError):
    pass


class LedgerInvariantError(CostingError):
    pass


class CostingArithmeticError(CostingError, ArithmeticError):
    pass
