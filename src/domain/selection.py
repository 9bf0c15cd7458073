from __future__ import annotations

from collections.abc import Callable, Iterable
from decimal import Decimal
from enum import IntEnum

from utils.decimals import ZERO, add, sub

from .errors import InsufficientFundsError
from .ledger import Lot


class CostingMethod(IntEnum):
    """Inventory costing methods, numbered as they are chosen on the command line."""

    LIFO_BY_CREATION = 1
    LIFO_BY_BASIS_DATE = 2
    FIFO_BY_CREATION = 3
    FIFO_BY_BASIS_DATE = 4

    @classmethod
    def parse(cls, raw: str | int) -> CostingMethod:
        try:
            return cls(int(raw))
        except ValueError as err:
            choices = ", ".join(f"{member.value}={member.name}" for member in cls)
            raise ValueError(f"Unknown costing method {raw!r}; expected one of {choices}") from err

    @property
    def is_lifo(self) -> bool:
        return self in (CostingMethod.LIFO_BY_CREATION, CostingMethod.LIFO_BY_BASIS_DATE)


def _creation_key(lot: Lot) -> tuple:
    return (lot.id,)


def _basis_date_key(lot: Lot) -> tuple:
    return (lot.basis_date.toordinal(), lot.id)


_SORT_KEYS: dict[CostingMethod, Callable[[Lot], tuple]] = {
    CostingMethod.LIFO_BY_CREATION: _creation_key,
    CostingMethod.LIFO_BY_BASIS_DATE: _basis_date_key,
    CostingMethod.FIFO_BY_CREATION: _creation_key,
    CostingMethod.FIFO_BY_BASIS_DATE: _basis_date_key,
}


def order_lots(lots: Iterable[Lot], method: CostingMethod) -> list[Lot]:
    """Open lots in the order ``method`` depletes them.

    Lot ids follow creation order, so they double as the tie-break for lots
    sharing a basis date.
    """
    open_lots = [lot for lot in lots if not lot.is_closed]
    return sorted(open_lots, key=_SORT_KEYS[method], reverse=method.is_lifo)


def select_lots(lots: Iterable[Lot], quantity: Decimal, method: CostingMethod) -> list[tuple[Lot, Decimal]]:
    """Plan the depletion of ``quantity`` across ``lots`` without mutating them."""
    ordered = order_lots(lots, method)
    available = add(*(lot.remaining_quantity for lot in ordered))
    currency = ordered[0].currency if ordered else None
    if quantity > available:
        raise InsufficientFundsError(
            f"Insufficient funds: need {quantity}, open lots hold {available}",
            currency=currency,
            requested=quantity,
            available=available,
        )

    plan: list[tuple[Lot, Decimal]] = []
    outstanding = quantity
    for lot in ordered:
        if outstanding == ZERO:
            break
        take = min(lot.remaining_quantity, outstanding)
        plan.append((lot, take))
        outstanding = sub(outstanding, take)
    return plan
