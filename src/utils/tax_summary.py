from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import Iterable

from domain.inventory import CostingResult
from domain.ledger import ActionKind, Lot, Movement, MovementRole, Transaction

from .decimals import MONEY_PLACES, ZERO
from .formatting import format_currency

LONG_TERM_DAYS = 365

_GAIN_KINDS = {ActionKind.TRADE, ActionKind.EXPENSE}


class HoldingTerm(StrEnum):
    SHORT = "SHORT"
    LONG = "LONG"


def holding_term(basis_date: date, disposal_date: date, *, long_term_days: int = LONG_TERM_DAYS) -> HoldingTerm:
    if (disposal_date - basis_date).days > long_term_days:
        return HoldingTerm.LONG
    return HoldingTerm.SHORT


def is_gain_event(movement: Movement, transaction: Transaction, lot: Lot, home_currency: str) -> bool:
    """Outflows that dispose of a non-home currency for value, fees included."""
    if movement.role != MovementRole.OUTFLOW or lot.currency == home_currency:
        return False
    return transaction.kind in _GAIN_KINDS or movement.is_fee


@dataclass
class YearlyTaxSummary:
    year: int
    disposals: int = 0
    proceeds: Decimal = ZERO
    cost_basis: Decimal = ZERO
    short_term_gain: Decimal = ZERO
    long_term_gain: Decimal = ZERO
    deferred_gain: Decimal = ZERO
    income: Decimal = ZERO
    expense: Decimal = ZERO

    @property
    def realized_gain(self) -> Decimal:
        return self.short_term_gain + self.long_term_gain


def compute_yearly_tax_summary(
    result: CostingResult, *, long_term_days: int = LONG_TERM_DAYS
) -> list[YearlyTaxSummary]:
    """Aggregate disposals, deferred like-kind gains, income and expenses per calendar year."""
    home_currency = result.settings.home_currency
    totals: dict[int, YearlyTaxSummary] = {}

    for transaction in result.transactions.values():
        year = transaction.tx_date.year
        summary = totals.setdefault(year, YearlyTaxSummary(year=year))
        summary.income += transaction.income
        summary.expense += transaction.expense

        for movement_id in transaction.movement_ids:
            movement = result.movements[movement_id]
            lot = result.lots[movement.lot_id]
            if not is_gain_event(movement, transaction, lot, home_currency):
                continue

            summary.disposals += 1
            summary.proceeds += movement.proceeds
            summary.cost_basis += movement.cost_basis
            if movement.is_like_kind:
                summary.deferred_gain += movement.gain_loss
            elif holding_term(lot.basis_date, transaction.tx_date, long_term_days=long_term_days) == HoldingTerm.LONG:
                summary.long_term_gain += movement.gain_loss
            else:
                summary.short_term_gain += movement.gain_loss

    return [totals[year] for year in sorted(totals)]


def render_yearly_tax_summary(
    years: Iterable[YearlyTaxSummary], home_currency: str, money_places: int = MONEY_PLACES
) -> None:
    rows = list(years)
    print(f"Yearly totals ({home_currency}):")
    if not rows:
        print("  (no transactions)")
        return

    columns = [
        ("Year", lambda row: str(row.year)),
        ("Disposals", lambda row: str(row.disposals)),
        ("Proceeds", lambda row: format_currency(row.proceeds, money_places)),
        ("Cost basis", lambda row: format_currency(row.cost_basis, money_places)),
        ("Short-term", lambda row: format_currency(row.short_term_gain, money_places)),
        ("Long-term", lambda row: format_currency(row.long_term_gain, money_places)),
        ("Deferred LK", lambda row: format_currency(row.deferred_gain, money_places)),
        ("Income", lambda row: format_currency(row.income, money_places)),
        ("Expense", lambda row: format_currency(row.expense, money_places)),
    ]
    cells = [[render(row) for _, render in columns] for row in rows]
    widths = [max(len(label), max(len(line[idx]) for line in cells)) for idx, (label, _) in enumerate(columns)]

    header = " ".join(
        f"{label:<{widths[idx]}}" if idx == 0 else f"{label:>{widths[idx]}}" for idx, (label, _) in enumerate(columns)
    )
    lines = [header, "-" * len(header)]
    for line in cells:
        lines.append(
            " ".join(
                f"{cell:<{widths[idx]}}" if idx == 0 else f"{cell:>{widths[idx]}}" for idx, cell in enumerate(line)
            )
        )

    print("\n".join(lines))
