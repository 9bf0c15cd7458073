from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from domain.inventory import CostingResult
from domain.ledger import AccountKey, Lot

from .decimals import MONEY_PLACES, ZERO, cumulative_share, sub
from .formatting import format_currency, format_decimal


@dataclass
class AccountInventorySummary:
    account_key: AccountKey
    currency: str
    open_lots: int
    quantity: Decimal
    remaining_basis: Decimal


@dataclass
class InventorySummary:
    home_currency: str
    accounts: list[AccountInventorySummary] = field(default_factory=list)
    money_places: int = MONEY_PLACES


def compute_inventory_summary(result: CostingResult) -> InventorySummary:
    """Open quantity and unconsumed basis per account, skipping empty accounts."""
    money_places = result.settings.money_places
    summaries: list[AccountInventorySummary] = []

    for key, account in sorted(result.accounts.items(), key=lambda item: item[0]):
        open_lots = [result.lots[lot_id] for lot_id in account.lot_ids if not result.lots[lot_id].is_closed]
        if not open_lots:
            continue
        remaining_basis = sum((lot_remaining_basis(lot, money_places) for lot in open_lots), start=ZERO)
        summaries.append(
            AccountInventorySummary(
                account_key=key,
                currency=account.currency,
                open_lots=len(open_lots),
                quantity=account.balance,
                remaining_basis=remaining_basis,
            )
        )

    return InventorySummary(home_currency=result.settings.home_currency, accounts=summaries, money_places=money_places)


def lot_remaining_basis(lot: Lot, money_places: int) -> Decimal:
    """Basis not yet charged to the lot's outflows."""
    consumed = sub(lot.original_quantity, lot.remaining_quantity)
    return sub(lot.basis, cumulative_share(lot.basis, consumed, lot.original_quantity, money_places))


def render_inventory_summary(summary: InventorySummary) -> None:
    print("Open inventory:")
    if not summary.accounts:
        print("  (empty)")
        return

    basis_label = f"Basis {summary.home_currency}"

    rows: list[tuple[str, str, str, str]] = []
    for account in summary.accounts:
        rows.append(
            (
                account.account_key,
                str(account.open_lots),
                format_decimal(account.quantity),
                format_currency(account.remaining_basis, summary.money_places),
            )
        )

    account_width = max(len("Account"), max(len(row[0]) for row in rows))
    lots_width = max(len("Lots"), max(len(row[1]) for row in rows))
    quantity_width = max(len("Quantity"), max(len(row[2]) for row in rows))
    basis_width = max(len(basis_label), max(len(row[3]) for row in rows))

    header = (
        f"{'Account':<{account_width}} {'Lots':>{lots_width}} "
        f"{'Quantity':>{quantity_width}} {basis_label:>{basis_width}}"
    )
    lines = [header, "-" * len(header)]
    for key, lots, quantity, basis in rows:
        lines.append(f"{key:<{account_width}} {lots:>{lots_width}} {quantity:>{quantity_width}} {basis:>{basis_width}}")

    lines.append("-" * len(header))
    print("\n".join(lines))
