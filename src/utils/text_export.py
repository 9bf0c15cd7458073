from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from domain.inventory import CostingResult
from domain.ledger import ActionKind, Movement, MovementRole, Transaction

from .decimals import ZERO, add
from .formatting import format_currency, format_decimal
from .inventory_summary import lot_remaining_basis

EQUITY_ACCOUNT = "Equity"
INCOME_ACCOUNT = "Income"
EXPENSE_ACCOUNT = "Expenses"
FEE_ACCOUNT = "Expenses:Fees"
GAIN_ACCOUNT = "Income:Realized gain"
LOSS_ACCOUNT = "Expenses:Realized loss"


def asset_account(account_key: str) -> str:
    return f"Assets:{account_key}"


@dataclass
class JournalLine:
    account: str
    debit: Decimal = ZERO
    credit: Decimal = ZERO


@dataclass
class JournalEntry:
    """Double-entry view of one transaction, valued in the home currency."""

    seq: int
    tx_date: str
    description: str
    lines: list[JournalLine] = field(default_factory=list)

    @property
    def total_debits(self) -> Decimal:
        return add(*(line.debit for line in self.lines))

    @property
    def total_credits(self) -> Decimal:
        return add(*(line.credit for line in self.lines))

    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits

    def debit(self, account: str, amount: Decimal) -> None:
        if amount != ZERO:
            self.lines.append(JournalLine(account=account, debit=amount))

    def credit(self, account: str, amount: Decimal) -> None:
        if amount != ZERO:
            self.lines.append(JournalLine(account=account, credit=amount))


def _movements(result: CostingResult, transaction: Transaction) -> list[Movement]:
    return [result.movements[movement_id] for movement_id in transaction.movement_ids]


def build_journal_entries(result: CostingResult) -> list[JournalEntry]:
    """One balanced entry per transaction.

    Assets move at cost basis; the realized gain or loss, income, expenses,
    fees and owner contributions or withdrawals balance the entry. Deferred
    like-kind gains stay inside the carried-over basis.
    """
    entries: list[JournalEntry] = []
    for transaction in result.transactions.values():
        memo = f" {transaction.memo}" if transaction.memo else ""
        entry = JournalEntry(
            seq=transaction.seq,
            tx_date=transaction.tx_date.isoformat(),
            description=f"{transaction.kind}{memo}",
        )
        movements = _movements(result, transaction)

        for movement in movements:
            account = asset_account(result.lots[movement.lot_id].account_key)
            if movement.role == MovementRole.INFLOW:
                entry.debit(account, movement.cost_basis)
            else:
                entry.credit(account, movement.cost_basis)

        entry.credit(INCOME_ACCOUNT, transaction.income)
        entry.debit(EXPENSE_ACCOUNT, transaction.expense)
        entry.debit(FEE_ACCOUNT, transaction.fee_value)

        realized = transaction.realized_gain_loss
        if realized > 0:
            entry.credit(GAIN_ACCOUNT, realized)
        elif realized < 0:
            entry.debit(LOSS_ACCOUNT, -realized)

        if transaction.kind == ActionKind.DEPOSIT:
            inflows = (movement.cost_basis for movement in movements if movement.role == MovementRole.INFLOW)
            entry.credit(EQUITY_ACCOUNT, add(*inflows))
        elif transaction.kind == ActionKind.WITHDRAWAL:
            principal = (
                movement.cost_basis
                for movement in movements
                if movement.role == MovementRole.OUTFLOW and not movement.is_fee
            )
            entry.debit(EQUITY_ACCOUNT, add(*principal))

        entries.append(entry)
    return entries


def render_journal(result: CostingResult) -> str:
    money_places = result.settings.money_places
    entries = build_journal_entries(result)
    if not entries:
        return "Journal: (no transactions)\n"

    width = max((len(line.account) for entry in entries for line in entry.lines), default=0)
    lines = [f"Journal ({result.settings.home_currency})"]
    for entry in entries:
        lines.append("")
        lines.append(f"#{entry.seq} {entry.tx_date} {entry.description}")
        for line in entry.lines:
            debit = format_currency(line.debit, money_places) if line.debit else ""
            credit = format_currency(line.credit, money_places) if line.credit else ""
            indent = "  " if line.debit else "      "
            lines.append(f"{indent}{line.account:<{width}} {debit:>14} {credit:>14}")
    return "\n".join(lines) + "\n"


def render_text_report(result: CostingResult) -> str:
    """Transactions with their movements, then every account with its lots."""
    money_places = result.settings.money_places

    def money(value: Decimal) -> str:
        return format_currency(value, money_places)

    lines = ["Transactions", "============"]
    for transaction in result.transactions.values():
        flags = " like-kind" if transaction.is_like_kind else ""
        memo = f" ({transaction.memo})" if transaction.memo else ""
        lines.append(f"#{transaction.seq} {transaction.tx_date.isoformat()} {transaction.kind}{flags}{memo}")
        for movement in _movements(result, transaction):
            lot = result.lots[movement.lot_id]
            text = (
                f"  {movement.role:<7} lot {lot.id} {format_decimal(movement.quantity)} {lot.currency}"
                f" basis {money(movement.cost_basis)}"
            )
            if movement.role == MovementRole.OUTFLOW:
                text += f" proceeds {money(movement.proceeds)} gain {money(movement.gain_loss)}"
            if movement.is_fee:
                text += " fee"
            lines.append(text)
        lines.append(
            f"  realized {money(transaction.realized_gain_loss)}"
            f" deferred {money(transaction.deferred_gain_loss)}"
            f" income {money(transaction.income)}"
            f" expense {money(transaction.expense)}"
            f" fees {money(transaction.fee_value)}"
        )

    lines.extend(["", "Accounts", "========"])
    for key, account in sorted(result.accounts.items(), key=lambda item: item[0]):
        lines.append(f"{key} balance {format_decimal(account.balance)} {account.currency}")
        for lot_id in account.lot_ids:
            lot = result.lots[lot_id]
            carryover = " carryover" if lot.is_like_kind_carryover else ""
            lines.append(
                f"  lot {lot.id} acquired {lot.created_on.isoformat()} basis date {lot.basis_date.isoformat()}"
                f" {format_decimal(lot.remaining_quantity)}/{format_decimal(lot.original_quantity)}"
                f" basis {money(lot.basis)} remaining {money(lot_remaining_basis(lot, money_places))}{carryover}"
            )
    return "\n".join(lines) + "\n"
