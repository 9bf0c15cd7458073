from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from utils.decimals import ZERO, add, cumulative_share, sub

from .accounts import Ledger
from .errors import (
    ChronologyViolationError,
    CostingArithmeticError,
    CostingError,
    InsufficientFundsError,
    LedgerInvariantError,
    MissingValuationError,
)
from .ledger import (
    Account,
    AccountKey,
    ActionKind,
    ActionLeg,
    ActionRecord,
    Lot,
    LotId,
    Movement,
    MovementId,
    Transaction,
    make_account_key,
)
from .records import ActionRecordStore, TransactionStore
from .selection import select_lots
from .settings import CostingSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CostingResult:
    settings: CostingSettings
    accounts: Mapping[AccountKey, Account]
    lots: Mapping[LotId, Lot]
    movements: Mapping[MovementId, Movement]
    transactions: TransactionStore
    action_records: ActionRecordStore


@dataclass
class _Outcome:
    """Movements and recognized amounts gathered while costing one record."""

    outflows: list[Movement]
    inflows: list[Movement]
    is_like_kind: bool = False
    income: Decimal = ZERO
    expense: Decimal = ZERO
    fee_value: Decimal = ZERO

    def to_transaction(self, record: ActionRecord) -> Transaction:
        proceeds = add(*(movement.proceeds for movement in self.outflows))
        cost_basis = add(*(movement.cost_basis for movement in self.outflows))
        deferred = add(*(movement.gain_loss for movement in self.outflows if movement.is_like_kind))
        movement_ids = sorted(movement.id for movement in self.outflows + self.inflows)
        return Transaction(
            seq=record.seq,
            tx_date=record.tx_date,
            kind=record.kind,
            memo=record.memo,
            movement_ids=tuple(movement_ids),
            proceeds=proceeds,
            cost_basis=cost_basis,
            gain_loss=sub(proceeds, cost_basis),
            deferred_gain_loss=deferred,
            is_like_kind=self.is_like_kind,
            income=self.income,
            expense=self.expense,
            fee_value=self.fee_value,
        )


class CostingEngine:
    """Turn a chronological stream of action records into lots, movements and transactions."""

    def __init__(self, settings: CostingSettings) -> None:
        self._settings = settings
        self._handlers: dict[ActionKind, Callable[[Ledger, ActionRecord], _Outcome]] = {
            ActionKind.TRADE: self._trade,
            ActionKind.INCOME: self._income,
            ActionKind.DEPOSIT: self._deposit,
            ActionKind.EXPENSE: self._expense,
            ActionKind.WITHDRAWAL: self._withdrawal,
            ActionKind.TRANSFER: self._transfer,
        }

    @property
    def settings(self) -> CostingSettings:
        return self._settings

    def new_ledger(self) -> Ledger:
        return Ledger(
            self._settings.home_currency,
            known_currencies=self._settings.known_currencies,
            money_places=self._settings.money_places,
        )

    def process(self, records: Iterable[ActionRecord]) -> CostingResult:
        """Cost every record in order; any failure aborts the whole run."""
        ledger = self.new_ledger()
        action_records = ActionRecordStore()
        transactions = TransactionStore()
        last_date: date | None = None

        logger.info(
            "Costing run started: method=%s home=%s like_kind_cutoff=%s",
            self._settings.costing_method.name,
            self._settings.home_currency,
            self._settings.like_kind_cutoff,
        )

        for record in records:
            try:
                self._check_chronology(record, last_date)
                action_records.add(record)
                transaction = self.process_record(ledger, record)
            except CostingError as err:
                if err.seq is None:
                    err.seq = record.seq
                logger.error(
                    "Costing aborted at record seq=%d (%s %s): %s", record.seq, record.kind, record.tx_date, err
                )
                raise
            except ArithmeticError as err:
                logger.error("Arithmetic failure at record seq=%d: %r", record.seq, err)
                raise CostingArithmeticError(f"Decimal arithmetic failed: {err!r}", seq=record.seq) from err
            except ValidationError as err:
                logger.error("Invalid ledger entry at record seq=%d: %s", record.seq, err)
                raise LedgerInvariantError(f"Invalid ledger entry: {err}", seq=record.seq) from err

            transactions.add(transaction)
            last_date = record.tx_date

        ledger.check_balances()
        logger.info(
            "Costing run finished: %d records, %d accounts, %d lots, %d movements",
            len(action_records),
            len(ledger.accounts),
            len(ledger.lots),
            len(ledger.movements),
        )
        return CostingResult(
            settings=self._settings,
            accounts=ledger.accounts,
            lots=ledger.lots,
            movements=ledger.movements,
            transactions=transactions,
            action_records=action_records,
        )

    def process_record(self, ledger: Ledger, record: ActionRecord) -> Transaction:
        """Cost one record against ``ledger``.

        Currencies, valuations and funds are all checked before the first lot
        changes, so a record that fails leaves the ledger as it found it.
        """
        for leg in record.legs:
            ledger.resolve_currency(leg.currency)
        fee_values = [self._fee_value(record, fee) for fee in record.fees]
        self._check_funds(ledger, record)

        outcome = self._handlers[record.kind](ledger, record)
        for fee, value in zip(record.fees, fee_values):
            outcome.outflows.extend(self._pay_fee(ledger, record, fee, value, outcome))

        transaction = outcome.to_transaction(record)
        logger.debug(
            "seq=%d %s %s: %d movements, gain_loss=%s deferred=%s",
            record.seq,
            record.kind,
            record.tx_date,
            len(transaction.movement_ids),
            transaction.gain_loss,
            transaction.deferred_gain_loss,
        )
        return transaction

    def _check_chronology(self, record: ActionRecord, last_date: date | None) -> None:
        if last_date is not None and record.tx_date < last_date:
            raise ChronologyViolationError(
                f"Record dated {record.tx_date} follows a record dated {last_date}",
                seq=record.seq,
            )

    def _check_funds(self, ledger: Ledger, record: ActionRecord) -> None:
        """Fail when the outgoing and fee legs together overdraw any account.

        The principal leg leaves before anything arrives; fee legs are paid
        afterwards and may draw on the incoming quantity.
        """
        owed: dict[AccountKey, Decimal] = {}
        received: dict[AccountKey, Decimal] = {}

        def require(leg: ActionLeg) -> None:
            key = make_account_key(leg.currency, leg.wallet)
            owed[key] = add(owed.get(key, ZERO), abs(leg.quantity))
            account = ledger.find_account(leg.currency, leg.wallet)
            held = add(*(lot.remaining_quantity for lot in ledger.open_lots(account))) if account else ZERO
            available = add(held, received.get(key, ZERO))
            if owed[key] > available:
                raise InsufficientFundsError(
                    f"Account {key} holds {available} {leg.currency}, cannot dispose {owed[key]}",
                    seq=record.seq,
                    currency=leg.currency,
                    requested=owed[key],
                    available=available,
                )

        if record.outgoing is not None:
            require(record.outgoing)
        if record.incoming is not None:
            incoming = record.incoming
            received[make_account_key(incoming.currency, incoming.wallet)] = incoming.quantity
        for fee in record.fees:
            require(fee)

    def _is_home(self, leg: ActionLeg) -> bool:
        return leg.currency == self._settings.home_currency

    def _is_like_kind(self, record: ActionRecord, outgoing: ActionLeg, incoming: ActionLeg) -> bool:
        if record.kind != ActionKind.TRADE or not self._settings.like_kind_applies_on(record.tx_date):
            return False
        return not self._is_home(outgoing) and not self._is_home(incoming)

    def _exchange_value(self, record: ActionRecord) -> Decimal:
        """Home-currency value of what changed hands; a home-currency leg beats the supplied value."""
        for leg in (record.outgoing, record.incoming):
            if leg is not None and self._is_home(leg):
                return abs(leg.quantity)
        if record.value is None:
            raise MissingValuationError(
                f"{record.kind} record has no {self._settings.home_currency} leg and no value",
                seq=record.seq,
            )
        return record.value

    def _fee_value(self, record: ActionRecord, fee: ActionLeg) -> Decimal:
        if self._is_home(fee):
            return abs(fee.quantity)
        if fee.value is None:
            raise MissingValuationError(f"Fee of {abs(fee.quantity)} {fee.currency} has no value", seq=record.seq)
        return fee.value

    def _dispose(
        self,
        ledger: Ledger,
        record: ActionRecord,
        leg: ActionLeg,
        proceeds: Decimal | None,
        *,
        is_fee: bool = False,
        is_like_kind: bool = False,
    ) -> list[tuple[Lot, Movement]]:
        """Deplete lots for an outgoing leg, splitting ``proceeds`` pro-rata by quantity.

        ``proceeds=None`` values every outflow at its cost basis.
        """
        account = ledger.find_account(leg.currency, leg.wallet)
        quantity = abs(leg.quantity)
        plan = select_lots(ledger.open_lots(account) if account else [], quantity, self._settings.costing_method)

        depleted: list[tuple[Lot, Movement]] = []
        consumed = ZERO
        allocated = ZERO
        for lot, take in plan:
            share: Decimal | None = None
            consumed = add(consumed, take)
            if proceeds is not None:
                cumulative = cumulative_share(proceeds, consumed, quantity, self._settings.money_places)
                share = sub(cumulative, allocated)
                allocated = cumulative
            movement = ledger.deplete_lot(
                lot.id,
                take,
                transaction_seq=record.seq,
                proceeds=share,
                is_fee=is_fee,
                is_like_kind=is_like_kind,
            )
            depleted.append((lot, movement))
        return depleted

    def _acquire(
        self,
        ledger: Ledger,
        record: ActionRecord,
        leg: ActionLeg,
        quantity: Decimal,
        basis: Decimal,
        *,
        is_like_kind_carryover: bool = False,
        basis_date: date | None = None,
    ) -> Movement:
        account = ledger.get_or_create_account(leg.currency, leg.wallet)
        if self._is_home(leg):
            basis = quantity
        lot_id = ledger.open_lot(
            account,
            quantity,
            record.tx_date,
            basis,
            is_like_kind_carryover,
            transaction_seq=record.seq,
            basis_date=basis_date,
        )
        return ledger.inflow_for(lot_id)

    def _trade(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        outgoing, incoming = _outgoing(record), _incoming(record)
        value = self._exchange_value(record)
        like_kind = self._is_like_kind(record, outgoing, incoming)

        depleted = self._dispose(
            ledger,
            record,
            outgoing,
            None if self._is_home(outgoing) else value,
            is_like_kind=like_kind,
        )
        outflows = [movement for _, movement in depleted]

        if like_kind:
            inflow = self._acquire(
                ledger,
                record,
                incoming,
                incoming.quantity,
                add(*(movement.cost_basis for movement in outflows)),
                is_like_kind_carryover=True,
                basis_date=min(lot.basis_date for lot, _ in depleted),
            )
        else:
            inflow = self._acquire(ledger, record, incoming, incoming.quantity, value)

        return _Outcome(outflows=outflows, inflows=[inflow], is_like_kind=like_kind)

    def _income(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        outcome = self._deposit(ledger, record)
        outcome.income = outcome.inflows[0].cost_basis
        return outcome

    def _deposit(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        incoming = _incoming(record)
        if self._is_home(incoming):
            value = incoming.quantity
        else:
            value = self._exchange_value(record)
        inflow = self._acquire(ledger, record, incoming, incoming.quantity, value)
        return _Outcome(outflows=[], inflows=[inflow])

    def _expense(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        outgoing = _outgoing(record)
        proceeds = None if self._is_home(outgoing) else self._exchange_value(record)
        outflows = [movement for _, movement in self._dispose(ledger, record, outgoing, proceeds)]
        expense = proceeds if proceeds is not None else abs(outgoing.quantity)
        return _Outcome(outflows=outflows, inflows=[], expense=expense)

    def _withdrawal(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        outflows = [movement for _, movement in self._dispose(ledger, record, _outgoing(record), None)]
        return _Outcome(outflows=outflows, inflows=[])

    def _transfer(self, ledger: Ledger, record: ActionRecord) -> _Outcome:
        """Move lots between wallets, keeping each lot's basis, basis date and carryover flag."""
        outgoing, incoming = _outgoing(record), _incoming(record)
        depleted = self._dispose(ledger, record, outgoing, None)

        inflows = [
            self._acquire(
                ledger,
                record,
                incoming,
                movement.quantity,
                movement.cost_basis,
                is_like_kind_carryover=lot.is_like_kind_carryover,
                basis_date=lot.basis_date,
            )
            for lot, movement in depleted
        ]
        return _Outcome(outflows=[movement for _, movement in depleted], inflows=inflows)

    def _pay_fee(
        self, ledger: Ledger, record: ActionRecord, fee: ActionLeg, value: Decimal, outcome: _Outcome
    ) -> list[Movement]:
        proceeds = None if self._is_home(fee) else value
        outcome.fee_value = add(outcome.fee_value, value)
        return [movement for _, movement in self._dispose(ledger, record, fee, proceeds, is_fee=True)]


def _outgoing(record: ActionRecord) -> ActionLeg:
    if record.outgoing is None:
        raise LedgerInvariantError(f"{record.kind} record has no outgoing leg", seq=record.seq)
    return record.outgoing


def _incoming(record: ActionRecord) -> ActionLeg:
    if record.incoming is None:
        raise LedgerInvariantError(f"{record.kind} record has no incoming leg", seq=record.seq)
    return record.incoming
