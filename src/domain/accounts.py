from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal
from types import MappingProxyType

from utils.decimals import MONEY_PLACES, add, cumulative_share, sub

from .errors import InsufficientLotBalanceError, InvalidQuantityError, LedgerInvariantError, UnknownCurrencyError
from .ledger import (
    DEFAULT_WALLET,
    Account,
    AccountKey,
    Lot,
    LotId,
    Movement,
    MovementId,
    MovementRole,
    make_account_key,
)


class Ledger:
    """Accounts, their lots and every movement posted against those lots.

    Lots and movements live in arenas keyed by sequential integer ids; accounts
    and movements refer to lots by id only.
    """

    def __init__(
        self,
        home_currency: str,
        *,
        known_currencies: Iterable[str] | None = None,
        money_places: int = MONEY_PLACES,
    ) -> None:
        self.home_currency = home_currency.upper()
        self._known = None if known_currencies is None else {c.upper() for c in known_currencies} | {self.home_currency}
        self._money_places = money_places
        self._accounts: dict[AccountKey, Account] = {}
        self._lots: dict[LotId, Lot] = {}
        self._movements: dict[MovementId, Movement] = {}
        self._inflows: dict[LotId, MovementId] = {}

    @property
    def accounts(self) -> Mapping[AccountKey, Account]:
        return MappingProxyType(self._accounts)

    @property
    def lots(self) -> Mapping[LotId, Lot]:
        return MappingProxyType(self._lots)

    @property
    def movements(self) -> Mapping[MovementId, Movement]:
        return MappingProxyType(self._movements)

    def resolve_currency(self, currency: str) -> str:
        code = currency.strip().upper()
        if not code or not code.isalnum():
            raise UnknownCurrencyError(f"Malformed currency code {currency!r}", currency=currency)
        if self._known is not None and code not in self._known:
            raise UnknownCurrencyError(f"Currency {code} is not a known account currency", currency=code)
        return code

    def get_or_create_account(self, currency: str, wallet: str = DEFAULT_WALLET) -> Account:
        code = self.resolve_currency(currency)
        key = make_account_key(code, wallet)
        account = self._accounts.get(key)
        if account is None:
            account = Account(key=key, currency=code, wallet=wallet)
            self._accounts[key] = account
        return account

    def find_account(self, currency: str, wallet: str = DEFAULT_WALLET) -> Account | None:
        return self._accounts.get(make_account_key(self.resolve_currency(currency), wallet))

    def lots_for(self, account: Account) -> list[Lot]:
        return [self._lots[lot_id] for lot_id in account.lot_ids]

    def open_lots(self, account: Account) -> list[Lot]:
        return [lot for lot in self.lots_for(account) if not lot.is_closed]

    def open_lot(
        self,
        account: Account,
        quantity: Decimal,
        tx_date: date,
        basis: Decimal,
        is_like_kind_carryover: bool = False,
        *,
        transaction_seq: int,
        basis_date: date | None = None,
    ) -> LotId:
        if quantity <= 0:
            raise InvalidQuantityError(
                f"Cannot open a lot of {quantity} {account.currency}",
                currency=account.currency,
                requested=quantity,
            )
        if basis < 0:
            raise InvalidQuantityError(f"Cannot open a lot with negative basis {basis}", currency=account.currency)

        lot_id = LotId(len(self._lots) + 1)
        lot = Lot(
            id=lot_id,
            account_key=account.key,
            currency=account.currency,
            created_on=tx_date,
            basis_date=basis_date or tx_date,
            original_quantity=quantity,
            remaining_quantity=quantity,
            basis=basis,
            is_like_kind_carryover=is_like_kind_carryover,
            transaction_seq=transaction_seq,
        )
        self._lots[lot_id] = lot
        account.lot_ids.append(lot_id)
        account.balance = add(account.balance, quantity)
        inflow = self._record(
            lot_id=lot_id,
            transaction_seq=transaction_seq,
            role=MovementRole.INFLOW,
            quantity=quantity,
            cost_basis=basis,
        )
        self._inflows[lot_id] = inflow.id
        return lot_id

    def deplete_lot(
        self,
        lot_id: LotId,
        quantity: Decimal,
        *,
        transaction_seq: int,
        proceeds: Decimal | None = None,
        is_fee: bool = False,
        is_like_kind: bool = False,
    ) -> Movement:
        """Post an outflow of ``quantity`` from a lot.

        Without ``proceeds`` the outflow is valued at its cost basis (no gain).
        """
        lot = self._lots[lot_id]
        if quantity <= 0:
            raise InvalidQuantityError(
                f"Cannot deplete {quantity} from lot {lot_id}",
                currency=lot.currency,
                requested=quantity,
            )
        if quantity > lot.remaining_quantity:
            raise InsufficientLotBalanceError(
                f"Lot {lot_id} holds {lot.remaining_quantity} {lot.currency}, cannot deplete {quantity}",
                currency=lot.currency,
                requested=quantity,
                available=lot.remaining_quantity,
            )

        remaining = sub(lot.remaining_quantity, quantity)
        cost_basis = sub(self.consumed_basis(lot, remaining), self.consumed_basis(lot))

        if proceeds is None:
            proceeds = cost_basis

        lot.remaining_quantity = remaining
        account = self._accounts[lot.account_key]
        account.balance = sub(account.balance, quantity)

        return self._record(
            lot_id=lot_id,
            transaction_seq=transaction_seq,
            role=MovementRole.OUTFLOW,
            quantity=quantity,
            cost_basis=cost_basis,
            proceeds=proceeds,
            gain_loss=sub(proceeds, cost_basis),
            is_fee=is_fee,
            is_like_kind=is_like_kind,
        )

    def consumed_basis(self, lot: Lot, remaining: Decimal | None = None) -> Decimal:
        """Basis already charged to outflows once the lot is down to ``remaining`` (default: its current quantity)."""
        if remaining is None:
            remaining = lot.remaining_quantity
        consumed = sub(lot.original_quantity, remaining)
        return cumulative_share(lot.basis, consumed, lot.original_quantity, self._money_places)

    def remaining_basis(self, lot: Lot) -> Decimal:
        return sub(lot.basis, self.consumed_basis(lot))

    def inflow_for(self, lot_id: LotId) -> Movement:
        return self._movements[self._inflows[lot_id]]

    def movements_for_lot(self, lot_id: LotId) -> list[Movement]:
        return [movement for movement in self._movements.values() if movement.lot_id == lot_id]

    def check_balances(self) -> None:
        for account in self._accounts.values():
            total = add(*(lot.remaining_quantity for lot in self.lots_for(account)))
            if total != account.balance:
                raise LedgerInvariantError(
                    f"Account {account.key} balance {account.balance} != open lots {total}",
                    currency=account.currency,
                    requested=account.balance,
                    available=total,
                )

    def _record(self, **fields: object) -> Movement:
        movement_id = MovementId(len(self._movements) + 1)
        movement = Movement(id=movement_id, **fields)  # type: ignore[arg-type]
        self._movements[movement_id] = movement
        return movement
