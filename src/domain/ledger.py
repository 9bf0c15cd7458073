from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import StrEnum
from typing import NewType

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from utils.decimals import ZERO, div

AccountKey = NewType("AccountKey", str)
LotId = NewType("LotId", int)
MovementId = NewType("MovementId", int)

DEFAULT_WALLET = ""


def make_account_key(currency: str, wallet: str = DEFAULT_WALLET) -> AccountKey:
    if wallet:
        return AccountKey(f"{wallet}:{currency}")
    return AccountKey(currency)


class ActionKind(StrEnum):
    TRADE = "TRADE"
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


_INCOMING_ONLY = {ActionKind.INCOME, ActionKind.DEPOSIT}
_OUTGOING_ONLY = {ActionKind.EXPENSE, ActionKind.WITHDRAWAL}


class MovementRole(StrEnum):
    INFLOW = "INFLOW"
    OUTFLOW = "OUTFLOW"


class ActionLeg(BaseModel):
    """A single currency movement within an action record.

    Quantity sign convention:
    - Positive quantity means the currency was received.
    - Negative quantity means the currency was given up.

    ``value`` is the home-currency fair value of the leg; fee legs in a
    non-home currency need it to price the disposal.
    """

    model_config = ConfigDict(frozen=True)

    currency: str
    quantity: Decimal
    wallet: str = DEFAULT_WALLET
    is_fee: bool = False
    value: Decimal | None = None

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: str) -> str:
        return value.strip().upper()

    @field_validator("wallet", mode="before")
    @classmethod
    def _normalize_wallet(cls, value: str | None) -> str:
        return (value or "").strip()

    @model_validator(mode="after")
    def _validate_quantity(self) -> ActionLeg:
        if not self.quantity.is_finite() or self.quantity == 0:
            raise ValueError("ActionLeg.quantity must be a non-zero finite decimal")
        if self.is_fee and self.quantity > 0:
            raise ValueError("Fee legs must have a negative quantity")
        if self.value is not None and self.value < 0:
            raise ValueError("ActionLeg.value must be >= 0")
        return self


class ActionRecord(BaseModel):
    """One imported ledger line, normalized and immutable."""

    model_config = ConfigDict(frozen=True)

    seq: int = Field(ge=1)
    tx_date: date
    kind: ActionKind
    legs: tuple[ActionLeg, ...]
    value: Decimal | None = None
    memo: str = ""

    @property
    def outgoing(self) -> ActionLeg | None:
        return next((leg for leg in self.legs if not leg.is_fee and leg.quantity < 0), None)

    @property
    def incoming(self) -> ActionLeg | None:
        return next((leg for leg in self.legs if not leg.is_fee and leg.quantity > 0), None)

    @property
    def fees(self) -> list[ActionLeg]:
        return [leg for leg in self.legs if leg.is_fee]

    @property
    def currencies(self) -> set[str]:
        return {leg.currency for leg in self.legs}

    @model_validator(mode="after")
    def _validate_shape(self) -> ActionRecord:
        if self.value is not None and self.value < 0:
            raise ValueError("ActionRecord.value must be >= 0")

        principal = [leg for leg in self.legs if not leg.is_fee]
        outgoing = [leg for leg in principal if leg.quantity < 0]
        incoming = [leg for leg in principal if leg.quantity > 0]
        if len(outgoing) > 1 or len(incoming) > 1:
            raise ValueError(f"{self.kind} record may hold at most one outgoing and one incoming leg")

        if self.kind in _INCOMING_ONLY:
            if len(incoming) != 1 or outgoing:
                raise ValueError(f"{self.kind} record needs exactly one incoming leg and no outgoing leg")
        elif self.kind in _OUTGOING_ONLY:
            if len(outgoing) != 1 or incoming:
                raise ValueError(f"{self.kind} record needs exactly one outgoing leg and no incoming leg")
        else:
            if len(outgoing) != 1 or len(incoming) != 1:
                raise ValueError(f"{self.kind} record needs one outgoing and one incoming leg")
            out_leg, in_leg = outgoing[0], incoming[0]
            if self.kind == ActionKind.TRADE and out_leg.currency == in_leg.currency:
                raise ValueError("TRADE legs must be in different currencies")
            if self.kind == ActionKind.TRANSFER:
                if out_leg.currency != in_leg.currency:
                    raise ValueError("TRANSFER legs must be in the same currency")
                if out_leg.wallet == in_leg.wallet:
                    raise ValueError("TRANSFER legs must use different wallets")
                if abs(out_leg.quantity) != in_leg.quantity:
                    raise ValueError("TRANSFER legs must move the same quantity")
        return self


class Account(BaseModel):
    key: AccountKey
    currency: str
    wallet: str = DEFAULT_WALLET
    lot_ids: list[LotId] = Field(default_factory=list)
    balance: Decimal = ZERO


class Lot(BaseModel):
    """A quantity of one currency acquired at a specific date.

    Only ``remaining_quantity`` ever changes, and only through the ledger when
    it records an outflow movement.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: LotId
    account_key: AccountKey
    currency: str
    created_on: date
    basis_date: date
    original_quantity: Decimal
    remaining_quantity: Decimal
    basis: Decimal
    is_like_kind_carryover: bool = False
    transaction_seq: int

    @property
    def unit_basis(self) -> Decimal:
        return div(self.basis, self.original_quantity)

    @property
    def is_closed(self) -> bool:
        return self.remaining_quantity == 0

    @model_validator(mode="after")
    def _validate_quantities(self) -> Lot:
        if self.original_quantity <= 0:
            raise ValueError("Lot.original_quantity must be > 0")
        if not 0 <= self.remaining_quantity <= self.original_quantity:
            raise ValueError("Lot.remaining_quantity must stay within [0, original_quantity]")
        if self.basis < 0:
            raise ValueError("Lot.basis must be >= 0")
        return self


class Movement(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: MovementId
    lot_id: LotId
    transaction_seq: int
    role: MovementRole
    quantity: Decimal
    cost_basis: Decimal
    proceeds: Decimal = ZERO
    gain_loss: Decimal = ZERO
    is_fee: bool = False
    is_like_kind: bool = False

    @model_validator(mode="after")
    def _validate(self) -> Movement:
        if self.quantity <= 0:
            raise ValueError("Movement.quantity must be > 0")
        if self.cost_basis < 0:
            raise ValueError("Movement.cost_basis must be >= 0")
        if self.proceeds < 0:
            raise ValueError("Movement.proceeds must be >= 0")
        return self


class Transaction(BaseModel):
    """Costing outcome of one action record."""

    model_config = ConfigDict(frozen=True)

    seq: int
    tx_date: date
    kind: ActionKind
    memo: str = ""
    movement_ids: tuple[MovementId, ...] = ()
    proceeds: Decimal = ZERO
    cost_basis: Decimal = ZERO
    gain_loss: Decimal = ZERO
    deferred_gain_loss: Decimal = ZERO
    is_like_kind: bool = False
    income: Decimal = ZERO
    expense: Decimal = ZERO
    fee_value: Decimal = ZERO

    @property
    def realized_gain_loss(self) -> Decimal:
        return self.gain_loss - self.deferred_gain_loss

    @model_validator(mode="after")
    def _validate_identity(self) -> Transaction:
        if self.gain_loss != self.proceeds - self.cost_basis:
            raise ValueError("Transaction.gain_loss must equal proceeds - cost_basis")
        if self.deferred_gain_loss and not self.is_like_kind:
            raise ValueError("Only like-kind transactions may defer gain/loss")
        return self
