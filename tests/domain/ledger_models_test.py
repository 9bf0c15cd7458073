from datetime import date
from decimal import Decimal

import pytest
from pydantic import ValidationError

from domain.ledger import (
    AccountKey,
    ActionKind,
    ActionLeg,
    Lot,
    LotId,
    Movement,
    MovementId,
    MovementRole,
    Transaction,
    make_account_key,
)
from tests.constants import BTC, COLD_WALLET, ETH, EXCHANGE_WALLET, USD
from tests.helpers.time_utils import leg, make_record


def test_leg_normalizes_currency_and_wallet() -> None:
    normalized = ActionLeg(currency=" btc ", quantity=Decimal("1"), wallet=" cold ")

    assert normalized.currency == BTC
    assert normalized.wallet == COLD_WALLET


@pytest.mark.parametrize(
    "kwargs",
    [
        {"quantity": Decimal(0)},
        {"quantity": Decimal("NaN")},
        {"quantity": Decimal("0.1"), "is_fee": True},
        {"quantity": Decimal("-0.1"), "value": Decimal("-1")},
    ],
)
def test_invalid_legs(kwargs: dict) -> None:
    with pytest.raises(ValidationError):
        ActionLeg(currency=BTC, **kwargs)


def test_record_exposes_legs_by_role() -> None:
    fee = leg(ETH, "-0.01", is_fee=True, value="2")
    record = make_record(kind=ActionKind.TRADE, legs=[leg(BTC, "-1"), leg(ETH, "20"), fee], value="1000")

    assert record.outgoing.currency == BTC
    assert record.incoming.currency == ETH
    assert record.fees == [fee]
    assert record.currencies == {BTC, ETH}


@pytest.mark.parametrize(
    ("kind", "legs"),
    [
        (ActionKind.INCOME, [leg(BTC, "-1")]),
        (ActionKind.DEPOSIT, [leg(BTC, "1"), leg(ETH, "-1")]),
        (ActionKind.EXPENSE, [leg(BTC, "1")]),
        (ActionKind.WITHDRAWAL, []),
        (ActionKind.TRADE, [leg(BTC, "-1")]),
        (ActionKind.TRADE, [leg(BTC, "-1"), leg(BTC, "1")]),
        (ActionKind.TRADE, [leg(BTC, "-1"), leg(ETH, "-1"), leg(USD, "5")]),
        (ActionKind.TRANSFER, [leg(BTC, "-1", EXCHANGE_WALLET), leg(ETH, "1", COLD_WALLET)]),
        (ActionKind.TRANSFER, [leg(BTC, "-1", COLD_WALLET), leg(BTC, "1", COLD_WALLET)]),
        (ActionKind.TRANSFER, [leg(BTC, "-1", EXCHANGE_WALLET), leg(BTC, "0.9", COLD_WALLET)]),
    ],
)
def test_record_shape_is_validated(kind: ActionKind, legs: list[ActionLeg]) -> None:
    with pytest.raises(ValidationError):
        make_record(kind=kind, legs=legs, value="1")


def test_record_rejects_negative_value_and_bad_seq() -> None:
    with pytest.raises(ValidationError):
        make_record(kind=ActionKind.INCOME, legs=[leg(BTC, "1")], value="-5")
    with pytest.raises(ValidationError):
        make_record(kind=ActionKind.INCOME, legs=[leg(BTC, "1")], value="5", seq=0)


def test_records_are_frozen() -> None:
    record = make_record(kind=ActionKind.DEPOSIT, legs=[leg(BTC, "1")], value="5")

    with pytest.raises(ValidationError):
        record.memo = "changed"  # type: ignore[misc]


def test_account_key_includes_wallet_when_set() -> None:
    assert make_account_key(BTC) == BTC
    assert make_account_key(BTC, COLD_WALLET) == "cold:BTC"


def _lot(**overrides: object) -> Lot:
    fields: dict = {
        "id": LotId(1),
        "account_key": AccountKey(BTC),
        "currency": BTC,
        "created_on": date(2018, 1, 1),
        "basis_date": date(2018, 1, 1),
        "original_quantity": Decimal("2"),
        "remaining_quantity": Decimal("2"),
        "basis": Decimal("50"),
        "transaction_seq": 1,
    }
    fields.update(overrides)
    return Lot(**fields)


def test_lot_bounds_are_enforced_on_assignment() -> None:
    lot = _lot()
    assert lot.unit_basis == Decimal("25")

    with pytest.raises(ValidationError):
        lot.remaining_quantity = Decimal("2.5")
    with pytest.raises(ValidationError):
        lot.remaining_quantity = Decimal("-0.1")

    lot.remaining_quantity = Decimal(0)
    assert lot.is_closed


@pytest.mark.parametrize(
    "overrides",
    [
        {"original_quantity": Decimal(0), "remaining_quantity": Decimal(0)},
        {"basis": Decimal("-1")},
    ],
)
def test_invalid_lots(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        _lot(**overrides)


@pytest.mark.parametrize(
    "overrides",
    [
        {"quantity": Decimal(0)},
        {"cost_basis": Decimal("-0.01")},
        {"proceeds": Decimal("-1")},
    ],
)
def test_invalid_movements(overrides: dict) -> None:
    fields = {
        "id": MovementId(1),
        "lot_id": LotId(1),
        "transaction_seq": 1,
        "role": MovementRole.OUTFLOW,
        "quantity": Decimal("0.1"),
        "cost_basis": Decimal(0),
    }
    with pytest.raises(ValidationError):
        Movement(**(fields | overrides))


def test_transaction_identity_and_deferral_rules() -> None:
    base = {"seq": 1, "tx_date": date(2017, 5, 1), "kind": ActionKind.TRADE}

    with pytest.raises(ValidationError):
        Transaction(**base, proceeds=Decimal("10"), cost_basis=Decimal("4"), gain_loss=Decimal("5"))
    with pytest.raises(ValidationError):
        Transaction(
            **base,
            proceeds=Decimal("10"),
            cost_basis=Decimal("4"),
            gain_loss=Decimal("6"),
            deferred_gain_loss=Decimal("6"),
        )

    like_kind = Transaction(
        **base,
        proceeds=Decimal("10"),
        cost_basis=Decimal("4"),
        gain_loss=Decimal("6"),
        deferred_gain_loss=Decimal("6"),
        is_like_kind=True,
    )
    assert like_kind.realized_gain_loss == Decimal(0)
