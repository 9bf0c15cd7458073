from datetime import date
from decimal import Decimal

import pytest

from domain.inventory import CostingEngine
from domain.ledger import MovementRole
from domain.selection import CostingMethod
from domain.settings import CostingSettings
from tests.constants import BTC, ETH, LK_CUTOFF, LTC, USD
from tests.helpers.scenarios import like_kind_history
from tests.helpers.time_utils import deposit, trade


@pytest.fixture
def lk_engine() -> CostingEngine:
    return CostingEngine(
        CostingSettings(
            home_currency=USD,
            like_kind_cutoff=LK_CUTOFF,
            costing_method=CostingMethod.FIFO_BY_CREATION,
        )
    )


def test_pre_cutoff_swap_defers_gain_and_carries_basis(lk_engine: CostingEngine) -> None:
    result = lk_engine.process(like_kind_history())

    swap = result.transactions[3]
    assert swap.is_like_kind
    assert swap.proceeds == Decimal("9000")
    assert swap.cost_basis == Decimal("2500.00")
    assert swap.gain_loss == Decimal("6500.00")
    assert swap.deferred_gain_loss == Decimal("6500.00")
    assert swap.realized_gain_loss == Decimal(0)

    (eth_lot,) = [lot for lot in result.lots.values() if lot.currency == ETH]
    assert eth_lot.is_like_kind_carryover
    assert eth_lot.basis == Decimal("2500.00")
    assert eth_lot.basis_date == date(2017, 1, 10)
    assert eth_lot.created_on == date(2017, 11, 1)
    assert all(
        result.movements[mid].is_like_kind
        for mid in swap.movement_ids
        if result.movements[mid].role == MovementRole.OUTFLOW
    )


def test_carryover_basis_is_realized_on_fiat_exit(lk_engine: CostingEngine) -> None:
    result = lk_engine.process(like_kind_history())

    exit_txn = result.transactions[4]
    assert not exit_txn.is_like_kind
    assert exit_txn.proceeds == Decimal("12000")
    assert exit_txn.cost_basis == Decimal("2500.00")
    assert exit_txn.gain_loss == exit_txn.realized_gain_loss == Decimal("9500.00")
    assert exit_txn.deferred_gain_loss == Decimal(0)


def test_trade_on_cutoff_date_is_like_kind(lk_engine: CostingEngine) -> None:
    records = [
        deposit(BTC, "1", "100", tx_date=date(2017, 6, 1)),
        trade(BTC, "1", LTC, "50", "400", tx_date=LK_CUTOFF),
    ]

    txn = lk_engine.process(records).transactions[records[1].seq]

    assert txn.is_like_kind
    assert txn.deferred_gain_loss == Decimal("300")


def test_trade_after_cutoff_is_taxable(lk_engine: CostingEngine) -> None:
    records = [
        deposit(BTC, "1", "100", tx_date=date(2017, 6, 1)),
        trade(BTC, "1", LTC, "50", "400", tx_date=date(2018, 1, 1)),
    ]

    result = lk_engine.process(records)

    txn = result.transactions[records[1].seq]
    assert not txn.is_like_kind
    assert txn.deferred_gain_loss == Decimal(0)
    assert txn.realized_gain_loss == Decimal("300")
    (ltc_lot,) = [lot for lot in result.lots.values() if lot.currency == LTC]
    assert ltc_lot.basis == Decimal("400")
    assert ltc_lot.basis_date == date(2018, 1, 1)
    assert not ltc_lot.is_like_kind_carryover


def test_crypto_to_fiat_is_never_like_kind(lk_engine: CostingEngine) -> None:
    records = [
        deposit(BTC, "1", "100", tx_date=date(2017, 3, 1)),
        trade(BTC, "0.5", USD, "250", tx_date=date(2017, 5, 1)),
    ]

    txn = lk_engine.process(records).transactions[records[1].seq]

    assert not txn.is_like_kind
    assert txn.realized_gain_loss == Decimal("200.00")


def test_without_cutoff_nothing_is_like_kind() -> None:
    engine = CostingEngine(CostingSettings(costing_method=CostingMethod.FIFO_BY_CREATION))

    result = engine.process(like_kind_history())

    assert not any(txn.is_like_kind for txn in result.transactions.values())
    assert result.transactions[3].realized_gain_loss == Decimal("6500.00")
    (eth_lot,) = [lot for lot in result.lots.values() if lot.currency == ETH]
    assert eth_lot.basis == Decimal("9000")


def test_basis_date_ordering_prefers_carryover_lot() -> None:
    engine = CostingEngine(
        CostingSettings(like_kind_cutoff=LK_CUTOFF, costing_method=CostingMethod.FIFO_BY_BASIS_DATE)
    )
    records = [
        deposit(BTC, "1", "100", tx_date=date(2017, 1, 10)),
        deposit(ETH, "5", "100", tx_date=date(2017, 10, 1)),
        trade(BTC, "1", ETH, "10", "500", tx_date=date(2017, 11, 1)),
        trade(ETH, "5", USD, "1000", tx_date=date(2018, 2, 1)),
    ]

    result = engine.process(records)

    sale = result.transactions[records[3].seq]
    movements = [result.movements[mid] for mid in sale.movement_ids]
    (outflow,) = [movement for movement in movements if movement.role == MovementRole.OUTFLOW]
    chosen = result.lots[outflow.lot_id]
    assert chosen.is_like_kind_carryover
    assert chosen.basis_date == date(2017, 1, 10)
    assert sale.cost_basis == Decimal("50.00")
