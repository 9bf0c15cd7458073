from __future__ import annotations

import csv
import logging
from pathlib import Path

from domain.inventory import CostingResult

from .text_export import render_journal, render_text_report

logger = logging.getLogger(__name__)

TRANSACTION_COLUMNS = [
    "seq",
    "date",
    "kind",
    "memo",
    "proceeds",
    "cost_basis",
    "gain_loss",
    "deferred_gain_loss",
    "realized_gain_loss",
    "like_kind",
    "income",
    "expense",
    "fee_value",
    "movement_ids",
]
LOT_COLUMNS = [
    "lot_id",
    "account",
    "currency",
    "created_on",
    "basis_date",
    "original_quantity",
    "remaining_quantity",
    "basis",
    "like_kind_carryover",
    "transaction_seq",
]
MOVEMENT_COLUMNS = [
    "movement_id",
    "transaction_seq",
    "lot_id",
    "role",
    "quantity",
    "cost_basis",
    "proceeds",
    "gain_loss",
    "fee",
    "like_kind",
]


def export_reports(result: CostingResult, output_dir: Path) -> dict[str, Path]:
    """Write transaction, lot and movement CSVs plus the text report and journal into ``output_dir``."""

    output_dir.mkdir(parents=True, exist_ok=True)
    transactions_path = output_dir / "transactions.csv"
    lots_path = output_dir / "lots.csv"
    movements_path = output_dir / "movements.csv"
    report_path = output_dir / "report.txt"
    journal_path = output_dir / "journal.txt"

    with transactions_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(TRANSACTION_COLUMNS)
        for txn in result.transactions.values():
            writer.writerow(
                [
                    txn.seq,
                    txn.tx_date.isoformat(),
                    str(txn.kind),
                    txn.memo,
                    str(txn.proceeds),
                    str(txn.cost_basis),
                    str(txn.gain_loss),
                    str(txn.deferred_gain_loss),
                    str(txn.realized_gain_loss),
                    int(txn.is_like_kind),
                    str(txn.income),
                    str(txn.expense),
                    str(txn.fee_value),
                    " ".join(str(movement_id) for movement_id in txn.movement_ids),
                ]
            )

    with lots_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(LOT_COLUMNS)
        for lot in result.lots.values():
            writer.writerow(
                [
                    lot.id,
                    lot.account_key,
                    lot.currency,
                    lot.created_on.isoformat(),
                    lot.basis_date.isoformat(),
                    str(lot.original_quantity),
                    str(lot.remaining_quantity),
                    str(lot.basis),
                    int(lot.is_like_kind_carryover),
                    lot.transaction_seq,
                ]
            )

    with movements_path.open("w", encoding="utf-8", newline="") as fp:
        writer = csv.writer(fp)
        writer.writerow(MOVEMENT_COLUMNS)
        for movement in result.movements.values():
            writer.writerow(
                [
                    movement.id,
                    movement.transaction_seq,
                    movement.lot_id,
                    str(movement.role),
                    str(movement.quantity),
                    str(movement.cost_basis),
                    str(movement.proceeds),
                    str(movement.gain_loss),
                    int(movement.is_fee),
                    int(movement.is_like_kind),
                ]
            )

    report_path.write_text(render_text_report(result), encoding="utf-8")
    journal_path.write_text(render_journal(result), encoding="utf-8")

    logger.info("Exported reports to %s", output_dir)
    return {
        "transactions": transactions_path,
        "lots": lots_path,
        "movements": movements_path,
        "report": report_path,
        "journal": journal_path,
    }
