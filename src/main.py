from __future__ import annotations

import argparse
import logging
from datetime import date
from pathlib import Path
from typing import Sequence

from config import AppSettings
from domain.inventory import CostingEngine, CostingResult
from domain.selection import CostingMethod
from importers.csv_importer import CsvImporter
from utils.export import export_reports
from utils.inventory_summary import compute_inventory_summary, render_inventory_summary
from utils.tax_summary import compute_yearly_tax_summary, render_yearly_tax_summary

logger = logging.getLogger(__name__)

METHOD_HELP = """Inventory costing method (lot selection):
  1. LIFO according to the order the lot was created.
  2. LIFO according to the basis date of the lot.
  3. FIFO according to the order the lot was created.
  4. FIFO according to the basis date of the lot."""


def run(csv_path: Path, settings: AppSettings) -> CostingResult:
    importer = CsvImporter(
        csv_path,
        date_separator=settings.date_separator,
        iso_date=settings.iso_date,
        quantity_places=settings.quantity_places,
    )
    records = importer.load_records()

    engine = CostingEngine(settings.to_costing_settings())
    result = engine.process(records)

    print(f"Processed {len(result.action_records)} records from {csv_path}")
    print_base_summary(result)
    render_inventory_summary(compute_inventory_summary(result))
    render_yearly_tax_summary(
        compute_yearly_tax_summary(result), result.settings.home_currency, result.settings.money_places
    )

    if not settings.suppress_reports:
        paths = export_reports(result, settings.output_dir)
        for name, path in paths.items():
            print(f"  wrote {name}: {path}")
    return result


def print_base_summary(result: CostingResult) -> None:
    print("Costing summary:")
    print(f"  Accounts:     {len(result.accounts)}")
    print(f"  Lots:         {len(result.lots)}")
    print(f"  Movements:    {len(result.movements)}")
    print(f"  Transactions: {len(result.transactions)}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Create cost-basis lots and realized gains from a cryptocurrency ledger CSV.",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    parser.add_argument("file", type=Path, help="Ledger CSV to import.")
    parser.add_argument("-c", "--currency", dest="home_currency", help="Home currency for all reports.")
    parser.add_argument(
        "-l",
        "--lk-cutoff",
        dest="lk_cutoff_date",
        type=date.fromisoformat,
        help="Like-kind cutoff date (YYYY-MM-DD); trades on or before it defer gains.",
    )
    parser.add_argument("-m", "--method", dest="costing_method", type=CostingMethod.parse, help=METHOD_HELP)
    parser.add_argument(
        "-d", "--date-separator", choices=["h", "s", "p"], help="Date separator: hyphen, slash or period."
    )
    parser.add_argument("-i", "--iso", dest="iso_date", action="store_true", default=None, help="Dates are YYYY-MM-DD.")
    parser.add_argument("-o", "--output", dest="output_dir", type=Path, help="Directory for exported reports.")
    parser.add_argument(
        "-s",
        "--suppress",
        dest="suppress_reports",
        action="store_true",
        default=None,
        help="Do not write report files.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every processed record.")
    return parser


def main(argv: Sequence[str] | None = None) -> None:
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )

    overrides = {
        name: value
        for name, value in vars(args).items()
        if name not in {"file", "verbose"} and value is not None
    }
    settings = AppSettings(**overrides)
    run(args.file, settings)


if __name__ == "__main__":
    main()
