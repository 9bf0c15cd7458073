from __future__ import annotations

import logging
from csv import DictReader
from datetime import date
from decimal import Decimal
from pathlib import Path

from pydantic import BaseModel, ValidationError, field_validator

from domain.ledger import ActionKind, ActionLeg, ActionRecord
from utils.decimals import QUANTITY_PLACES, round_places

logger = logging.getLogger(__name__)

DATE_SEPARATORS = {"h": "-", "s": "/", "p": "."}

REQUIRED_COLUMNS = {"date", "kind"}


def parse_tx_date(raw: str, *, separator: str = "h", iso: bool = False) -> date:
    """Parse ``MM-DD-YY[YY]`` (or ``YY[YY]-MM-DD`` when ``iso``) using the configured separator."""
    try:
        sep = DATE_SEPARATORS[separator]
    except KeyError as err:
        raise ValueError(f"Unknown date separator option {separator!r}; use h, s or p") from err

    parts = raw.strip().split(sep)
    if len(parts) != 3 or not all(part.isdigit() for part in parts):
        layout = sep.join(["YYYY", "MM", "DD"] if iso else ["MM", "DD", "YYYY"])
        raise ValueError(f"Date {raw!r} does not match {layout}")

    if iso:
        year_text, month_text, day_text = parts
    else:
        month_text, day_text, year_text = parts

    year = int(year_text)
    if len(year_text) == 2:
        year += 2000
    return date(year, int(month_text), int(day_text))


class CsvActionRow(BaseModel):
    date: str
    kind: ActionKind
    value: Decimal | None = None
    memo: str = ""
    out_currency: str | None = None
    out_quantity: Decimal | None = None
    out_wallet: str = ""
    in_currency: str | None = None
    in_quantity: Decimal | None = None
    in_wallet: str = ""
    fee_currency: str | None = None
    fee_quantity: Decimal | None = None
    fee_value: Decimal | None = None

    @field_validator("kind", mode="before")
    @classmethod
    def _upper_kind(cls, value: str | None) -> str:
        return (value or "").strip().upper()

    @field_validator(
        "value",
        "out_currency",
        "out_quantity",
        "in_currency",
        "in_quantity",
        "fee_currency",
        "fee_quantity",
        "fee_value",
        mode="before",
    )
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or value.strip() == "":
            return None
        return value.strip()

    @field_validator("memo", "out_wallet", "in_wallet", mode="before")
    @classmethod
    def _blank_to_empty(cls, value: str | None) -> str:
        return (value or "").strip()

    def legs(self, quantity_places: int) -> list[ActionLeg]:
        legs: list[ActionLeg] = []
        if self.out_currency and self.out_quantity:
            quantity = round_places(abs(self.out_quantity), quantity_places)
            legs.append(ActionLeg(currency=self.out_currency, quantity=-quantity, wallet=self.out_wallet))
        if self.in_currency and self.in_quantity:
            quantity = round_places(abs(self.in_quantity), quantity_places)
            legs.append(ActionLeg(currency=self.in_currency, quantity=quantity, wallet=self.in_wallet))
        if self.fee_currency and self.fee_quantity:
            quantity = round_places(abs(self.fee_quantity), quantity_places)
            legs.append(
                ActionLeg(
                    currency=self.fee_currency,
                    quantity=-quantity,
                    wallet=self.out_wallet or self.in_wallet,
                    is_fee=True,
                    value=self.fee_value,
                )
            )
        return legs


class CsvImporter:
    """Read a ledger CSV into action records, keeping file order.

    Sequence ids are 1-based data-row numbers.
    """

    def __init__(
        self,
        source_path: str | Path,
        *,
        date_separator: str = "h",
        iso_date: bool = False,
        quantity_places: int = QUANTITY_PLACES,
    ) -> None:
        self._source_path = Path(source_path)
        self._date_separator = date_separator
        self._iso_date = iso_date
        self._quantity_places = quantity_places

    def load_records(self) -> list[ActionRecord]:
        records: list[ActionRecord] = []
        with self._source_path.open(encoding="utf-8", newline="") as handle:
            reader = DictReader(handle)
            if reader.fieldnames is None:
                raise ValueError(f"Ledger CSV {self._source_path} is empty or missing headers")
            missing = REQUIRED_COLUMNS - {name.strip() for name in reader.fieldnames}
            if missing:
                columns = ", ".join(sorted(missing))
                raise ValueError(f"Ledger CSV {self._source_path} missing required columns: {columns}")

            for seq, row in enumerate(reader, start=1):
                records.append(self._build_record(seq, row))

        logger.info("Loaded %d action records from %s", len(records), self._source_path)
        return records

    def _build_record(self, seq: int, row: dict[str, str]) -> ActionRecord:
        cleaned = {key.strip(): value for key, value in row.items() if key is not None}
        try:
            parsed = CsvActionRow.model_validate(cleaned)
            return ActionRecord(
                seq=seq,
                tx_date=parse_tx_date(parsed.date, separator=self._date_separator, iso=self._iso_date),
                kind=parsed.kind,
                legs=parsed.legs(self._quantity_places),
                value=parsed.value,
                memo=parsed.memo,
            )
        except (ValidationError, ValueError) as err:
            raise ValueError(f"{self._source_path} row {seq}: {err}") from err
