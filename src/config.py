from __future__ import annotations

from datetime import date
from pathlib import Path
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain.selection import CostingMethod
from domain.settings import CostingSettings

DateSeparator = Literal["h", "s", "p"]


class AppSettings(BaseSettings):
    home_currency: str = "USD"
    lk_cutoff_date: date | None = None
    costing_method: CostingMethod = CostingMethod.LIFO_BY_CREATION
    known_currencies: list[str] | None = None
    quantity_places: int = Field(default=8, ge=0)
    money_places: int = Field(default=2, ge=0)

    date_separator: DateSeparator = "h"
    iso_date: bool = False
    output_dir: Path = Path(".")
    suppress_reports: bool = False

    model_config = SettingsConfigDict(
        env_prefix="CRYPTO_LOTS_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    @field_validator("costing_method", mode="before")
    @classmethod
    def _parse_method(cls, value: str | int | CostingMethod) -> CostingMethod:
        return CostingMethod.parse(value)

    def to_costing_settings(self) -> CostingSettings:
        return CostingSettings(
            home_currency=self.home_currency,
            like_kind_cutoff=self.lk_cutoff_date,
            costing_method=self.costing_method,
            quantity_places=self.quantity_places,
            money_places=self.money_places,
            known_currencies=frozenset(self.known_currencies) if self.known_currencies is not None else None,
        )
