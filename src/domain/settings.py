from __future__ import annotations

from datetime import date

from pydantic import BaseModel, ConfigDict, Field, field_validator

from utils.decimals import MONEY_PLACES, QUANTITY_PLACES

from .selection import CostingMethod


class CostingSettings(BaseModel):
    """Immutable run configuration handed to the costing engine."""

    model_config = ConfigDict(frozen=True)

    home_currency: str = "USD"
    like_kind_cutoff: date | None = None
    costing_method: CostingMethod = CostingMethod.LIFO_BY_CREATION
    quantity_places: int = Field(default=QUANTITY_PLACES, ge=0)
    money_places: int = Field(default=MONEY_PLACES, ge=0)
    known_currencies: frozenset[str] | None = None

    @field_validator("home_currency", mode="before")
    @classmethod
    def _normalize_home_currency(cls, value: str) -> str:
        code = value.strip().upper()
        if not code:
            raise ValueError("home_currency must be non-empty")
        return code

    @field_validator("known_currencies", mode="before")
    @classmethod
    def _normalize_known(cls, value: object) -> object:
        if value is None:
            return None
        return frozenset(str(code).strip().upper() for code in value)  # type: ignore[attr-defined]

    def like_kind_applies_on(self, tx_date: date) -> bool:
        return self.like_kind_cutoff is not None and tx_date <= self.like_kind_cutoff
