from __future__ import annotations

from decimal import Decimal

from .decimals import MONEY_PLACES, round_places


def format_decimal(value: Decimal) -> str:
    quantized = value.normalize()
    # Avoid scientific notation for integers.
    if quantized == quantized.to_integral():
        return f"{quantized:.0f}"
    return format(quantized, "f")


def format_currency(value: Decimal, places: int = MONEY_PLACES) -> str:
    return f"{round_places(value, places):.{places}f}"
