from __future__ import annotations

from decimal import ROUND_HALF_UP, Context, Decimal, DivisionByZero, InvalidOperation, Overflow, localcontext

QUANTITY_PLACES = 8
MONEY_PLACES = 2

DECIMAL_CONTEXT = Context(
    prec=34,
    rounding=ROUND_HALF_UP,
    traps=[InvalidOperation, DivisionByZero, Overflow],
)

ZERO = Decimal(0)


def to_decimal(value: Decimal | int | str) -> Decimal:
    if isinstance(value, float):
        raise TypeError(f"Refusing to build a Decimal from float {value!r}")
    with localcontext(DECIMAL_CONTEXT):
        result = Decimal(value)
        if not result.is_finite():
            raise InvalidOperation(f"Non-finite decimal {value!r}")
        return result


def add(*values: Decimal) -> Decimal:
    with localcontext(DECIMAL_CONTEXT):
        return sum(values, start=ZERO)


def sub(a: Decimal, b: Decimal) -> Decimal:
    with localcontext(DECIMAL_CONTEXT):
        return a - b


def mul(a: Decimal, b: Decimal) -> Decimal:
    with localcontext(DECIMAL_CONTEXT):
        return a * b


def div(a: Decimal, b: Decimal, places: int | None = None) -> Decimal:
    """Divide ``a`` by ``b``; optionally round the quotient half-up to ``places``."""
    with localcontext(DECIMAL_CONTEXT):
        quotient = a / b
    if places is None:
        return quotient
    return round_places(quotient, places)


def round_places(value: Decimal, places: int) -> Decimal:
    if places < 0:
        raise ValueError("places must be >= 0")
    with localcontext(DECIMAL_CONTEXT):
        return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def pro_rata(total: Decimal, part: Decimal, whole: Decimal, places: int) -> Decimal:
    """Share of ``total`` attributable to ``part`` out of ``whole``, rounded to ``places``."""
    with localcontext(DECIMAL_CONTEXT):
        share = total * part / whole
    return round_places(share, places)


def cumulative_share(total: Decimal, part: Decimal, whole: Decimal, places: int) -> Decimal:
    """Rounded share of a non-negative ``total`` owed to the first ``part`` units of ``whole``.

    The result never decreases as ``part`` grows and equals ``total`` once
    ``part`` reaches ``whole``, so differences between successive cumulative
    shares are never negative and always add up to ``total``.
    """
    if part >= whole:
        return total
    return min(pro_rata(total, part, whole, places), total)
