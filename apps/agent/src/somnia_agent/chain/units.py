from __future__ import annotations

from decimal import Decimal, InvalidOperation, localcontext
from typing import Any

from somnia_agent.errors import ValidationError

NATIVE_DECIMALS = 18


def parse_units(amount: Any, decimals: int = NATIVE_DECIMALS, *, field: str = "amount") -> int:
    """Convert a human amount ("1.5") into integer base units, rejecting lossy input."""
    if isinstance(amount, bool):
        raise ValidationError(f"{field} must be a number.", details={"field": field})
    text = str(amount).strip()
    with localcontext() as ctx:
        ctx.prec = 80
        try:
            value = Decimal(text)
        except InvalidOperation as exc:
            raise ValidationError(
                f"{field} must be a number.", details={"field": field, "value": text}
            ) from exc
        if not value.is_finite():
            raise ValidationError(f"{field} must be finite.", details={"field": field, "value": text})
        scaled = value.scaleb(int(decimals))
        if scaled != scaled.to_integral_value():
            raise ValidationError(
                f"{field} has more than {decimals} decimal places.",
                details={"field": field, "value": text},
            )
        return int(scaled)


def parse_positive_units(amount: Any, decimals: int = NATIVE_DECIMALS, *, field: str = "amount") -> int:
    value = parse_units(amount, decimals, field=field)
    if value <= 0:
        raise ValidationError(f"{field} must be greater than zero.", details={"field": field})
    return value


def format_units(value: int, decimals: int = NATIVE_DECIMALS) -> str:
    with localcontext() as ctx:
        ctx.prec = 80
        scaled = Decimal(int(value)).scaleb(-int(decimals))
        text = format(scaled, "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
        if "." not in text:
            text = f"{text}.0"
    else:
        text = f"{text}.0"
    return text


def parse_int(value: Any, *, field: str, minimum: int | None = None, maximum: int | None = None) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer.", details={"field": field})
    try:
        parsed = int(str(value).strip())
    except ValueError as exc:
        raise ValidationError(f"{field} must be an integer.", details={"field": field}) from exc
    if minimum is not None and parsed < minimum:
        raise ValidationError(f"{field} must be at least {minimum}.", details={"field": field})
    if maximum is not None and parsed > maximum:
        raise ValidationError(f"{field} must be at most {maximum}.", details={"field": field})
    return parsed
