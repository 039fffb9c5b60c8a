"""Discount and payment calculator."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

from cafepos.config import MAX_DISCOUNT_PERCENT, MIN_DISCOUNT_PERCENT
from cafepos.errors import ValidationError
from cafepos.money import Money

_PERCENT_STEP = Decimal("0.01")


@dataclass(frozen=True)
class PriceBreakdown:
    """Original, discount and final amounts for one priced order."""

    original_amount: Money
    discount_amount: Money
    final_amount: Money
    discount_percentage: Decimal

    @property
    def has_discount(self) -> bool:
        return self.discount_percentage > 0


def _to_decimal(value: object) -> Decimal | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float, str)):
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation:
            return None
    else:
        return None
    if not parsed.is_finite():
        return None
    return parsed


def normalize_discount_percentage(value: object) -> Decimal:
    """Clamp to [0, 100] with two decimals; non-numeric input counts as 0."""
    parsed = _to_decimal(value)
    if parsed is None:
        return Decimal(0)
    parsed = max(Decimal(MIN_DISCOUNT_PERCENT), min(Decimal(MAX_DISCOUNT_PERCENT), parsed))
    return parsed.quantize(_PERCENT_STEP, rounding=ROUND_HALF_UP)


def validate_discount_percentage(value: object) -> Decimal:
    """Strict variant for user input: reject instead of clamping."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return Decimal(0)
    parsed = _to_decimal(value)
    if parsed is None:
        raise ValidationError("Discount must be a number", value=value)
    if not (MIN_DISCOUNT_PERCENT <= parsed <= MAX_DISCOUNT_PERCENT):
        raise ValidationError(
            f"Discount must be between {MIN_DISCOUNT_PERCENT} and {MAX_DISCOUNT_PERCENT}%",
            value=value,
        )
    return normalize_discount_percentage(parsed)


def apply_discount(original_amount: Money, discount_percentage: object) -> PriceBreakdown:
    """Price an order subtotal. Pure; identical inputs give identical outputs."""
    pct = normalize_discount_percentage(discount_percentage)
    if pct == 0:
        return PriceBreakdown(
            original_amount=original_amount,
            discount_amount=Money(0),
            final_amount=original_amount.clamp_non_negative(),
            discount_percentage=Decimal(0),
        )
    discount_amount = original_amount.scale(pct)
    final_amount = (original_amount - discount_amount).clamp_non_negative()
    return PriceBreakdown(
        original_amount=original_amount,
        discount_amount=discount_amount,
        final_amount=final_amount,
        discount_percentage=pct,
    )


def format_percentage(pct: Decimal | None) -> str:
    """``Decimal("15")`` -> ``"15"``, ``Decimal("12.50")`` -> ``"12.5"``."""
    if pct is None:
        return "0"
    return f"{pct.normalize():f}"
