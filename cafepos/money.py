"""Fixed-point currency arithmetic in whole Vietnamese đồng."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Iterable

CURRENCY_SYMBOL = "₫"


def round_half_up(value: Decimal) -> int:
    """Round a decimal to the nearest whole đồng, halves away from zero."""
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


@dataclass(frozen=True, order=True)
class Money:
    """An immutable amount of đồng. Đồng has no subunit in practice."""

    amount: int = 0

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"Money amount must be an int, got {type(self.amount).__name__}")

    @classmethod
    def zero(cls) -> Money:
        return cls(0)

    @classmethod
    def parse(cls, value: object) -> Money:
        """Build Money from an int, Decimal, float or numeric string such as ``"50000.00"``."""
        if isinstance(value, Money):
            return value
        if value is None or isinstance(value, bool):
            return cls(0)
        if isinstance(value, int):
            return cls(value)
        try:
            parsed = Decimal(str(value).strip())
        except InvalidOperation as exc:
            raise ValueError(f"Not a money amount: {value!r}") from exc
        if not parsed.is_finite():
            raise ValueError(f"Not a money amount: {value!r}")
        return cls(round_half_up(parsed))

    def __add__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount + other.amount)

    def __sub__(self, other: Money) -> Money:
        if not isinstance(other, Money):
            return NotImplemented
        return Money(self.amount - other.amount)

    def __mul__(self, quantity: int) -> Money:
        if isinstance(quantity, bool) or not isinstance(quantity, int):
            return NotImplemented
        return Money(self.amount * quantity)

    __rmul__ = __mul__

    def __neg__(self) -> Money:
        return Money(-self.amount)

    def __bool__(self) -> bool:
        return self.amount != 0

    def scale(self, percentage: Decimal | int) -> Money:
        """Return ``percentage`` percent of this amount, rounded half-up to a whole đồng."""
        return Money(round_half_up(Decimal(self.amount) * Decimal(percentage) / Decimal(100)))

    def clamp_non_negative(self) -> Money:
        if self.amount < 0:
            return Money(0)
        return self

    def format(self) -> str:
        """Format vi-VN style: ``110.000 ₫``."""
        return format_vnd(self.amount)

    def __str__(self) -> str:
        return self.format()


def format_vnd(amount: object) -> str:
    """Format an amount as đồng; missing or non-numeric input shows as ``0 ₫``."""
    if isinstance(amount, Money):
        value = amount.amount
    else:
        try:
            value = Money.parse(amount).amount
        except ValueError:
            value = 0
    sign = "-" if value < 0 else ""
    grouped = f"{abs(value):,}".replace(",", ".")
    return f"{sign}{grouped} {CURRENCY_SYMBOL}"


def total(amounts: Iterable[Money]) -> Money:
    """Sum an iterable of Money."""
    result = Money(0)
    for amount in amounts:
        result = result + amount
    return result
