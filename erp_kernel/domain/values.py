"""
Money -- the exact amount type used by engines and services.

Invoice totals, payments, ledger running balances and aging buckets are
all ``Money``.  The ERP books one operating currency, so there is no
currency code to carry or to mismatch.

Invariants enforced:
    - The amount is a ``Decimal``.  Floats and bools are refused at
      construction; ints and numeric strings are converted exactly.
    - Nothing rounds implicitly.  ``round()`` gives two places,
      ROUND_HALF_UP unless told otherwise.

Failure modes:
    - TypeError: float input, or arithmetic with an unsupported operand.
    - ValueError: a string that is not a number.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering

from erp_kernel.db.types import MONEY_DECIMAL_PLACES, round_money

_ZERO = Decimal("0")


def _scalar(value: object) -> Decimal | None:
    """Decimal for an exact scalar operand, None when the operand is not one."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        return Decimal(str(value))
    return None


@total_ordering
@dataclass(frozen=True, slots=True)
class Money:
    """Immutable, hashable amount.  No display formatting here."""

    amount: Decimal

    def __post_init__(self) -> None:
        if isinstance(self.amount, (float, bool)):
            raise TypeError(f"Money amount must not be {type(self.amount).__name__}")
        if isinstance(self.amount, Decimal):
            return
        try:
            exact = Decimal(str(self.amount))
        except (InvalidOperation, ValueError) as exc:
            raise ValueError(f"Invalid amount: {self.amount!r}") from exc
        object.__setattr__(self, "amount", exact)

    @classmethod
    def of(cls, amount: Decimal | str | int) -> Money:
        return cls(amount)

    @classmethod
    def zero(cls) -> Money:
        return cls(_ZERO)

    @classmethod
    def sum(cls, values: Iterable[Money]) -> Money:
        """Total of ``values``; zero for an empty iterable."""
        return cls(sum((v.amount for v in values), _ZERO))

    @property
    def is_zero(self) -> bool:
        return self.amount == _ZERO

    @property
    def is_positive(self) -> bool:
        return self.amount > _ZERO

    @property
    def is_negative(self) -> bool:
        return self.amount < _ZERO

    def round(self, rounding: str = ROUND_HALF_UP) -> Money:
        return Money(round_money(self.amount, MONEY_DECIMAL_PLACES, rounding))

    # Money with Money

    def __add__(self, other: Money) -> Money:
        if isinstance(other, Money):
            return Money(self.amount + other.amount)
        return NotImplemented

    def __sub__(self, other: Money) -> Money:
        if isinstance(other, Money):
            return Money(self.amount - other.amount)
        return NotImplemented

    def __lt__(self, other: Money) -> bool:
        if isinstance(other, Money):
            return self.amount < other.amount
        return NotImplemented

    def __neg__(self) -> Money:
        return Money(-self.amount)

    def __abs__(self) -> Money:
        return Money(abs(self.amount))

    # Money with an exact scalar

    def __mul__(self, factor: Decimal | int | str) -> Money:
        scalar = _scalar(factor)
        return NotImplemented if scalar is None else Money(self.amount * scalar)

    __rmul__ = __mul__

    def __truediv__(self, divisor: Decimal | int | str) -> Money:
        scalar = _scalar(divisor)
        return NotImplemented if scalar is None else Money(self.amount / scalar)

    def __str__(self) -> str:
        return str(self.amount)

    def __repr__(self) -> str:
        return f"Money({self.amount!r})"
