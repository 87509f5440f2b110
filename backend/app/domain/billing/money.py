"""
Money primitive.

Currency is held as an integer count of minor units (centavos). All ledger
arithmetic happens on integers; decimals appear only in discount percentages
and when formatting output.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Union

from backend.app.core.exceptions import InvalidAmount

MINOR_UNITS_PER_MAJOR = 100
CURRENCY_SYMBOLS = {"PHP": "₱", "USD": "$"}

Number = Union[int, str, Decimal]


@dataclass(frozen=True, order=True)
class Money:
    """Non-negative amount in minor units."""

    minor: int

    def __post_init__(self):
        if isinstance(self.minor, bool) or not isinstance(self.minor, int):
            raise InvalidAmount("Money must be an integer number of minor units", self.minor)
        if self.minor < 0:
            raise InvalidAmount(amount=self.minor)

    @classmethod
    def sum(cls, amounts: Iterable["Money"]) -> "Money":
        return cls(sum(m.minor for m in amounts))

    def to_major(self) -> Decimal:
        return (Decimal(self.minor) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))

    def apply_discount(self, discount_percentage: Number) -> "Money":
        """
        Net amount after a percentage discount, rounded half-up to the centavo.

        round(gross * (1 - discount / 100)) computed as
        round(gross * (100 - discount) / 100) in exact decimal arithmetic.
        """
        pct = Decimal(str(discount_percentage))
        net = (Decimal(self.minor) * (Decimal(100) - pct) / Decimal(100)).quantize(
            Decimal("1"), rounding=ROUND_HALF_UP
        )
        return Money(int(net))

    def format(self, currency_code: str = "PHP") -> str:
        symbol = CURRENCY_SYMBOLS.get(currency_code, f"{currency_code} ")
        return f"{symbol}{self.to_major():,.2f}"

    def __add__(self, other: "Money") -> "Money":
        return Money(self.minor + other.minor)

    def __sub__(self, other: "Money") -> "Money":
        # Raises InvalidAmount when the result would go negative
        return Money(self.minor - other.minor)

    def __bool__(self) -> bool:
        return self.minor != 0

    def __str__(self) -> str:
        return str(self.to_major())
