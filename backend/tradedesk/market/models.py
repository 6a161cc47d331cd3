"""Data models for market data."""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

ZERO = Decimal("0")


def to_decimal(value: Any) -> Decimal:
    """Convert a wire value to Decimal, going through str so floats keep their printed digits.

    Raises ValueError for anything that is not a finite number.
    """
    if isinstance(value, bool) or value is None:
        raise ValueError(f"Not a number: {value!r}")
    try:
        result = value if isinstance(value, Decimal) else Decimal(str(value))
    except InvalidOperation:
        raise ValueError(f"Not a number: {value!r}") from None
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """Immutable price for one symbol as reported by a feed.

    ``change`` and ``change_percent`` are None when the source did not report
    them; the QuoteCache fills them in from the previous cached price.
    ``timestamp`` is the source's own timestamp in Unix seconds, if it sent one.
    """

    symbol: str
    price: Decimal
    change: Decimal | None = None
    change_percent: Decimal | None = None
    timestamp: float | None = None

    def __post_init__(self) -> None:
        if self.price < 0:
            raise ValueError(f"Negative price for {self.symbol}: {self.price}")

    @property
    def direction(self) -> str:
        """'up', 'down', or 'flat'."""
        if self.change is None or self.change == 0:
            return "flat"
        return "up" if self.change > 0 else "down"

    def to_dict(self) -> dict:
        """Serialize for JSON / SSE transmission."""
        return {
            "symbol": self.symbol,
            "price": float(self.price),
            "change": float(self.change or ZERO),
            "change_percent": float(self.change_percent or ZERO),
            "timestamp": self.timestamp,
            "direction": self.direction,
        }
