"""Transaction history: parsing, filtering and paging of ``GET /txn/{userId}``."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from ..market.models import to_decimal
from .models import OrderKind

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Transaction:
    id: str | None
    kind: OrderKind
    symbol: str
    quantity: int
    price: Decimal
    timestamp: datetime | None

    @property
    def total(self) -> Decimal:
        return self.price * self.quantity

    @classmethod
    def from_wire(cls, item: dict[str, Any]) -> Transaction:
        """Parse one history entry. Raises ValueError if malformed."""
        try:
            kind = OrderKind(str(item["type"]).lower())
            symbol = str(item["stockSymbol"]).upper()
            quantity = int(item["quantity"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed transaction {item!r}: {e}") from None
        raw_id = item.get("_id", item.get("id"))
        return cls(
            id=str(raw_id) if raw_id is not None else None,
            kind=kind,
            symbol=symbol,
            quantity=quantity,
            price=to_decimal(item.get("price", 0)),
            timestamp=parse_timestamp(item.get("date", item.get("timestamp"))),
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "symbol": self.symbol,
            "quantity": self.quantity,
            "price": float(self.price),
            "total": float(self.total),
            "timestamp": self.timestamp.isoformat() if self.timestamp else None,
        }


@dataclass(frozen=True)
class Page:
    items: list[Transaction]
    page: int
    page_size: int
    total_items: int

    @property
    def total_pages(self) -> int:
        return max(1, -(-self.total_items // self.page_size))

    def to_dict(self) -> dict:
        return {
            "items": [t.to_dict() for t in self.items],
            "page": self.page,
            "page_size": self.page_size,
            "total_items": self.total_items,
            "total_pages": self.total_pages,
        }


def parse_timestamp(value: Any) -> datetime | None:
    """ISO-8601 strings or epoch numbers (seconds or milliseconds), as aware UTC datetimes."""
    if value is None or value == "":
        return None
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        seconds = value / 1000.0 if value > 1e11 else float(value)
        return datetime.fromtimestamp(seconds, tz=timezone.utc)
    try:
        parsed = datetime.fromisoformat(str(value))
    except ValueError:
        raise ValueError(f"Unrecognised timestamp: {value!r}") from None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def parse_transactions(payload: Iterable[dict[str, Any]]) -> list[Transaction]:
    """Parse a history payload, newest first. Malformed entries are skipped."""
    parsed: list[Transaction] = []
    for item in payload:
        try:
            parsed.append(Transaction.from_wire(item))
        except ValueError as e:
            logger.warning("Skipping transaction: %s", e)
    # The server lists oldest first; undated entries keep their relative order
    parsed.reverse()
    return parsed


def filter_transactions(
    transactions: Iterable[Transaction],
    kind: OrderKind | str | None = None,
    start: datetime | None = None,
    end: datetime | None = None,
) -> list[Transaction]:
    """Keep transactions of one kind and/or inside [start, end]. Undated entries fail date bounds."""
    wanted = OrderKind(kind) if kind else None
    result = []
    for txn in transactions:
        if wanted is not None and txn.kind is not wanted:
            continue
        if start is not None and (txn.timestamp is None or txn.timestamp < start):
            continue
        if end is not None and (txn.timestamp is None or txn.timestamp > end):
            continue
        result.append(txn)
    return result


def paginate(transactions: Sequence[Transaction], page: int = 0, page_size: int = 10) -> Page:
    """Slice one zero-based page. Out-of-range pages clamp to the last page."""
    if page_size <= 0:
        raise ValueError(f"page_size must be positive, got {page_size}")
    total_pages = max(1, -(-len(transactions) // page_size))
    page = min(max(page, 0), total_pages - 1)
    start = page * page_size
    return Page(
        items=list(transactions[start : start + page_size]),
        page=page,
        page_size=page_size,
        total_items=len(transactions),
    )
