"""In-memory quote table with last-writer-wins merging."""

from __future__ import annotations

from dataclasses import replace
from decimal import Decimal

from .models import ZERO, PriceQuote

_PERCENT_PLACES = Decimal("0.0001")


class QuoteCache:
    """Latest quote for each symbol.

    Writers: the polling feed, the push feed or the simulator, all through
    ``ingest``. Readers: the view model, the metrics calculator and the SSE
    endpoint. Everything runs on one event loop, so no locking is needed.
    """

    def __init__(self) -> None:
        self._quotes: dict[str, PriceQuote] = {}
        self._version: int = 0  # Bumped only when a quote actually changes

    def ingest(self, quote: PriceQuote) -> bool:
        """Merge a quote into the table. Returns True if the table changed.

        A quote with an older timestamp than the cached one is dropped. Equal
        or missing timestamps fall back to arrival order, so the newcomer wins.
        Re-ingesting the cached quote is a no-op and does not bump the version.
        """
        previous = self._quotes.get(quote.symbol)
        if previous is not None and _is_older(quote, previous):
            return False

        resolved = _fill_change(quote, previous)
        if resolved == previous:
            return False

        self._quotes[quote.symbol] = resolved
        self._version += 1
        return True

    def get(self, symbol: str) -> PriceQuote | None:
        """Get the latest quote for a symbol, or None if unknown."""
        return self._quotes.get(symbol)

    def get_all(self) -> dict[str, PriceQuote]:
        """Snapshot of all current quotes. Returns a shallow copy."""
        return dict(self._quotes)

    @property
    def version(self) -> int:
        """Current version counter. Useful for SSE change detection."""
        return self._version


def _is_older(quote: PriceQuote, current: PriceQuote) -> bool:
    if quote.timestamp is None or current.timestamp is None:
        return False
    return quote.timestamp < current.timestamp


def _fill_change(quote: PriceQuote, previous: PriceQuote | None) -> PriceQuote:
    """Derive change figures the feed did not supply from the previous quote."""
    if quote.change is not None and quote.change_percent is not None:
        return quote

    if previous is not None and previous.price == quote.price:
        # Same price again: keep the move that produced it
        change, change_percent = previous.change, previous.change_percent
    else:
        base = previous.price if previous is not None else quote.price
        change = quote.price - base
        change_percent = (change / base * 100).quantize(_PERCENT_PLACES) if base else ZERO

    return replace(
        quote,
        change=quote.change if quote.change is not None else change,
        change_percent=(
            quote.change_percent if quote.change_percent is not None else change_percent
        ),
    )
