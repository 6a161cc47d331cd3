"""Abstract interface for quote feeds."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable

from .models import PriceQuote

QuoteSink = Callable[[PriceQuote], object]
"""Where a feed delivers quotes. In practice ``MarketViewModel.ingest_quote``."""


class QuoteFeed(ABC):
    """Contract for quote producers.

    Feeds push quotes into a sink on their own schedule. Nothing downstream
    calls a feed for prices; it reads the view model instead.

    Lifecycle:
        feed = PollingFeed(client, view_model, symbols=[...])
        await feed.start()
        # ... view runs ...
        await feed.stop()
    """

    @abstractmethod
    async def start(self) -> None:
        """Begin producing quotes in a background task.

        Must be called once per view lifetime.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Cancel background work and release resources.

        Safe to call multiple times. After stop(), the feed will not write to
        its sink again.
        """

    @property
    @abstractmethod
    def running(self) -> bool:
        """True while the feed's background task is alive."""
