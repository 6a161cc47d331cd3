"""Factory for the quote feeds that drive a view model."""

from __future__ import annotations

import logging

from ..config import Settings
from .interface import QuoteFeed

logger = logging.getLogger(__name__)


def create_quote_feeds(settings: Settings, view_model, client=None) -> list[QuoteFeed]:
    """Pick feeds for the configured environment.

    - No API URL → SimulatorFeed (offline prices)
    - API URL → PollingFeed, plus a PushFeed when a WebSocket URL is also set

    Returns unstarted feeds. The caller must await ``feed.start()`` on each.
    """
    if settings.simulated:
        from .simulator import SimulatorFeed

        logger.info("Quote source: simulator (no TRADEDESK_API_URL)")
        return [SimulatorFeed(sink=view_model.ingest_quote, symbols=settings.symbols)]

    if client is None:
        raise ValueError("An API client is required when TRADEDESK_API_URL is set")

    from .poller import PollingFeed

    feeds: list[QuoteFeed] = [
        PollingFeed(
            client,
            view_model,
            symbols=settings.symbols,
            price_interval=settings.price_poll_interval,
            account_interval=settings.account_poll_interval,
        )
    ]
    logger.info("Quote source: polling %s", settings.api_url)

    if settings.ws_url:
        from .stream import PushFeed

        feeds.append(
            PushFeed(
                settings.ws_url,
                sink=view_model.ingest_quote,
                ping_interval=settings.ping_interval,
                on_close=lambda: logger.warning("Push feed gone; polling only from here"),
            )
        )
        logger.info("Quote source: push %s", settings.ws_url)
    return feeds
