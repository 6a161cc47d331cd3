"""Polling feed: periodic full snapshots of stocks and the account."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable

from ..errors import APIError, FeedError
from ..portfolio.models import AccountSnapshot
from .interface import QuoteFeed
from .models import PriceQuote, to_decimal

logger = logging.getLogger(__name__)


class PollingFeed(QuoteFeed):
    """QuoteFeed backed by the trading API's snapshot endpoints.

    Two loops run side by side: ``GET /stocks`` every ``price_interval``
    seconds and the portfolio + balance pair every ``account_interval``
    seconds. Results go into the view model's snapshot operations.

    Polling is the correctness floor for the dashboard: when the push feed
    drops, these loops keep the view current. A failed poll is logged and the
    previous data stays on screen until the next one succeeds.
    """

    def __init__(
        self,
        client,
        view_model,
        symbols: Iterable[str] = (),
        price_interval: float = 5.0,
        account_interval: float = 10.0,
    ) -> None:
        self._client = client
        self._view_model = view_model
        self._symbols: list[str] = [s.upper().strip() for s in symbols]
        self._price_interval = price_interval
        self._account_interval = account_interval
        self._tasks: list[asyncio.Task] = []

    async def start(self) -> None:
        # Poll once up front so the view has data right away
        await self._poll_prices_once()
        await self._poll_account_once()

        self._tasks = [
            asyncio.create_task(
                self._run_loop(self._price_interval, self._poll_prices_once),
                name="price-poller",
            ),
            asyncio.create_task(
                self._run_loop(self._account_interval, self._poll_account_once),
                name="account-poller",
            ),
        ]
        logger.info(
            "Polling started: %d symbols, prices every %.1fs, account every %.1fs",
            len(self._symbols),
            self._price_interval,
            self._account_interval,
        )

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            if not task.done():
                task.cancel()
        for task in tasks:
            try:
                await task
            except asyncio.CancelledError:
                pass
        if tasks:
            logger.info("Polling stopped")

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    # --- Fetching ---

    async def poll(self, symbols: set[str]) -> list[PriceQuote]:
        """Fetch current prices for ``symbols`` (all listed stocks if empty).

        Raises FeedError if the request fails. Individual malformed entries are
        skipped.
        """
        try:
            stocks = await self._client.get_stocks()
        except APIError as e:
            raise FeedError(f"Stock poll failed: {e.message}") from e

        quotes: list[PriceQuote] = []
        for item in stocks:
            try:
                symbol = str(item["symbol"]).upper()
                if symbols and symbol not in symbols:
                    continue
                price = item.get("currentPrice", item.get("price"))
                quotes.append(PriceQuote(symbol=symbol, price=to_decimal(price)))
            except (KeyError, TypeError, AttributeError, ValueError) as e:
                logger.warning("Skipping stock entry %r: %s", item, e)
        return quotes

    async def poll_account(self, user_id: str) -> AccountSnapshot:
        """Fetch portfolio and balance together. Raises FeedError on any failure."""
        try:
            portfolio, balance = await asyncio.gather(
                self._client.get_portfolio(user_id),
                self._client.get_balance(user_id),
            )
        except APIError as e:
            raise FeedError(f"Account poll failed: {e.message}") from e
        try:
            return AccountSnapshot.from_wire(user_id, portfolio, balance)
        except ValueError as e:
            raise FeedError(f"Account poll returned bad data: {e}") from e

    # --- Internal ---

    async def _run_loop(self, interval: float, poll_once: Callable[[], Awaitable[None]]) -> None:
        """Poll on interval. The first poll already happened in start()."""
        while True:
            await asyncio.sleep(interval)
            await poll_once()

    async def _poll_prices_once(self) -> None:
        try:
            quotes = await self.poll(set(self._symbols))
        except FeedError as e:
            # Keep the stale quotes; the loop retries on the next interval
            logger.error("%s", e)
            return
        changed = self._view_model.snapshot_stocks(quotes)
        logger.debug("Price poll: %d/%d quotes changed", changed, len(quotes))

    async def _poll_account_once(self) -> None:
        user_id = self._view_model.session.user_id
        try:
            snapshot = await self.poll_account(user_id)
        except FeedError as e:
            logger.error("%s", e)
            return
        self._view_model.snapshot_account(snapshot)
