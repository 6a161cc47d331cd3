"""Push feed: live price updates over a WebSocket connection."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import websockets
from websockets.exceptions import WebSocketException

from .interface import QuoteFeed, QuoteSink
from .models import PriceQuote, to_decimal

logger = logging.getLogger(__name__)

MESSAGE_TYPE = "stockUpdate"


def parse_message(raw: str | bytes) -> PriceQuote | None:
    """Turn one push message into a quote, or None if it is not a usable stockUpdate.

    Expected shape:

        {"type": "stockUpdate",
         "payload": {"symbol": "AAPL", "price": 190.5, "change": 1.2, "changePercent": 0.63}}
    """
    try:
        data = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Dropping non-JSON push message: %.80r", raw)
        return None

    if not isinstance(data, dict) or data.get("type") != MESSAGE_TYPE:
        logger.debug("Ignoring push message: %.80r", raw)
        return None

    payload = data.get("payload")
    try:
        return PriceQuote(
            symbol=str(payload["symbol"]).upper(),
            price=to_decimal(payload["price"]),
            change=_optional_decimal(payload.get("change")),
            change_percent=_optional_decimal(payload.get("changePercent")),
            timestamp=_source_timestamp(payload.get("timestamp")),
        )
    except (KeyError, TypeError, AttributeError, ValueError) as e:
        logger.warning("Dropping malformed %s message: %s", MESSAGE_TYPE, e)
        return None


def _optional_decimal(value: Any):
    return None if value is None else to_decimal(value)


def _source_timestamp(value: Any) -> float | None:
    """Unix seconds from epoch seconds, epoch milliseconds or an ISO-8601 string.

    ISO strings without an offset are UTC, as in transaction history.
    """
    if value is None:
        return None
    if isinstance(value, str):
        parsed = datetime.fromisoformat(value)
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp()
    seconds = float(value)
    return seconds / 1000.0 if seconds > 1e11 else seconds


class PushFeed(QuoteFeed):
    """QuoteFeed backed by the trading API's WebSocket channel.

    Opens a single connection when started and forwards every stockUpdate to
    the sink. It never reconnects: push only lowers latency, polling keeps the
    data correct. When the connection fails or closes for any reason other than
    ``stop()``, the feed calls ``on_close`` so the owner knows it is on polling
    alone. Keep-alive pings are handled by the websockets library.
    """

    def __init__(
        self,
        url: str,
        sink: QuoteSink,
        *,
        ping_interval: float | None = 20.0,
        on_close: Callable[[], object] | None = None,
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        self._url = url
        self._sink = sink
        self._ping_interval = ping_interval
        self._on_close = on_close
        self._connect = connect
        self._task: asyncio.Task | None = None
        self._stopping = False
        self._received: int = 0

    async def start(self) -> None:
        if self._task is not None:
            logger.warning("Push feed already started; one connection per view")
            return
        self._task = asyncio.create_task(self._run(), name="push-feed")

    async def stop(self) -> None:
        self._stopping = True
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        if self._task is not None:
            logger.info("Push feed stopped after %d quotes", self._received)
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # --- Internal ---

    async def _run(self) -> None:
        try:
            async with self._connect(self._url, ping_interval=self._ping_interval) as ws:
                logger.info("Push feed connected: %s", self._url)
                async for message in ws:
                    self._forward(message)
            logger.warning("Push feed closed by server; continuing on polling")
        except (WebSocketException, OSError) as e:
            logger.warning("Push feed unavailable (%s); continuing on polling", e)
        except Exception:
            logger.exception("Push feed failed; continuing on polling")
        finally:
            if not self._stopping and self._on_close is not None:
                self._on_close()

    def _forward(self, message: str | bytes) -> None:
        quote = parse_message(message)
        if quote is None:
            return
        try:
            self._sink(quote)
        except Exception:
            logger.exception("Quote sink failed for %s", quote.symbol)
            return
        self._received += 1
