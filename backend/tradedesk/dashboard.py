"""HTTP read surface for the dashboard: account, metrics, history, orders and an SSE price stream."""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from decimal import Decimal
from typing import Literal

from fastapi import APIRouter, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, Field

from .errors import APIError, ValidationError
from .market.cache import QuoteCache
from .portfolio.history import filter_transactions, paginate, parse_transactions
from .portfolio.metrics import MAX_LOAN_AMOUNT, summarize
from .portfolio.view_model import MarketViewModel

logger = logging.getLogger(__name__)


class OrderRequest(BaseModel):
    kind: Literal["buy", "sell"]
    symbol: str = Field(min_length=1)
    quantity: int
    price: Decimal


def create_dashboard_router(
    view_model: MarketViewModel,
    client=None,
    max_loan: Decimal = MAX_LOAN_AMOUNT,
) -> APIRouter:
    """Create the dashboard router around one view model.

    ``client`` is the TradingAPIClient used for transaction history; without
    one (simulator mode) the history is always empty.
    """
    router = APIRouter(prefix="/api", tags=["dashboard"])

    @router.get("/account")
    async def get_account() -> dict:
        account = view_model.account
        return {
            **account.to_dict(),
            "user_id": view_model.session.user_id,
            "pending_orders": [o.to_dict() for o in view_model.pending_orders],
        }

    @router.get("/metrics")
    async def get_metrics() -> dict:
        return summarize(view_model.account, view_model.quotes, max_loan)

    @router.get("/transactions")
    async def get_transactions(
        kind: Literal["buy", "sell"] | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = Query(0, ge=0),
        page_size: int = Query(10, ge=1, le=100),
    ) -> dict:
        if client is None:
            return paginate([], page, page_size).to_dict()
        try:
            payload = await client.get_transactions(view_model.session.user_id)
        except APIError as e:
            logger.error("Transaction history unavailable: %s", e)
            raise HTTPException(status_code=502, detail=e.message) from e
        transactions = filter_transactions(
            parse_transactions(payload), kind, _as_utc(start), _as_utc(end)
        )
        return paginate(transactions, page, page_size).to_dict()

    @router.post("/orders", status_code=202)
    async def submit_order(body: OrderRequest) -> dict:
        """Apply an order optimistically. The server's verdict arrives later via /account."""
        try:
            order = view_model.submit_order(body.kind, body.symbol, body.quantity, body.price)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.message) from e
        return order.to_dict()

    @router.get("/stream/prices")
    async def stream_prices(request: Request) -> StreamingResponse:
        """SSE endpoint for live quotes.

        Sends the whole quote table whenever it changes:

            id: 42
            event: quotes
            data: {"AAPL": {"symbol": "AAPL", "price": 190.50, ...}, ...}
        """
        return StreamingResponse(
            _generate_events(view_model.quote_cache, request),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    return router


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


async def _generate_events(
    quotes: QuoteCache,
    request: Request,
    interval: float = 0.5,
) -> AsyncGenerator[str, None]:
    """Yield SSE frames until the client goes away.

    A ``quotes`` event carrying the full table is sent whenever the cache
    version moves; the version doubles as the event id.
    """
    yield "retry: 1000\n\n"

    sent_version = -1
    while not await request.is_disconnected():
        version = quotes.version
        table = quotes.get_all() if version != sent_version else {}
        sent_version = version
        if table:
            payload = json.dumps({symbol: quote.to_dict() for symbol, quote in table.items()})
            yield f"id: {version}\nevent: quotes\ndata: {payload}\n\n"
        await asyncio.sleep(interval)

    logger.debug("SSE client disconnected after version %d", sent_version)
