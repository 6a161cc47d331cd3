"""Tests for the dashboard router and SSE generator."""

import asyncio
from decimal import Decimal
from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi import FastAPI

from tradedesk.dashboard import _generate_events, create_dashboard_router
from tradedesk.errors import APIError
from tradedesk.market.cache import QuoteCache
from tradedesk.market.models import PriceQuote

HISTORY = [
    {"_id": "t1", "type": "buy", "stockSymbol": "AAPL", "quantity": 10, "price": 50, "date": "2024-01-01T10:00:00Z"},
    {"_id": "t2", "type": "sell", "stockSymbol": "AAPL", "quantity": 5, "price": 60, "date": "2024-01-05T10:00:00Z"},
    {"_id": "t3", "type": "buy", "stockSymbol": "MSFT", "quantity": 2, "price": 300, "date": "2024-01-11T10:00:00Z"},
]


def _http(view_model, client=None, max_loan=Decimal("100000")) -> httpx.AsyncClient:
    app = FastAPI()
    app.include_router(create_dashboard_router(view_model, client, max_loan))
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://dashboard")


@pytest.mark.asyncio
class TestDashboardRouter:
    """Integration tests for the dashboard endpoints."""

    async def test_account(self, make_view_model):
        vm = make_view_model(cash="1000", holdings={"AAPL": (10, 50)})
        async with _http(vm) as http:
            response = await http.get("/api/account")

        assert response.status_code == 200
        body = response.json()
        assert body["user_id"] == "user1"
        assert body["cash_balance"] == 1000.0
        assert body["holdings"] == [{"symbol": "AAPL", "quantity": 10, "average_cost": 50.0}]
        assert body["pending_orders"] == []

    async def test_metrics(self, make_view_model):
        vm = make_view_model(cash="40000", holdings={"AAPL": (10, 50)})
        vm.ingest_quote(PriceQuote("AAPL", Decimal("60")))
        async with _http(vm) as http:
            body = (await http.get("/api/metrics")).json()

        assert body["portfolio_value"] == 600.0
        assert body["total_profit_loss"] == 100.0
        assert body["loan_eligibility"] == 60000.0
        assert body["eligible_for_loan"] is True
        assert body["holdings"][0]["allocation"] == 1.0

    async def test_submit_order_applies_optimistically(self, make_view_model, confirmer):
        vm = make_view_model(cash="1000")
        async with _http(vm) as http:
            response = await http.post(
                "/api/orders", json={"kind": "buy", "symbol": "msft", "quantity": 2, "price": 300}
            )
            account = (await http.get("/api/account")).json()

        assert response.status_code == 202
        assert response.json()["state"] == "optimistic"
        assert response.json()["symbol"] == "MSFT"
        assert account["cash_balance"] == 400.0
        assert [o["symbol"] for o in account["pending_orders"]] == ["MSFT"]
        await vm.close()

    async def test_submit_invalid_order(self, make_view_model):
        vm = make_view_model(cash="100")
        async with _http(vm) as http:
            response = await http.post(
                "/api/orders", json={"kind": "buy", "symbol": "MSFT", "quantity": 2, "price": 300}
            )

        assert response.status_code == 422
        assert vm.account.cash_balance == Decimal("100")
        assert vm.pending_orders == []

    async def test_submit_malformed_body(self, make_view_model):
        async with _http(make_view_model()) as http:
            response = await http.post("/api/orders", json={"kind": "short", "symbol": "X"})
        assert response.status_code == 422

    async def test_transactions_without_client(self, make_view_model):
        async with _http(make_view_model()) as http:
            body = (await http.get("/api/transactions")).json()
        assert body["items"] == []
        assert body["total_items"] == 0

    async def test_transactions_filtered_and_paged(self, make_view_model):
        client = AsyncMock()
        client.get_transactions.return_value = HISTORY
        async with _http(make_view_model(), client) as http:
            buys = (await http.get("/api/transactions", params={"kind": "buy"})).json()
            ranged = (
                await http.get(
                    "/api/transactions",
                    params={"start": "2024-01-02T00:00:00", "end": "2024-01-10T00:00:00"},
                )
            ).json()
            paged = (await http.get("/api/transactions", params={"page": 1, "page_size": 2})).json()

        client.get_transactions.assert_awaited_with("user1")
        assert [t["id"] for t in buys["items"]] == ["t3", "t1"]
        assert [t["id"] for t in ranged["items"]] == ["t2"]
        assert [t["id"] for t in paged["items"]] == ["t1"]

    async def test_transactions_upstream_failure(self, make_view_model):
        client = AsyncMock()
        client.get_transactions.side_effect = APIError("GET /txn/user1 returned 500", status_code=500)
        async with _http(make_view_model(), client) as http:
            response = await http.get("/api/transactions")
        assert response.status_code == 502


class FakeRequest:
    """Stands in for a Starlette request; disconnects after a number of checks."""

    def __init__(self, checks_before_disconnect: int) -> None:
        self.client = None
        self._remaining = checks_before_disconnect

    async def is_disconnected(self) -> bool:
        self._remaining -= 1
        return self._remaining < 0


@pytest.mark.asyncio
class TestPriceEvents:
    """Unit tests for the SSE generator."""

    async def _collect(self, quotes, request, interval=0.0):
        return [event async for event in _generate_events(quotes, request, interval=interval)]

    async def test_retry_then_snapshot(self):
        quotes = QuoteCache()
        quotes.ingest(PriceQuote("AAPL", Decimal("190.5")))

        events = await self._collect(quotes, FakeRequest(1))

        assert events[0] == "retry: 1000\n\n"
        assert events[1].startswith("id: 1\nevent: quotes\ndata: ")
        assert '"AAPL"' in events[1]
        assert len(events) == 2

    async def test_unchanged_table_sends_nothing_new(self):
        quotes = QuoteCache()
        quotes.ingest(PriceQuote("AAPL", Decimal("190.5")))

        events = await self._collect(quotes, FakeRequest(3))

        assert len([e for e in events if "\ndata: " in e]) == 1

    async def test_empty_table_sends_no_data(self):
        events = await self._collect(QuoteCache(), FakeRequest(2))
        assert events == ["retry: 1000\n\n"]

    async def test_cancellation_propagates(self):
        quotes = QuoteCache()
        gen = _generate_events(quotes, FakeRequest(1000), interval=10.0)
        await gen.__anext__()

        task = asyncio.ensure_future(gen.__anext__())
        await asyncio.sleep(0.01)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
