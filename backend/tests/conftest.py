"""Pytest configuration and fixtures."""

import asyncio
from decimal import Decimal

import pytest

from tradedesk.errors import APIError
from tradedesk.portfolio.models import AccountState, Holding, Session
from tradedesk.portfolio.view_model import MarketViewModel


class ControlledConfirmer:
    """OrderConfirmer whose verdicts are handed out by the test.

    ``confirm``/``fail`` may be called before or after the view model sends
    the order; the confirm request resolves as soon as both have happened.
    """

    def __init__(self) -> None:
        self.sent = []
        self._verdicts: dict[str, asyncio.Future] = {}

    async def __call__(self, order):
        self.sent.append(order)
        return await self._verdict(order.id)

    def confirm(self, order) -> None:
        self._verdict(order.id).set_result({"status": "ok"})

    def fail(self, order, message: str = "declined") -> None:
        self._verdict(order.id).set_exception(APIError(message, status_code=400))

    def _verdict(self, order_id: str) -> asyncio.Future:
        if order_id not in self._verdicts:
            self._verdicts[order_id] = asyncio.get_running_loop().create_future()
        return self._verdicts[order_id]


@pytest.fixture
def session():
    return Session(user_id="user1", token="secret-token")


@pytest.fixture
def confirmer():
    return ControlledConfirmer()


@pytest.fixture
def make_view_model(session, confirmer):
    """Build a view model over the given cash and holdings {symbol: (quantity, average_cost)}."""

    def _make(cash="1000", holdings=None, order_timeout=5.0):
        account = AccountState(
            cash_balance=Decimal(cash),
            holdings={
                symbol: Holding.from_average(symbol, qty, Decimal(str(avg)))
                for symbol, (qty, avg) in (holdings or {}).items()
            },
        )
        return MarketViewModel(session, confirmer, account=account, order_timeout=order_timeout)

    return _make
