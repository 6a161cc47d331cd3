"""Market view-model: merged quotes, account state and optimistic orders."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from decimal import Decimal

from ..errors import APIError, OrderRejected, ValidationError
from ..market.cache import QuoteCache
from ..market.models import PriceQuote, to_decimal
from .models import (
    AccountSnapshot,
    AccountState,
    OrderKind,
    OrderState,
    PendingOrder,
    Session,
)

logger = logging.getLogger(__name__)

OrderConfirmer = Callable[[PendingOrder], Awaitable[object]]
"""Sends an order to the server. Returns on acknowledgement, raises on refusal."""


def confirm_with(client, session: Session) -> OrderConfirmer:
    """Build an OrderConfirmer that posts orders through a TradingAPIClient."""

    async def confirm(order: PendingOrder) -> object:
        return await client.place_order(
            order.kind, session.user_id, order.symbol, order.quantity, order.price
        )

    return confirm


async def accept_locally(order: PendingOrder) -> None:
    """OrderConfirmer for simulator mode: there is no server, every order stands."""


class MarketViewModel:
    """Single source of truth for what the dashboard shows.

    Quotes from every feed go through ``ingest_quote``. Orders are applied
    optimistically by ``submit_order`` and settled exactly once by
    ``reconcile``. Account snapshots replace the account but keep the effect
    of orders still awaiting confirmation.

    All mutations happen synchronously inside one event-loop turn; the only
    awaits are around the confirm request.
    """

    def __init__(
        self,
        session: Session,
        confirm: OrderConfirmer,
        *,
        quotes: QuoteCache | None = None,
        account: AccountState | None = None,
        order_timeout: float = 10.0,
    ) -> None:
        self._session = session
        self._confirm = confirm
        self._quotes = quotes if quotes is not None else QuoteCache()
        self._account = account.copy() if account is not None else AccountState()
        self._timeout = order_timeout
        self._pending: dict[str, PendingOrder] = {}  # Submission order
        self._dispatches: dict[str, asyncio.Task] = {}

    # --- Read side ---

    @property
    def session(self) -> Session:
        return self._session

    @property
    def account(self) -> AccountState:
        """Copy of the current account, including optimistic orders."""
        return self._account.copy()

    @property
    def quotes(self) -> dict[str, PriceQuote]:
        return self._quotes.get_all()

    @property
    def quote_cache(self) -> QuoteCache:
        return self._quotes

    @property
    def pending_orders(self) -> list[PendingOrder]:
        return list(self._pending.values())

    # --- Quotes ---

    def ingest_quote(self, quote: PriceQuote) -> bool:
        """Merge one quote (last writer by timestamp wins). Returns True if it changed anything."""
        return self._quotes.ingest(quote)

    def snapshot_stocks(self, quotes: Iterable[PriceQuote]) -> int:
        """Apply a full stock refresh. Returns the number of quotes that changed."""
        return sum(1 for quote in quotes if self._quotes.ingest(quote))

    # --- Account ---

    def snapshot_account(self, snapshot: AccountSnapshot) -> bool:
        """Replace the account with server truth, then re-apply in-flight orders.

        Snapshots for a user other than the session's are ignored. An order
        that no longer fits the snapshot (re-applying it would overdraw cash or
        sell shares that are not there) is taken as already included by the
        server; its delta is skipped and a later rejection reverts nothing.
        """
        if snapshot.user_id != self._session.user_id:
            logger.warning(
                "Ignoring account snapshot for user %s (session user is %s)",
                snapshot.user_id,
                self._session.user_id,
            )
            return False

        account = snapshot.to_account_state()
        if self._pending:
            logger.info(
                "Account snapshot arrived with %d order(s) in flight; re-applying them",
                len(self._pending),
            )
            for order in self._pending.values():
                if order.fits(account):
                    order.apply_to(account)
                else:
                    order.applied = False
                    logger.info("Order %s already reflected in snapshot; not re-applying", order.id)
        self._account = account
        return True

    # --- Orders ---

    def submit_order(
        self,
        kind: OrderKind | str,
        symbol: str,
        quantity: int,
        price: Decimal | float | str,
    ) -> PendingOrder:
        """Validate, apply optimistically and dispatch the confirm request.

        Raises ValidationError, leaving state untouched, if the order is not
        possible against the current account. Must be called from a running
        event loop.
        """
        order = self._build_order(kind, symbol, quantity, price)
        loop = asyncio.get_running_loop()

        order.apply_to(self._account)
        self._pending[order.id] = order
        self._dispatches[order.id] = loop.create_task(
            self._dispatch(order), name=f"order-{order.id}"
        )
        logger.info(
            "Order %s: %s %d %s @ %s applied optimistically",
            order.id,
            order.kind.value,
            order.quantity,
            order.symbol,
            order.price,
        )
        return order

    def reconcile(self, order_id: str, error: str | None = None) -> bool:
        """Settle an order: confirm it, or reject it and revert its effect.

        Acts at most once per order. Later calls return False and change nothing.
        """
        order = self._pending.pop(order_id, None)
        if order is None or order.settled:
            logger.debug("Order %s already settled; ignoring", order_id)
            return False

        if error is None:
            order.settle(OrderState.CONFIRMED)
            logger.info("Order %s confirmed", order_id)
        else:
            order.settle(OrderState.REJECTED, error)
            order.revert_on(self._account)
            logger.warning("Order %s rejected and rolled back: %s", order_id, error)
        return True

    async def wait_for_order(self, order: PendingOrder) -> PendingOrder:
        """Wait until the order settles. Raises OrderRejected if it was rolled back."""
        task = self._dispatches.get(order.id)
        if task is not None:
            # asyncio.wait does not cancel the dispatch if this waiter is cancelled
            await asyncio.wait({task})
        if order.state is OrderState.REJECTED:
            raise OrderRejected(order.id, order.reason or "rejected")
        return order

    async def close(self) -> None:
        """Cancel in-flight confirm requests. Their orders are rolled back."""
        tasks = dict(self._dispatches)
        for task in tasks.values():
            task.cancel()
        if not tasks:
            return
        await asyncio.gather(*tasks.values(), return_exceptions=True)
        for order_id in tasks:
            # A dispatch cancelled before its first step never ran its own handler
            self.reconcile(order_id, error="cancelled before confirmation")
            self._dispatches.pop(order_id, None)
        logger.info("Cancelled %d in-flight order(s)", len(tasks))

    # --- Internal ---

    def _build_order(
        self,
        kind: OrderKind | str,
        symbol: str,
        quantity: int,
        price: Decimal | float | str,
    ) -> PendingOrder:
        try:
            kind = OrderKind(kind)
        except ValueError:
            raise ValidationError(f"Order kind must be 'buy' or 'sell', got {kind!r}") from None

        symbol = (symbol or "").strip().upper()
        if not symbol:
            raise ValidationError("Symbol is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity must be a positive whole number, got {quantity!r}")
        try:
            price = to_decimal(price)
        except ValueError:
            raise ValidationError(f"Price must be a number, got {price!r}") from None
        if price < 0:
            raise ValidationError(f"Price must not be negative, got {price}")

        total = price * quantity
        if kind is OrderKind.BUY:
            if total > self._account.cash_balance:
                raise ValidationError(
                    f"Insufficient cash: order costs {total}, "
                    f"balance is {self._account.cash_balance}"
                )
            return PendingOrder(
                kind=kind,
                symbol=symbol,
                quantity=quantity,
                price=price,
                cash_delta=-total,
                quantity_delta=quantity,
                cost_delta=total,
            )

        holding = self._account.holdings.get(symbol)
        held = holding.quantity if holding else 0
        if quantity > held:
            raise ValidationError(
                f"Insufficient shares of {symbol}: requested {quantity}, available {held}"
            )
        if quantity == holding.quantity:
            cost_delta = -holding.cost_basis
        else:
            cost_delta = -(holding.cost_basis * quantity / holding.quantity)
        return PendingOrder(
            kind=kind,
            symbol=symbol,
            quantity=quantity,
            price=price,
            cash_delta=total,
            quantity_delta=-quantity,
            cost_delta=cost_delta,
        )

    async def _dispatch(self, order: PendingOrder) -> None:
        try:
            await asyncio.wait_for(self._confirm(order), timeout=self._timeout)
        except asyncio.CancelledError:
            self.reconcile(order.id, error="cancelled before confirmation")
            raise
        except asyncio.TimeoutError:
            self.reconcile(order.id, error=f"no confirmation within {self._timeout:g}s")
        except APIError as e:
            self.reconcile(order.id, error=e.message)
        except Exception as e:
            logger.exception("Confirming order %s failed unexpectedly", order.id)
            self.reconcile(order.id, error=str(e) or type(e).__name__)
        else:
            self.reconcile(order.id)
        finally:
            self._dispatches.pop(order.id, None)
