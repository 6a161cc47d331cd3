"""Account, holding and order models owned by the view model."""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any

from ..market.models import ZERO, to_decimal


@dataclass(frozen=True)
class Session:
    """Authenticated session context handed to the view model and API client."""

    user_id: str
    token: str | None = None


class OrderKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


class OrderState(str, Enum):
    OPTIMISTIC = "optimistic"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Holding:
    """Shares of one symbol.

    Stored as quantity plus total cost basis so that applying and reverting
    an order are exact decimal additions.
    """

    symbol: str
    quantity: int
    cost_basis: Decimal = ZERO

    def __post_init__(self) -> None:
        if self.quantity < 0:
            raise ValueError(f"Negative quantity for {self.symbol}: {self.quantity}")

    @classmethod
    def from_average(cls, symbol: str, quantity: int, average_cost: Decimal) -> Holding:
        return cls(symbol=symbol, quantity=quantity, cost_basis=average_cost * quantity)

    @classmethod
    def from_wire(cls, item: dict[str, Any]) -> Holding:
        """Parse a ``GET /users/{id}/portfolio`` entry. Raises ValueError if malformed."""
        try:
            symbol = str(item["stockSymbol"]).upper()
            quantity = int(item["quantity"])
        except (KeyError, TypeError, ValueError) as e:
            raise ValueError(f"Malformed portfolio entry {item!r}: {e}") from None
        return cls.from_average(symbol, quantity, to_decimal(item.get("averagePrice", 0)))

    @property
    def average_cost(self) -> Decimal:
        if self.quantity == 0:
            return ZERO
        return self.cost_basis / self.quantity

    def to_dict(self) -> dict:
        return {
            "symbol": self.symbol,
            "quantity": self.quantity,
            "average_cost": float(self.average_cost),
        }


@dataclass
class AccountState:
    """Cash plus holdings keyed by symbol."""

    cash_balance: Decimal = ZERO
    holdings: dict[str, Holding] = field(default_factory=dict)

    def copy(self) -> AccountState:
        # Holdings are frozen, so copying the mapping is enough
        return AccountState(cash_balance=self.cash_balance, holdings=dict(self.holdings))

    def quantity_of(self, symbol: str) -> int:
        holding = self.holdings.get(symbol)
        return holding.quantity if holding else 0

    def apply_delta(
        self,
        symbol: str,
        cash_delta: Decimal,
        quantity_delta: int,
        cost_delta: Decimal,
    ) -> None:
        """Shift cash and one holding. A holding that reaches zero shares is removed."""
        self.cash_balance += cash_delta
        held = self.holdings.get(symbol)
        quantity = (held.quantity if held else 0) + quantity_delta
        cost_basis = (held.cost_basis if held else ZERO) + cost_delta
        if quantity <= 0:
            self.holdings.pop(symbol, None)
        else:
            self.holdings[symbol] = Holding(symbol, quantity, max(cost_basis, ZERO))

    def to_dict(self) -> dict:
        return {
            "cash_balance": float(self.cash_balance),
            "holdings": [h.to_dict() for h in self.holdings.values()],
        }


@dataclass(frozen=True)
class AccountSnapshot:
    """A full account refresh as fetched from the server."""

    user_id: str
    cash_balance: Decimal
    holdings: tuple[Holding, ...] = ()

    @classmethod
    def from_wire(
        cls, user_id: str, portfolio: list[dict[str, Any]], balance: dict[str, Any]
    ) -> AccountSnapshot:
        """Build from the portfolio and balance payloads. Raises ValueError if malformed."""
        if not isinstance(balance, dict) or "balance" not in balance:
            raise ValueError(f"Malformed balance payload: {balance!r}")
        holdings = tuple(Holding.from_wire(item) for item in portfolio)
        return cls(
            user_id=user_id,
            cash_balance=to_decimal(balance["balance"]),
            holdings=tuple(h for h in holdings if h.quantity > 0),
        )

    def to_account_state(self) -> AccountState:
        return AccountState(
            cash_balance=self.cash_balance,
            holdings={h.symbol: h for h in self.holdings},
        )


@dataclass
class PendingOrder:
    """An order applied locally and awaiting the server's verdict.

    Carries the exact deltas it applied so they can be replayed onto a fresh
    snapshot or reverted once on rejection.
    """

    kind: OrderKind
    symbol: str
    quantity: int
    price: Decimal
    cash_delta: Decimal
    quantity_delta: int
    cost_delta: Decimal
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    state: OrderState = OrderState.OPTIMISTIC
    reason: str | None = None
    created_at: float = field(default_factory=time.time)
    # False while the current account already reflects this order without our delta
    applied: bool = True

    @property
    def settled(self) -> bool:
        return self.state is not OrderState.OPTIMISTIC

    def settle(self, state: OrderState, reason: str | None = None) -> bool:
        """Move out of OPTIMISTIC. Returns False if the order was already settled."""
        if self.settled or state is OrderState.OPTIMISTIC:
            return False
        self.state = state
        self.reason = reason
        return True

    def fits(self, account: AccountState) -> bool:
        """True if applying this order keeps cash and the holding non-negative."""
        if account.cash_balance + self.cash_delta < 0:
            return False
        return account.quantity_of(self.symbol) + self.quantity_delta >= 0

    def apply_to(self, account: AccountState) -> None:
        account.apply_delta(self.symbol, self.cash_delta, self.quantity_delta, self.cost_delta)
        self.applied = True

    def revert_on(self, account: AccountState) -> None:
        """Undo this order's delta. Does nothing if the delta is not on the account."""
        if not self.applied:
            return
        account.apply_delta(
            self.symbol, -self.cash_delta, -self.quantity_delta, -self.cost_delta
        )
        self.applied = False

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "kind": self.kind.value,
            "symbol": self.symbol,
            "quantity": self.quantity,
            "price": float(self.price),
            "state": self.state.value,
            "reason": self.reason,
            "created_at": self.created_at,
        }
