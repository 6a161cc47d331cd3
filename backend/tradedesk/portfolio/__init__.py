"""Account state, optimistic orders and derived metrics."""

from .models import AccountSnapshot, AccountState, Holding, OrderKind, OrderState, PendingOrder, Session
from .view_model import MarketViewModel, accept_locally, confirm_with

__all__ = [
    "AccountSnapshot",
    "AccountState",
    "Holding",
    "MarketViewModel",
    "OrderKind",
    "OrderState",
    "PendingOrder",
    "Session",
    "accept_locally",
    "confirm_with",
]
