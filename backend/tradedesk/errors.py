"""Exceptions raised by the TradeDesk client core."""

from __future__ import annotations


class TradeDeskError(Exception):
    """Base exception for client core errors."""

    def __init__(self, message: str, code: str = "TRADEDESK_ERROR") -> None:
        self.message = message
        self.code = code
        super().__init__(message)


class ValidationError(TradeDeskError):
    """An order precondition failed. No state was changed."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="VALIDATION_ERROR")


class FeedError(TradeDeskError):
    """A feed could not fetch or parse data. Existing state is kept."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code="FEED_ERROR")


class APIError(TradeDeskError):
    """The trading API answered with a failure, or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message, code="API_ERROR")


class OrderRejected(TradeDeskError):
    """A submitted order was declined or timed out and has been rolled back."""

    def __init__(self, order_id: str, reason: str) -> None:
        self.order_id = order_id
        self.reason = reason
        super().__init__(f"Order {order_id} rejected: {reason}", code="ORDER_REJECTED")
