"""Derived portfolio metrics.

Pure functions over an AccountState and a symbol -> PriceQuote mapping. None
of them mutates its inputs, and a symbol without a quote is valued at 0
rather than raising.
"""

from __future__ import annotations

from collections.abc import Mapping
from decimal import Decimal

from ..market.models import ZERO, PriceQuote
from .models import AccountState, Holding

MAX_LOAN_AMOUNT = Decimal("100000")

Quotes = Mapping[str, PriceQuote]


def current_price(symbol: str, quotes: Quotes) -> Decimal:
    quote = quotes.get(symbol)
    return quote.price if quote is not None else ZERO


def market_value(holding: Holding, quotes: Quotes) -> Decimal:
    return current_price(holding.symbol, quotes) * holding.quantity


def portfolio_value(account: AccountState, quotes: Quotes) -> Decimal:
    """Sum of quantity * current price over all holdings."""
    return sum((market_value(h, quotes) for h in account.holdings.values()), ZERO)


def profit_loss(holding: Holding, quotes: Quotes) -> Decimal:
    """Unrealized P&L: (current price - average cost) * quantity."""
    return (current_price(holding.symbol, quotes) - holding.average_cost) * holding.quantity


def profit_loss_percent(holding: Holding, quotes: Quotes) -> Decimal:
    """P&L relative to average cost, in percent. 0 when the average cost is 0."""
    cost = holding.average_cost
    if cost == 0:
        return ZERO
    return (current_price(holding.symbol, quotes) - cost) / cost * 100


def total_profit_loss(account: AccountState, quotes: Quotes) -> Decimal:
    return sum((profit_loss(h, quotes) for h in account.holdings.values()), ZERO)


def allocation_percent(holding: Holding, account: AccountState, quotes: Quotes) -> Decimal:
    """Share of the portfolio held in this position, as a fraction of 1.

    Defined as 0 when the whole portfolio is worth 0.
    """
    total = portfolio_value(account, quotes)
    if total == 0:
        return ZERO
    return market_value(holding, quotes) / total


def loan_eligibility(balance: Decimal, max_loan: Decimal = MAX_LOAN_AMOUNT) -> Decimal:
    """How much more may be borrowed: max(0, max_loan - balance)."""
    return max(ZERO, max_loan - balance)


def is_eligible_for_loan(balance: Decimal, max_loan: Decimal = MAX_LOAN_AMOUNT) -> bool:
    return loan_eligibility(balance, max_loan) > 0


def summarize(
    account: AccountState, quotes: Quotes, max_loan: Decimal = MAX_LOAN_AMOUNT
) -> dict:
    """All dashboard metrics in one JSON-ready dict."""
    total = portfolio_value(account, quotes)
    rows = []
    for holding in sorted(account.holdings.values(), key=lambda h: h.symbol):
        value = market_value(holding, quotes)
        rows.append(
            {
                "symbol": holding.symbol,
                "quantity": holding.quantity,
                "average_cost": float(holding.average_cost),
                "current_price": float(current_price(holding.symbol, quotes)),
                "market_value": float(value),
                "profit_loss": float(profit_loss(holding, quotes)),
                "profit_loss_percent": float(profit_loss_percent(holding, quotes)),
                "allocation": float(value / total) if total else 0.0,
            }
        )
    return {
        "cash_balance": float(account.cash_balance),
        "portfolio_value": float(total),
        "total_value": float(total + account.cash_balance),
        "total_profit_loss": float(total_profit_loss(account, quotes)),
        "loan_eligibility": float(loan_eligibility(account.cash_balance, max_loan)),
        "eligible_for_loan": is_eligible_for_loan(account.cash_balance, max_loan),
        "holdings": rows,
    }
