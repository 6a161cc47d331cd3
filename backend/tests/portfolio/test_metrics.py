"""Tests for the derived-metrics calculator."""

import copy
from decimal import Decimal

from tradedesk.market.models import PriceQuote
from tradedesk.portfolio import metrics
from tradedesk.portfolio.models import AccountState, Holding


def _holding(symbol: str, quantity: int, average_cost: str) -> Holding:
    return Holding.from_average(symbol, quantity, Decimal(average_cost))


def _quotes(**prices: str) -> dict[str, PriceQuote]:
    return {s: PriceQuote(symbol=s, price=Decimal(p)) for s, p in prices.items()}


def _account(*holdings: Holding, cash: str = "0") -> AccountState:
    return AccountState(cash_balance=Decimal(cash), holdings={h.symbol: h for h in holdings})


class TestValuation:
    """Unit tests for market value and portfolio value."""

    def test_portfolio_value(self):
        account = _account(_holding("AAPL", 10, "50"), _holding("MSFT", 2, "300"))
        quotes = _quotes(AAPL="60", MSFT="400")
        assert metrics.portfolio_value(account, quotes) == Decimal("1400")

    def test_missing_quote_values_at_zero(self):
        """A holding without a quote counts as 0 instead of raising."""
        account = _account(_holding("AAPL", 10, "50"), _holding("ZZZZ", 5, "10"))
        quotes = _quotes(AAPL="60")
        assert metrics.portfolio_value(account, quotes) == Decimal("600")
        assert metrics.current_price("ZZZZ", quotes) == Decimal("0")

    def test_empty_portfolio_value(self):
        assert metrics.portfolio_value(_account(), {}) == Decimal("0")


class TestProfitLoss:
    """Unit tests for P&L figures."""

    def test_profit_loss(self):
        """10 shares bought at 50, now 60: P&L is 100."""
        holding = _holding("AAPL", 10, "50")
        assert metrics.profit_loss(holding, _quotes(AAPL="60")) == Decimal("100")

    def test_loss(self):
        holding = _holding("AAPL", 10, "50")
        assert metrics.profit_loss(holding, _quotes(AAPL="45")) == Decimal("-50")

    def test_profit_loss_percent(self):
        holding = _holding("AAPL", 10, "50")
        assert metrics.profit_loss_percent(holding, _quotes(AAPL="60")) == Decimal("20")

    def test_profit_loss_percent_zero_cost(self):
        holding = _holding("AAPL", 10, "0")
        assert metrics.profit_loss_percent(holding, _quotes(AAPL="60")) == Decimal("0")

    def test_total_profit_loss(self):
        account = _account(_holding("AAPL", 10, "50"), _holding("MSFT", 1, "300"))
        quotes = _quotes(AAPL="60", MSFT="250")
        assert metrics.total_profit_loss(account, quotes) == Decimal("50")


class TestAllocation:
    """Unit tests for allocation fractions."""

    def test_allocation_splits_value(self):
        aapl = _holding("AAPL", 3, "10")
        msft = _holding("MSFT", 1, "10")
        account = _account(aapl, msft)
        quotes = _quotes(AAPL="100", MSFT="100")

        assert metrics.allocation_percent(aapl, account, quotes) == Decimal("0.75")
        assert metrics.allocation_percent(msft, account, quotes) == Decimal("0.25")

    def test_allocation_zero_when_portfolio_worthless(self):
        """An empty or unpriced portfolio gives 0 for every holding, never a division error."""
        aapl = _holding("AAPL", 3, "10")
        msft = _holding("MSFT", 1, "10")
        account = _account(aapl, msft)

        assert metrics.allocation_percent(aapl, account, {}) == Decimal("0")
        assert metrics.allocation_percent(msft, account, {}) == Decimal("0")
        assert metrics.allocation_percent(aapl, _account(), {}) == Decimal("0")


class TestLoanEligibility:
    """Unit tests for loan headroom."""

    def test_eligibility_below_max(self):
        assert metrics.loan_eligibility(Decimal("25000")) == Decimal("75000")
        assert metrics.is_eligible_for_loan(Decimal("25000"))

    def test_eligibility_never_negative(self):
        assert metrics.loan_eligibility(Decimal("150000")) == Decimal("0")
        assert not metrics.is_eligible_for_loan(Decimal("100000"))

    def test_custom_max_loan(self):
        assert metrics.loan_eligibility(Decimal("10"), Decimal("50")) == Decimal("40")


class TestSummarize:
    """Tests for the combined dashboard summary."""

    def test_summary_fields(self):
        account = _account(_holding("AAPL", 10, "50"), cash="1000")
        summary = metrics.summarize(account, _quotes(AAPL="60"))

        assert summary["portfolio_value"] == 600.0
        assert summary["total_value"] == 1600.0
        assert summary["total_profit_loss"] == 100.0
        assert summary["loan_eligibility"] == 99000.0
        assert summary["eligible_for_loan"] is True
        assert summary["holdings"][0]["allocation"] == 1.0

    def test_inputs_not_mutated(self):
        """Metrics are pure: the same inputs give the same answer and stay untouched."""
        account = _account(_holding("AAPL", 10, "50"), _holding("MSFT", 2, "300"), cash="5")
        quotes = _quotes(AAPL="60")
        account_before = copy.deepcopy(account)
        quotes_before = dict(quotes)

        first = metrics.summarize(account, quotes)
        second = metrics.summarize(account, quotes)

        assert first == second
        assert account == account_before
        assert quotes == quotes_before
