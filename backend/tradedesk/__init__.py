"""TradeDesk: client-side market view-model for the trading dashboard."""

__version__ = "0.1.0"
