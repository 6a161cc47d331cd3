from .client import TradingAPIClient

__all__ = ["TradingAPIClient"]
