"""Market data subsystem for TradeDesk.

Public API:
    PriceQuote          - Immutable quote dataclass
    QuoteCache          - Last-writer-wins quote table
    QuoteFeed           - Abstract interface for quote producers
    PushFeed            - WebSocket price updates (latency optimization)
    SimulatorFeed       - Offline GBM prices
    create_quote_feeds  - Factory that selects feeds from Settings

PollingFeed builds account snapshots, so it imports the portfolio package;
import it from ``tradedesk.market.poller`` directly.
"""

from .cache import QuoteCache
from .factory import create_quote_feeds
from .interface import QuoteFeed
from .models import PriceQuote
from .simulator import SimulatorFeed
from .stream import PushFeed

__all__ = [
    "PriceQuote",
    "QuoteCache",
    "QuoteFeed",
    "PushFeed",
    "SimulatorFeed",
    "create_quote_feeds",
]
