"""Runtime settings read from the environment."""

from __future__ import annotations

import logging
import sys
from decimal import Decimal
from typing import List, Optional, Union

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SYMBOLS = ["AAPL", "GOOGL", "MSFT", "AMZN", "TSLA"]


class Settings(BaseSettings):
    """Client configuration, loaded from ``TRADEDESK_*`` environment variables.

    With no ``api_url`` the client runs against the offline simulator.
    """

    model_config = SettingsConfigDict(
        env_prefix="TRADEDESK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    api_url: Optional[str] = None
    ws_url: Optional[str] = None
    user_id: Optional[str] = None
    token: Optional[str] = None
    symbols: Union[str, List[str]] = Field(default_factory=lambda: list(DEFAULT_SYMBOLS))
    price_poll_interval: float = Field(default=5.0, gt=0)
    account_poll_interval: float = Field(default=10.0, gt=0)
    order_timeout: float = Field(default=10.0, gt=0)
    request_timeout: float = Field(default=10.0, gt=0)
    ping_interval: float = Field(default=20.0, gt=0)
    max_loan: Decimal = Field(default=Decimal("100000"), ge=0)
    starting_cash: Decimal = Field(default=Decimal("10000"), ge=0)
    log_level: str = "INFO"

    @field_validator("api_url", "ws_url", "user_id", "token", mode="before")
    @classmethod
    def blank_is_unset(cls, v):
        if isinstance(v, str):
            return v.strip() or None
        return v

    @field_validator("symbols", mode="before")
    @classmethod
    def parse_symbols(cls, v):
        """Accept a comma-separated string ("aapl, msft") or a list."""
        if isinstance(v, str):
            v = v.split(",")
        symbols = [s.strip().upper() for s in v if s.strip()]
        return symbols or list(DEFAULT_SYMBOLS)

    @field_validator("log_level", mode="before")
    @classmethod
    def upper_log_level(cls, v):
        return str(v).strip().upper() or "INFO"

    @property
    def simulated(self) -> bool:
        return self.api_url is None


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging for the dashboard process."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    # Per-request lines from the HTTP and WebSocket clients are noise here
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("websockets").setLevel(logging.WARNING)
