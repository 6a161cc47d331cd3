"""Application factory. Run with ``uvicorn tradedesk.main:create_app --factory``."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .api.client import TradingAPIClient
from .config import Settings, configure_logging
from .dashboard import create_dashboard_router
from .market.factory import create_quote_feeds
from .portfolio.models import AccountState, Session
from .portfolio.view_model import MarketViewModel, accept_locally, confirm_with

logger = logging.getLogger(__name__)

LOCAL_USER = "local"


def create_app(settings: Settings | None = None) -> FastAPI:
    """Wire client, view model, feeds and router for one dashboard session."""
    settings = settings or Settings()
    configure_logging(settings.log_level)

    if settings.simulated:
        session = Session(user_id=settings.user_id or LOCAL_USER)
        client = None
        view_model = MarketViewModel(
            session,
            accept_locally,
            account=AccountState(cash_balance=settings.starting_cash),
            order_timeout=settings.order_timeout,
        )
    else:
        if not settings.user_id:
            raise ValueError("TRADEDESK_USER_ID is required when TRADEDESK_API_URL is set")
        session = Session(user_id=settings.user_id, token=settings.token)
        client = TradingAPIClient(settings.api_url, session, timeout=settings.request_timeout)
        view_model = MarketViewModel(
            session, confirm_with(client, session), order_timeout=settings.order_timeout
        )

    feeds = create_quote_feeds(settings, view_model, client)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        for feed in feeds:
            await feed.start()
        logger.info("Dashboard ready for user %s", session.user_id)
        try:
            yield
        finally:
            for feed in feeds:
                await feed.stop()
            await view_model.close()
            if client is not None:
                await client.aclose()

    app = FastAPI(title="TradeDesk", lifespan=lifespan)
    app.include_router(create_dashboard_router(view_model, client, settings.max_loan))
    app.state.view_model = view_model
    app.state.feeds = feeds
    return app
