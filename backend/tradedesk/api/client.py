"""Async client for the remote trading API."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any

import httpx

from ..errors import APIError
from ..portfolio.models import OrderKind, Session

logger = logging.getLogger(__name__)


class TradingAPIClient:
    """Thin wrapper over httpx for the trading backend's REST endpoints.

    Every method raises APIError on transport failure or a non-success status,
    so callers deal with a single exception type. Payloads are returned as
    decoded JSON; list endpoints accept both a bare list and ``{"data": [...]}``.
    """

    def __init__(
        self,
        base_url: str,
        session: Session | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json"}
        if session is not None and session.token:
            headers["Authorization"] = f"Bearer {session.token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> TradingAPIClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # --- Endpoints ---

    async def get_stocks(self) -> list[dict[str, Any]]:
        return _as_list(await self._request("GET", "/stocks"))

    async def get_portfolio(self, user_id: str) -> list[dict[str, Any]]:
        return _as_list(await self._request("GET", f"/users/{user_id}/portfolio"))

    async def get_balance(self, user_id: str) -> dict[str, Any]:
        payload = await self._request("GET", f"/users/{user_id}/balance")
        if not isinstance(payload, dict):
            raise APIError(f"Unexpected balance payload: {payload!r}")
        return payload

    async def get_transactions(self, user_id: str) -> list[dict[str, Any]]:
        return _as_list(await self._request("GET", f"/txn/{user_id}"))

    async def place_order(
        self,
        kind: OrderKind,
        user_id: str,
        symbol: str,
        quantity: int,
        price: Decimal,
    ) -> Any:
        """POST /txn/buy or /txn/sell. Returns the server's acknowledgement."""
        body = {
            "userId": user_id,
            "stockSymbol": symbol,
            "quantity": quantity,
            "price": float(price),
        }
        return await self._request("POST", f"/txn/{kind.value}", json=body)

    # --- Internal ---

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as e:
            raise APIError(f"{method} {path} failed: {e}") from e

        if response.is_error:
            raise APIError(
                f"{method} {path} returned {response.status_code}: {_error_message(response)}",
                status_code=response.status_code,
            )
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise APIError(f"{method} {path} returned invalid JSON", response.status_code) from e


def _as_list(payload: Any) -> list[dict[str, Any]]:
    if isinstance(payload, dict) and "data" in payload:
        payload = payload["data"]
    if not isinstance(payload, list):
        raise APIError(f"Expected a list payload, got {type(payload).__name__}")
    return payload


def _error_message(response: httpx.Response) -> str:
    """Best-effort message from an error body ({"message": ...} or plain text)."""
    try:
        body = response.json()
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)
