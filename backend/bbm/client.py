"""Async HTTP client for the BBM Monitor API.

    async with BBMClient("http://localhost:8000") as api:
        await api.login("ops@example.com", "secret123")
        await api.stock_out(120, notes="Generator run")
        print(await api.stock_summary())

The access token lives in memory and the refresh token in the client's
cookie jar. A request answered with 401 triggers one refresh and one
retry. Concurrent requests that hit 401 together share a single refresh
call; if it fails they all raise SessionExpiredError.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)

# Requests to these paths never trigger a refresh
_NO_REFRESH_PATHS = ("/auth/login", "/auth/register", "/auth/refresh")


class APIError(Exception):
    """Non-2xx response, carrying the server's error code and message."""

    def __init__(self, status_code: int, code: str, message: str, details: Any = None):
        self.status_code = status_code
        self.code = code
        self.message = message
        self.details = details
        super().__init__(f"{status_code} {code}: {message}")

    @classmethod
    def from_response(cls, response: httpx.Response) -> "APIError":
        try:
            error = response.json().get("error", {})
        except ValueError:
            error = {}
        return cls(
            response.status_code,
            error.get("code", f"HTTP_{response.status_code}"),
            error.get("message", response.text or "Something went wrong"),
            error.get("details"),
        )


class SessionExpiredError(APIError):
    def __init__(self, message: str = "Session expired"):
        super().__init__(401, "SESSION_EXPIRED", message)


class BBMClient:
    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._http = httpx.AsyncClient(base_url=base_url, timeout=timeout, transport=transport)
        self.access_token: str | None = None
        self.user: dict | None = None
        self._refresh_task: asyncio.Task | None = None

    async def __aenter__(self) -> "BBMClient":
        return self

    async def __aexit__(self, *exc) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    # ── Token handling ──────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        if self.access_token:
            return {"Authorization": f"Bearer {self.access_token}"}
        return {}

    async def _do_refresh(self) -> bool:
        try:
            response = await self._http.post("/auth/refresh")
            if response.status_code != 200:
                logger.info("Token refresh rejected with %s", response.status_code)
                return False
            data = response.json()
            self.access_token = data["access_token"]
            self.user = data.get("user")
            return True
        except httpx.HTTPError:
            logger.warning("Token refresh failed", exc_info=True)
            return False
        finally:
            self._refresh_task = None

    async def refresh(self) -> bool:
        """Refresh the access token; concurrent callers share one request."""
        task = self._refresh_task
        if task is None:
            task = asyncio.create_task(self._do_refresh())
            self._refresh_task = task
        return await asyncio.shield(task)

    def _session_expired(self) -> SessionExpiredError:
        self.access_token = None
        self.user = None
        return SessionExpiredError()

    # ── Core request ────────────────────────────────────────────

    async def request(self, method: str, path: str, **kwargs) -> httpx.Response:
        response = await self._http.request(method, path, headers=self._headers(), **kwargs)

        if response.status_code == 401 and path not in _NO_REFRESH_PATHS:
            if not await self.refresh():
                raise self._session_expired()
            response = await self._http.request(method, path, headers=self._headers(), **kwargs)
            if response.status_code == 401:
                raise self._session_expired()

        if response.is_error:
            raise APIError.from_response(response)
        return response

    async def _json(self, method: str, path: str, **kwargs) -> Any:
        return (await self.request(method, path, **kwargs)).json()

    # ── Auth ────────────────────────────────────────────────────

    async def login(self, email: str, password: str) -> dict:
        data = await self._json("POST", "/auth/login", json={"email": email, "password": password})
        self.access_token = data["access_token"]
        self.user = data["user"]
        return data["user"]

    async def register(self, email: str, password: str, name: str, location: str | None = None) -> dict:
        body = {"email": email, "password": password, "name": name, "location": location}
        return (await self._json("POST", "/auth/register", json=body))["user"]

    async def logout(self) -> None:
        try:
            await self.request("POST", "/auth/logout")
        finally:
            self.access_token = None
            self.user = None

    async def me(self) -> dict:
        return (await self._json("GET", "/auth/me"))["user"]

    # ── Stock ───────────────────────────────────────────────────

    async def stock_summary(self) -> list[dict]:
        return await self._json("GET", "/stock/summary")

    async def stock_in(self, location: str, amount: float, notes: str | None = None) -> dict:
        body = {"location": location, "amount": amount, "notes": notes}
        return await self._json("POST", "/stock/in", json=body)

    async def stock_out(self, amount: float, notes: str | None = None) -> list[dict]:
        return await self._json("POST", "/stock/out", json={"amount": amount, "notes": notes})

    async def stock_history(self, page: int = 1, limit: int = 20, **filters) -> dict:
        params = {"page": page, "limit": limit, **{k: v for k, v in filters.items() if v is not None}}
        return await self._json("GET", "/stock/history", params=params)

    async def stock_trend(self, days: int = 7, location: str | None = None) -> list[dict]:
        params = {"days": days}
        if location:
            params["location"] = location
        return await self._json("GET", "/stock/trend", params=params)

    async def stock_today(self, location: str | None = None) -> list[dict]:
        params = {"location": location} if location else {}
        return await self._json("GET", "/stock/today", params=params)

    async def stock_export(self, **filters) -> bytes:
        params = {k: v for k, v in filters.items() if v is not None}
        return (await self.request("GET", "/stock/export", params=params)).content

    # ── Notifications ───────────────────────────────────────────

    async def check_low_stock(self) -> dict:
        return await self._json("GET", "/notifications/check")

    async def get_settings(self) -> dict[str, str]:
        return await self._json("GET", "/notifications/settings")

    async def update_setting(self, key: str, value: str) -> dict:
        return await self._json("POST", "/notifications/settings", json={"key": key, "value": value})
