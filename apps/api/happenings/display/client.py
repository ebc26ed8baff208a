from __future__ import annotations

from typing import Any

import httpx

DEFAULT_TIMEOUT = 10.0
API_BASE_PATH = "/v1"


class DisplayApiError(Exception):
    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class DisplayConnectionError(DisplayApiError):
    """Network-level failure; the poller counts these toward disconnection."""


class DisplayApiClient:
    """
    Thin async client for the kiosk and host-control endpoints.

    ``transport`` is passed through to ``httpx.AsyncClient`` so tests can mount
    the FastAPI app or a mock transport instead of a real socket.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required")

        headers = {"Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"

        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def _get(self, path: str, params: dict[str, Any]) -> dict[str, Any]:
        try:
            response = await self._client.get(path, params={k: v for k, v in params.items() if v is not None})
        except httpx.ConnectError as exc:
            raise DisplayConnectionError(f"Failed to connect to server: {exc}") from exc
        except httpx.TimeoutException as exc:
            raise DisplayConnectionError(f"Connection timed out: {exc}") from exc

        if response.status_code == 200:
            return response.json()
        raise DisplayApiError(
            f"GET {path} failed with status {response.status_code}",
            status_code=response.status_code,
        )

    async def fetch_display(
        self, event_id: str, date: str | None = None, *, tv: bool = False
    ) -> dict[str, Any]:
        return await self._get(
            f"{API_BASE_PATH}/events/{event_id}/display",
            {"date": date, "tv": "1" if tv else None},
        )

    async def fetch_control(self, event_id: str, date: str | None = None) -> dict[str, Any]:
        return await self._get(f"{API_BASE_PATH}/events/{event_id}/lineup/control", {"date": date})

    async def fetch_now_playing(self, event_id: str, date: str) -> dict[str, Any]:
        return await self._get(f"{API_BASE_PATH}/events/{event_id}/lineup", {"date": date})

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "DisplayApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
