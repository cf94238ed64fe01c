"""HTTP request client with normalized errors."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from sajilo_client.errors import DecodeError, NetworkError, error_for_status

logger = structlog.get_logger(__name__)


def _error_message(response: httpx.Response) -> str:
    """Pull a message out of an error response, falling back to the status line."""
    fallback = f"API Error: {response.status_code} {response.reason_phrase}".rstrip()
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or fallback

    if isinstance(body, dict):
        for field in ("detail", "error", "message"):
            value = body.get(field)
            if value:
                return value if isinstance(value, str) else str(value)
    return fallback


class RequestClient:
    """Async JSON-over-HTTP client.

    Every failure surfaces as an ``ApiError`` subclass with the status
    embedded; the transport's own timeout applies.
    """

    def __init__(
        self,
        base_url: str,
        *,
        timeout: float = 30.0,
        headers: dict[str, str] | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Content-Type": "application/json", **(headers or {})},
            timeout=timeout,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return str(self._client.base_url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        """Send a request and return the decoded JSON body (``None`` when empty)."""
        try:
            response = await self._client.request(method, path, params=params, json=json)
        except httpx.TransportError as exc:
            error = NetworkError(str(exc) or type(exc).__name__)
            logger.warning("api.request_failed", method=method, path=path, error=repr(error))
            raise error from exc

        if not response.is_success:
            error = error_for_status(response.status_code, _error_message(response))
            logger.warning(
                "api.request_failed",
                method=method,
                path=path,
                status=response.status_code,
                error=error.message,
            )
            raise error

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            error = DecodeError(
                f"Invalid JSON in response to {method} {path}", status=response.status_code
            )
            logger.warning("api.decode_failed", method=method, path=path)
            raise error from exc

    async def get(self, path: str, *, params: dict[str, Any] | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(
        self,
        path: str,
        data: Any = None,
        *,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return await self.request("POST", path, params=params, json=data)

    async def aclose(self) -> None:
        """Close the HTTP client."""
        await self._client.aclose()


__all__ = ["RequestClient"]
