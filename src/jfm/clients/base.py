"""Base HTTP client shared by API clients."""

from typing import Any, Optional

import httpx
from loguru import logger


class BaseClient:
    """Thin async wrapper around ``httpx.AsyncClient``."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        headers: Optional[dict[str, str]] = None,
        timeout: float = 30.0,
    ):
        """
        Initialize client.

        Args:
            base_url: Server URL (trailing slash is stripped)
            api_key: API key, kept for subclasses that send it
            headers: Headers sent with every request
            timeout: Request timeout in seconds
        """
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.headers = headers or {}
        self.timeout = timeout
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Get the underlying HTTP client, creating it on first use."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
            )
        return self._client

    async def get(self, path: str, params: Optional[dict[str, Any]] = None) -> httpx.Response:
        """Send a GET request."""
        logger.trace(f"GET {self.base_url}{path}")
        return await self.client.get(path, params=params)

    async def post(
        self,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json: Optional[Any] = None,
    ) -> httpx.Response:
        """Send a POST request."""
        logger.trace(f"POST {self.base_url}{path}")
        return await self.client.post(path, params=params, json=json)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BaseClient":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()
