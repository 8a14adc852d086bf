"""Shared fixtures."""

from pathlib import Path
from typing import Any, Optional
from unittest.mock import AsyncMock

import httpx
import pytest
from loguru import logger

from jfm.core.config import Settings
from jfm.core.retry import RetryPolicy


class _JsonResponse:
    """Minimal JSON response object for client tests."""

    def __init__(self, data: Any, status_code: int = 200):
        self._data = data
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            request = httpx.Request("GET", "http://jellyfin.test")
            raise httpx.HTTPStatusError(
                f"HTTP {self.status_code}",
                request=request,
                response=httpx.Response(self.status_code, request=request),
            )

    def json(self) -> Any:
        return self._data


@pytest.fixture
def json_response():
    """Factory for fake JSON responses."""
    return _JsonResponse


@pytest.fixture
def no_sleep() -> AsyncMock:
    """Sleep replacement that returns immediately."""
    return AsyncMock(return_value=None)


@pytest.fixture
def retry_policy(no_sleep: AsyncMock) -> RetryPolicy:
    """Retry policy with the default delay but no real waiting."""
    return RetryPolicy(delay=5.0, sleep=no_sleep)


@pytest.fixture
def settings(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Complete settings pointing at fake servers."""
    monkeypatch.setenv("CONFIG_PATH", str(tmp_path))
    return Settings(
        source_url="http://source.test:8096/",
        source_api_key="source-key",
        destination_url="http://destination.test:8096",
        destination_api_key="destination-key",
        destination_admin_username="Admin",
        data_path=tmp_path / "data",
        log_path=tmp_path / "logs",
    )


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records: list[dict] = []
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    logger.remove(handler_id)


def _make_item(
    item_id: str,
    name: str = "",
    imdb: Optional[str] = None,
    tvdb: Optional[str] = None,
    series: Optional[str] = None,
    season: Optional[int] = None,
    episode: Optional[int] = None,
    path: Optional[str] = None,
    played: Optional[str] = None,
) -> dict[str, Any]:
    """Build a Jellyfin item payload."""
    item: dict[str, Any] = {"Id": item_id, "Name": name or f"Item {item_id}"}
    provider_ids = {}
    if imdb is not None:
        provider_ids["Imdb"] = imdb
    if tvdb is not None:
        provider_ids["Tvdb"] = tvdb
    if provider_ids:
        item["ProviderIds"] = provider_ids
    if series is not None:
        item["SeriesName"] = series
    if season is not None:
        item["ParentIndexNumber"] = season
    if episode is not None:
        item["IndexNumber"] = episode
    if path is not None:
        item["Path"] = path
    if played is not None:
        item["UserData"] = {"LastPlayedDate": played, "Played": True}
    return item


def _make_page(start: int, count: int, prefix: str = "i") -> list[dict[str, Any]]:
    """Build a page of distinct item payloads."""
    return [_make_item(f"{prefix}{n}") for n in range(start, start + count)]


@pytest.fixture
def make_item():
    """Factory for Jellyfin item payloads."""
    return _make_item


@pytest.fixture
def make_page():
    """Factory for pages of item payloads."""
    return _make_page
