"""Jellyfin API client for users, library items and played state."""

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from loguru import logger

from jfm.clients.base import BaseClient
from jfm.core.config import ClientIdentity
from jfm.models.media import MediaItem, WatchedRecord, parse_jellyfin_datetime
from jfm.models.user import User

# One device id per process, shared by every client instance
DEVICE_ID = uuid.uuid4().hex


def build_authorization_header(identity: ClientIdentity, device_id: str = DEVICE_ID) -> str:
    """Build the MediaBrowser client identification header value."""
    return (
        f'MediaBrowser Client="{identity.client}", Device="{identity.device}", '
        f'DeviceId="{device_id}", Version="{identity.version}"'
    )


def _item_fields(item: dict[str, Any]) -> dict[str, Any]:
    """Map a Jellyfin item payload to MediaItem fields."""
    if not isinstance(item, dict) or not item.get("Id"):
        raise ValueError(f"Item payload without Id: {item!r}")
    return {
        "id": str(item["Id"]),
        "title": item.get("Name") or "",
        "external_ids": item.get("ProviderIds") or {},
        "series_title": item.get("SeriesName"),
        "season_number": item.get("ParentIndexNumber"),
        "episode_number": item.get("IndexNumber"),
        "path": item.get("Path"),
    }


def to_media_item(item: dict[str, Any]) -> MediaItem:
    """Convert a Jellyfin item payload to a MediaItem."""
    fields = _item_fields(item)
    user_data = item.get("UserData") or {}
    fields["last_played_at"] = parse_jellyfin_datetime(user_data.get("LastPlayedDate"))
    return MediaItem(**fields)


def to_watched_record(item: dict[str, Any], played_fallback: Optional[datetime] = None) -> WatchedRecord:
    """
    Convert a played Jellyfin item payload to a WatchedRecord.

    Args:
        item: Item payload
        played_fallback: Used when the server reports no last played date
            (defaults to now)
    """
    fields = _item_fields(item)
    user_data = item.get("UserData") or {}
    last_played = parse_jellyfin_datetime(user_data.get("LastPlayedDate"))
    if last_played is None:
        last_played = played_fallback or datetime.now(timezone.utc)
    fields["last_played_at"] = last_played
    return WatchedRecord(**fields)


class JellyfinClient(BaseClient):
    """Client for Jellyfin API."""

    def __init__(
        self,
        url: str,
        api_key: str,
        identity: Optional[ClientIdentity] = None,
        device_id: str = DEVICE_ID,
        timeout: float = 30.0,
    ):
        """
        Initialize Jellyfin client.

        Args:
            url: Jellyfin server URL
            api_key: Jellyfin API key
            identity: Client identification sent with every request
            device_id: Device id for the authorization header
            timeout: Request timeout in seconds
        """
        identity = identity or ClientIdentity()
        super().__init__(
            base_url=url,
            api_key=api_key,
            headers={"X-Emby-Authorization": build_authorization_header(identity, device_id)},
            timeout=timeout,
        )

    def _params(self, **params: Any) -> dict[str, Any]:
        """Add the api_key query parameter."""
        return {**params, "api_key": self.api_key}

    # =========================================================================
    # Users
    # =========================================================================

    async def get_users(self) -> list[User]:
        """Get all user accounts."""
        response = await self.get("/Users", params=self._params())
        response.raise_for_status()

        users = [User(id=str(u["Id"]), name=u["Name"]) for u in response.json()]
        logger.debug(f"[Jellyfin] {self.base_url}: {len(users)} users")
        return users

    # =========================================================================
    # Items
    # =========================================================================

    async def get_user_items(
        self,
        user_id: str,
        params: dict[str, Any],
        start_index: int = 0,
        limit: int = 500,
    ) -> list[dict[str, Any]]:
        """
        Get one page of a user's items.

        Args:
            user_id: User whose view of the library is queried
            params: Filter parameters (IncludeItemTypes, IsPlayed, ...)
            start_index: Pagination offset
            limit: Page size

        Returns:
            Raw item payloads

        Raises:
            httpx.HTTPStatusError: On non-2xx response
            ValueError: If the body is not an item container
        """
        response = await self.get(
            f"/Users/{user_id}/Items",
            params=self._params(**params, StartIndex=start_index, Limit=limit),
        )
        response.raise_for_status()

        payload = response.json()
        items = payload.get("Items") if isinstance(payload, dict) else None
        if not isinstance(items, list):
            raise ValueError(f"Unexpected item container from {self.base_url}: missing 'Items' list")
        return items

    # =========================================================================
    # Played state
    # =========================================================================

    async def mark_played(self, user_id: str, item_id: str, last_played_at: datetime) -> None:
        """
        Mark an item as played for a user.

        Args:
            user_id: Destination user ID
            item_id: Destination item ID
            last_played_at: Last played date to record

        Raises:
            httpx.HTTPStatusError: On non-2xx response
        """
        response = await self.post(
            f"/Users/{user_id}/PlayedItems/{item_id}",
            params=self._params(),
            json={"LastPlayedDate": last_played_at.isoformat()},
        )
        response.raise_for_status()
