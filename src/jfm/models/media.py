"""Media item models."""

import re
from collections.abc import Iterable, Iterator
from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Provider ids the matcher understands
KNOWN_PROVIDERS = ("imdb", "tvdb")

# Jellyfin serializes up to 7 fractional digits, datetime accepts at most 6
_FRACTION_RE = re.compile(r"(\.\d{6})\d+")


def normalize_imdb_id(value: Optional[str]) -> Optional[str]:
    """Ensure an IMDb id carries the ``tt`` prefix exactly once."""
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if not value.lower().startswith("tt"):
        value = "tt" + value
    return value


def parse_jellyfin_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    Parse a Jellyfin timestamp to an aware UTC datetime.

    Accepts ``2024-01-01T10:00:00.0000000Z`` style values. Naive values are
    assumed to be UTC.
    """
    if not value:
        return None
    if not isinstance(value, str):
        raise ValueError(f"Expected a timestamp string, got {value!r}")
    raw = _FRACTION_RE.sub(r"\1", value.strip())
    if raw.endswith(("Z", "z")):
        raw = raw[:-1] + "+00:00"
    parsed = datetime.fromisoformat(raw)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


class MediaItem(BaseModel):
    """An episode or movie as seen by one server."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    external_ids: dict[str, str] = Field(default_factory=dict)

    # Episodic context
    series_title: Optional[str] = None
    season_number: Optional[int] = None
    episode_number: Optional[int] = None

    # Library file path, when the server exposes it
    path: Optional[str] = None

    # Source side only
    last_played_at: Optional[datetime] = None

    @field_validator("external_ids", mode="before")
    @classmethod
    def normalize_external_ids(cls, v: Optional[dict]) -> dict[str, str]:
        """Lower-case provider names, drop empty values, prefix IMDb ids."""
        if not v:
            return {}
        result: dict[str, str] = {}
        for provider, value in v.items():
            if value is None:
                continue
            value = str(value).strip()
            if not value:
                continue
            provider = provider.lower()
            if provider == "imdb":
                value = normalize_imdb_id(value)
            result[provider] = value
        return result

    @field_validator("series_title", "path", mode="before")
    @classmethod
    def empty_to_none(cls, v: Optional[str]) -> Optional[str]:
        return v or None

    @property
    def imdb_id(self) -> Optional[str]:
        return self.external_ids.get("imdb")

    @property
    def tvdb_id(self) -> Optional[str]:
        return self.external_ids.get("tvdb")

    @property
    def episode_code(self) -> Optional[str]:
        """Get ``SxxEyy`` code, when both season and episode are known."""
        if self.season_number is None or self.episode_number is None:
            return None
        return f"S{self.season_number:02d}E{self.episode_number:02d}"

    @property
    def display_title(self) -> str:
        """Get display title with series context."""
        if self.series_title:
            code = f" {self.episode_code}" if self.episode_code else ""
            return f"{self.series_title}{code} - {self.title}"
        return self.title


class WatchedRecord(MediaItem):
    """A source item marked as played."""

    last_played_at: datetime


class IdentityIndex:
    """
    Read-only, ordered collection of destination items.

    Order is the fetch order and doubles as the tie-break order when more
    than one entry matches. No deduplication is performed.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Iterable[MediaItem] = ()):
        self._items: tuple[MediaItem, ...] = tuple(items)

    @property
    def items(self) -> tuple[MediaItem, ...]:
        return self._items

    def __iter__(self) -> Iterator[MediaItem]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"IdentityIndex({len(self._items)} items)"
