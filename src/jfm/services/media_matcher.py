"""Matching of source watched records to destination library items."""

from collections.abc import Callable
from dataclasses import dataclass
from typing import Optional

from jfm.models.media import IdentityIndex, MediaItem


def _same_text(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive equality of two non-empty strings."""
    if not left or not right:
        return False
    return left.casefold() == right.casefold()


def same_path(record: MediaItem, candidate: MediaItem) -> bool:
    """Same library file."""
    return _same_text(record.path, candidate.path)


def same_imdb_id(record: MediaItem, candidate: MediaItem) -> bool:
    return _same_text(record.imdb_id, candidate.imdb_id)


def same_tvdb_id(record: MediaItem, candidate: MediaItem) -> bool:
    return _same_text(record.tvdb_id, candidate.tvdb_id)


def same_title(record: MediaItem, candidate: MediaItem) -> bool:
    """Same title, and either both are movies or both belong to the same series."""
    if not _same_text(record.title, candidate.title):
        return False
    if record.series_title is None and candidate.series_title is None:
        return True
    return _same_text(record.series_title, candidate.series_title)


def same_episode(record: MediaItem, candidate: MediaItem) -> bool:
    """Same series and season/episode numbering (e.g. localized episode titles)."""
    return _same_text(record.series_title, candidate.series_title) and _same_text(
        record.episode_code, candidate.episode_code
    )


@dataclass(frozen=True)
class MatchTier:
    """One ranked matching rule."""

    name: str
    predicate: Callable[[MediaItem, MediaItem], bool]

    def find(self, record: MediaItem, index: IdentityIndex) -> Optional[MediaItem]:
        """Get the first index entry, in index order, satisfying this tier."""
        for candidate in index:
            if self.predicate(record, candidate):
                return candidate
        return None


# Strongest signal first; the first tier with any hit decides the match
MATCH_TIERS: tuple[MatchTier, ...] = (
    MatchTier("path", same_path),
    MatchTier("imdb", same_imdb_id),
    MatchTier("tvdb", same_tvdb_id),
    MatchTier("title", same_title),
    MatchTier("episode", same_episode),
)


def resolve(
    record: MediaItem,
    index: IdentityIndex,
    tiers: tuple[MatchTier, ...] = MATCH_TIERS,
) -> Optional[tuple[MatchTier, MediaItem]]:
    """
    Resolve a record to a destination item.

    Args:
        record: Source item
        index: Destination identity index
        tiers: Ordered matching rules

    Returns:
        The tier that fired and the matched item, or None
    """
    for tier in tiers:
        candidate = tier.find(record, index)
        if candidate is not None:
            return tier, candidate
    return None


def match(
    record: MediaItem,
    index: IdentityIndex,
    tiers: tuple[MatchTier, ...] = MATCH_TIERS,
) -> Optional[MediaItem]:
    """Get the destination item for a record, or None if no tier matches."""
    resolved = resolve(record, index, tiers)
    return resolved[1] if resolved else None
