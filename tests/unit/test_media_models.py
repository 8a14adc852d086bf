"""Unit tests for media and user models."""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from jfm.clients.jellyfin import to_media_item, to_watched_record
from jfm.models.media import (
    IdentityIndex,
    MediaItem,
    WatchedRecord,
    normalize_imdb_id,
    parse_jellyfin_datetime,
)
from jfm.models.user import User, UserDirectory


class TestNormalizeImdbId:
    """Tests for IMDb id normalization."""

    @pytest.mark.parametrize("raw", ["0111161", "1234567", "98765432"])
    def test_prepends_prefix_once(self, raw: str):
        normalized = normalize_imdb_id(raw)
        assert normalized == f"tt{raw}"
        assert normalize_imdb_id(normalized) == normalized

    @pytest.mark.parametrize("raw", ["tt0111161", "TT0111161"])
    def test_prefixed_id_unchanged(self, raw: str):
        assert normalize_imdb_id(raw) == raw

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_is_none(self, raw):
        assert normalize_imdb_id(raw) is None


class TestMediaItem:
    """Tests for MediaItem."""

    def test_external_ids_normalized(self):
        item = MediaItem(id="1", external_ids={"Imdb": "0111161", "Tvdb": "81189", "Tmdb": ""})
        assert item.external_ids == {"imdb": "tt0111161", "tvdb": "81189"}
        assert item.imdb_id == "tt0111161"
        assert item.tvdb_id == "81189"

    def test_episode_code_requires_season_and_episode(self):
        assert MediaItem(id="1", season_number=1, episode_number=5).episode_code == "S01E05"
        assert MediaItem(id="1", season_number=12, episode_number=103).episode_code == "S12E103"
        assert MediaItem(id="1", episode_number=5).episode_code is None
        assert MediaItem(id="1", season_number=1).episode_code is None

    def test_empty_series_title_is_none(self):
        assert MediaItem(id="1", series_title="").series_title is None

    def test_frozen(self):
        item = MediaItem(id="1", title="A")
        with pytest.raises(ValidationError):
            item.title = "B"

    def test_watched_record_requires_last_played(self):
        with pytest.raises(ValidationError):
            WatchedRecord(id="1", title="A")


class TestParseJellyfinDatetime:
    """Tests for Jellyfin timestamp parsing."""

    def test_seven_fraction_digits_with_z(self):
        parsed = parse_jellyfin_datetime("2024-01-01T10:20:30.1234567Z")
        assert parsed == datetime(2024, 1, 1, 10, 20, 30, 123456, tzinfo=timezone.utc)

    def test_naive_assumed_utc(self):
        parsed = parse_jellyfin_datetime("2024-01-01T00:00:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_offset_converted_to_utc(self):
        parsed = parse_jellyfin_datetime("2024-01-01T02:00:00+02:00")
        assert parsed == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_missing(self):
        assert parse_jellyfin_datetime(None) is None
        assert parse_jellyfin_datetime("") is None

    def test_non_string_is_value_error(self):
        with pytest.raises(ValueError):
            parse_jellyfin_datetime(1704067200)


class TestItemPayloadConversion:
    """Tests for Jellyfin payload -> model conversion."""

    def test_to_media_item(self, make_item):
        payload = make_item(
            "abc",
            name="Pilot",
            imdb="0959621",
            tvdb="349232",
            series="Breaking Bad",
            season=1,
            episode=1,
            path="/tv/Breaking Bad/S01E01.mkv",
        )
        item = to_media_item(payload)

        assert item.id == "abc"
        assert item.title == "Pilot"
        assert item.imdb_id == "tt0959621"
        assert item.tvdb_id == "349232"
        assert item.series_title == "Breaking Bad"
        assert item.episode_code == "S01E01"
        assert item.path == "/tv/Breaking Bad/S01E01.mkv"
        assert item.last_played_at is None

    def test_lowercase_provider_keys(self):
        item = to_media_item({"Id": "1", "Name": "A", "ProviderIds": {"imdb": "tt1", "tvdb": "2"}})
        assert item.external_ids == {"imdb": "tt1", "tvdb": "2"}

    def test_to_watched_record(self, make_item):
        record = to_watched_record(make_item("1", played="2024-01-01T00:00:00.0000000Z"))
        assert record.last_played_at == datetime(2024, 1, 1, tzinfo=timezone.utc)

    def test_to_watched_record_without_date_uses_fallback(self, make_item):
        fallback = datetime(2030, 1, 1, tzinfo=timezone.utc)
        record = to_watched_record(make_item("1"), played_fallback=fallback)
        assert record.last_played_at == fallback

    def test_missing_id_raises(self):
        with pytest.raises(ValueError):
            to_media_item({"Name": "No id"})

    def test_numeric_last_played_raises(self, make_item):
        payload = make_item("1")
        payload["UserData"] = {"LastPlayedDate": 1704067200, "Played": True}
        with pytest.raises(ValueError):
            to_watched_record(payload)


class TestIdentityIndex:
    """Tests for IdentityIndex."""

    def test_preserves_order_and_duplicates(self):
        items = [MediaItem(id="b"), MediaItem(id="a"), MediaItem(id="b")]
        index = IdentityIndex(items)
        assert [i.id for i in index] == ["b", "a", "b"]
        assert len(index) == 3

    def test_independent_of_source_list(self):
        items = [MediaItem(id="a")]
        index = IdentityIndex(items)
        items.append(MediaItem(id="b"))
        assert len(index) == 1


class TestUserDirectory:
    """Tests for UserDirectory."""

    def test_case_insensitive_lookup(self):
        directory = UserDirectory([User(id="1", name="Alice")])
        assert directory.get("alice").id == "1"
        assert directory.get("ALICE").id == "1"
        assert "aLiCe" in directory
        assert directory.get("bob") is None

    def test_first_account_wins_on_case_collision(self):
        directory = UserDirectory([User(id="1", name="alice"), User(id="2", name="Alice")])
        assert len(directory) == 1
        assert directory.get("alice").id == "1"
