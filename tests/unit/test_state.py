"""Unit tests for the run-state store."""

from datetime import datetime, timedelta, timezone
from pathlib import Path

from jfm.core.state import RunStateStore


class TestRunStateStore:
    """Tests for RunStateStore."""

    def test_missing_file_has_no_cutoff(self, tmp_path: Path):
        store = RunStateStore(tmp_path / "lastrun.log")
        assert store.read_last_run() is None
        assert store.read_cutoff() is None

    def test_write_subtracts_run_offset(self, tmp_path: Path):
        store = RunStateStore(tmp_path / "state" / "lastrun.log")
        now = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)

        stamp = store.write_last_run(now)

        assert stamp == datetime(2024, 3, 1, 6, 0, tzinfo=timezone.utc)
        assert store.read_last_run() == stamp

    def test_cutoff_subtracts_margin(self, tmp_path: Path):
        store = RunStateStore(tmp_path / "lastrun.log")
        store.write_last_run(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))

        assert store.read_cutoff() == datetime(2024, 2, 29, 6, 0, tzinfo=timezone.utc)

    def test_custom_offsets(self, tmp_path: Path):
        store = RunStateStore(
            tmp_path / "lastrun.log",
            cutoff_margin=timedelta(hours=2),
            run_offset=timedelta(0),
        )
        store.write_last_run(datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc))

        assert store.read_cutoff() == datetime(2024, 3, 1, 10, 0, tzinfo=timezone.utc)

    def test_reads_naive_timestamp_as_utc(self, tmp_path: Path):
        path = tmp_path / "lastrun.log"
        path.write_text("2023-12-31T18:00:00", encoding="utf-8")

        assert RunStateStore(path).read_last_run() == datetime(2023, 12, 31, 18, tzinfo=timezone.utc)

    def test_unreadable_timestamp_ignored(self, tmp_path: Path, log_records):
        path = tmp_path / "lastrun.log"
        path.write_text("yesterday", encoding="utf-8")

        assert RunStateStore(path).read_cutoff() is None
        assert any(r["level"].name == "WARNING" for r in log_records)
