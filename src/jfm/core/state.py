"""Persisted run state: the time of the last successful run."""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

from loguru import logger


class RunStateStore:
    """Reads and writes the last-run timestamp file."""

    def __init__(
        self,
        path: Path,
        cutoff_margin: timedelta = timedelta(days=1),
        run_offset: timedelta = timedelta(hours=6),
    ):
        """
        Initialize run state store.

        Args:
            path: Timestamp file
            cutoff_margin: Subtracted from the stored time when computing the cutoff
            run_offset: Subtracted from the completion time when writing
        """
        self.path = path
        self.cutoff_margin = cutoff_margin
        self.run_offset = run_offset

    def read_last_run(self) -> Optional[datetime]:
        """Get the stored last-run time (UTC), or None if there is none."""
        if not self.path.exists():
            logger.info(f"No previous run recorded at {self.path} - processing full history")
            return None

        raw = self.path.read_text(encoding="utf-8").strip()
        try:
            last_run = datetime.fromisoformat(raw)
        except ValueError:
            logger.warning(f"Ignoring unreadable last-run timestamp in {self.path}: {raw!r}")
            return None

        if last_run.tzinfo is None:
            last_run = last_run.replace(tzinfo=timezone.utc)
        return last_run.astimezone(timezone.utc)

    def read_cutoff(self) -> Optional[datetime]:
        """Get the watched-record cutoff: last run minus the safety margin."""
        last_run = self.read_last_run()
        if last_run is None:
            return None

        cutoff = last_run - self.cutoff_margin
        logger.info(f"Last run: {last_run.isoformat()} - watched cutoff: {cutoff.isoformat()}")
        return cutoff

    def write_last_run(self, now: Optional[datetime] = None) -> datetime:
        """
        Record a successful run.

        Args:
            now: Completion time (defaults to current UTC time)

        Returns:
            The stored timestamp
        """
        now = now or datetime.now(timezone.utc)
        stamp = now.astimezone(timezone.utc) - self.run_offset

        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(stamp.isoformat(timespec="seconds"), encoding="utf-8")
        logger.debug(f"Last run recorded as {stamp.isoformat()} in {self.path}")
        return stamp
