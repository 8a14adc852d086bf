"""Run report models."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class UserReport(BaseModel):
    """Per-user reconciliation counts."""

    username: str
    source_user_id: str
    destination_user_id: str
    watched: int = 0
    matched: int = 0
    unmatched: int = 0

    @property
    def match_rate(self) -> float:
        """Get matched percentage of watched records."""
        if self.watched == 0:
            return 0.0
        return self.matched / self.watched * 100


class RunReport(BaseModel):
    """Outcome of one reconciliation run."""

    start_time: datetime
    end_time: Optional[datetime] = None
    dry_run: bool = False
    cutoff: Optional[datetime] = None
    index_size: int = 0
    completed: bool = False

    users: list[UserReport] = Field(default_factory=list)
    skipped_users: list[str] = Field(default_factory=list)

    def finalize(self, completed: bool) -> None:
        """Mark the run as finished."""
        self.end_time = datetime.now(self.start_time.tzinfo)
        self.completed = completed

    @property
    def duration_seconds(self) -> float:
        if self.end_time is None:
            return 0.0
        return (self.end_time - self.start_time).total_seconds()

    @property
    def total_matched(self) -> int:
        return sum(u.matched for u in self.users)

    @property
    def total_unmatched(self) -> int:
        return sum(u.unmatched for u in self.users)
