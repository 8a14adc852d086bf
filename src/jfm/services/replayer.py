"""Replays watched state onto the destination server."""

from datetime import datetime
from typing import Optional

from loguru import logger

from jfm.clients.jellyfin import JellyfinClient
from jfm.core.retry import RetryPolicy


class WatchedStateReplayer:
    """Marks matched items as played on the destination, retrying until it succeeds."""

    def __init__(
        self,
        client: JellyfinClient,
        retry: Optional[RetryPolicy] = None,
        dry_run: bool = False,
    ):
        """
        Initialize replayer.

        Args:
            client: Destination server
            retry: Policy applied to every state change
            dry_run: Log state changes without sending them
        """
        self.client = client
        self.retry = retry or RetryPolicy()
        self.dry_run = dry_run

    async def apply(self, user_id: str, item_id: str, last_played_at: datetime) -> None:
        """
        Mark one item as played for one user.

        Transient failures are retried forever, so this only returns once the
        destination accepted the change.
        """
        if self.dry_run:
            logger.info(
                f"[DRY RUN] Would mark {item_id} played for {user_id} "
                f"at {last_played_at.isoformat()}"
            )
            return

        await self.retry.call(
            lambda: self.client.mark_played(user_id, item_id, last_played_at),
            f"[SetWatchedStatus]::{user_id} item {item_id}",
        )
        logger.trace(f"[SetWatchedStatus]::{user_id} item {item_id} marked played")
