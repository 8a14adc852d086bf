"""Main runner that orchestrates a watched-state migration run."""

import asyncio
from datetime import datetime, timedelta, timezone
from typing import Optional

from loguru import logger

from jfm.clients.jellyfin import JellyfinClient
from jfm.core.config import Settings
from jfm.core.retry import RetryPolicy
from jfm.core.state import RunStateStore
from jfm.models.media import IdentityIndex
from jfm.models.report import RunReport, UserReport
from jfm.models.user import User, UserDirectory
from jfm.services.catalog import CatalogFetcher
from jfm.services.media_matcher import resolve
from jfm.services.replayer import WatchedStateReplayer

# Log a progress line every N matched records
PROGRESS_INTERVAL = 25


class Runner:
    """Main runner: users -> destination index -> per-user fetch, match, replay."""

    def __init__(
        self,
        settings: Settings,
        source: Optional[JellyfinClient] = None,
        destination: Optional[JellyfinClient] = None,
        retry: Optional[RetryPolicy] = None,
        state: Optional[RunStateStore] = None,
    ):
        """
        Initialize runner with settings.

        Args:
            settings: Application settings
            source: Source client (built from settings if None)
            destination: Destination client (built from settings if None)
            retry: Retry policy for page fetches and state changes
            state: Last-run store (built from settings if None)
        """
        self.settings = settings
        self.dry_run = settings.dry_run
        sync = settings.sync

        # Fails before any client exists
        settings.validate_required()

        self.source = source or JellyfinClient(
            url=settings.source.url,
            api_key=settings.source.api_key,
            identity=settings.identity,
            timeout=settings.http_timeout,
        )
        self.destination = destination or JellyfinClient(
            url=settings.destination.url,
            api_key=settings.destination.api_key,
            identity=settings.identity,
            timeout=settings.http_timeout,
        )

        self.retry = retry or RetryPolicy(delay=sync.retry_delay)
        self.state = state or RunStateStore(
            settings.get_last_run_file(),
            cutoff_margin=timedelta(days=sync.cutoff_margin_days),
            run_offset=timedelta(hours=sync.run_offset_hours),
        )

        self.source_catalog = CatalogFetcher(
            self.source,
            retry=self.retry,
            page_size=sync.page_size,
            early_exit=sync.watched_early_exit,
        )
        self.destination_catalog = CatalogFetcher(
            self.destination,
            retry=self.retry,
            page_size=sync.page_size,
            exclude_types=sync.destination_exclude_types,
        )
        self.replayer = WatchedStateReplayer(self.destination, retry=self.retry, dry_run=self.dry_run)

    async def run(self) -> RunReport:
        """
        Run one reconciliation pass.

        The last-run timestamp is only written when every linked user was
        processed; any exception propagates and leaves it untouched.

        Returns:
            RunReport with per-user counts
        """
        cutoff = self.state.read_cutoff()
        report = RunReport(
            start_time=datetime.now(timezone.utc),
            dry_run=self.dry_run,
            cutoff=cutoff,
        )

        source_users, destination_users = await asyncio.gather(
            self.source.get_users(),
            self.destination.get_users(),
        )
        source_directory = UserDirectory(source_users)
        destination_directory = UserDirectory(destination_users)
        logger.info(f"Source user count: {len(source_directory)}")
        logger.info(f"Destination user count: {len(destination_directory)}")

        admin_name = self.settings.destination.admin_username
        admin = destination_directory.get(admin_name)
        if admin is None:
            logger.error(f"Destination admin '{admin_name}' not found - aborting run")
            report.finalize(completed=False)
            return report

        index = await self.destination_catalog.build_index(admin.id)
        report.index_size = len(index)

        for source_user in source_directory:
            destination_user = destination_directory.get(source_user.name)
            if destination_user is None:
                logger.warning(f"User not found in destination: {source_user.name}")
                report.skipped_users.append(source_user.name)
                continue

            logger.info(f"Starting user: {source_user.name}")
            user_report = await self.sync_user(source_user, destination_user, index, cutoff)
            report.users.append(user_report)

        if self.dry_run:
            logger.info("[DRY RUN] Last run timestamp not updated")
        else:
            self.state.write_last_run()

        report.finalize(completed=True)
        logger.info(
            f"Run completed in {report.duration_seconds:.1f}s: "
            f"{len(report.users)} users, {report.total_matched} matched, "
            f"{report.total_unmatched} unmatched, {len(report.skipped_users)} skipped"
        )
        return report

    async def sync_user(
        self,
        source_user: User,
        destination_user: User,
        index: IdentityIndex,
        cutoff: Optional[datetime],
    ) -> UserReport:
        """
        Replay one user's recently watched items onto the destination.

        Args:
            source_user: Account on the source server
            destination_user: Same-named account on the destination server
            index: Destination identity index
            cutoff: Watched records played before this are skipped
        """
        user_report = UserReport(
            username=source_user.name,
            source_user_id=source_user.id,
            destination_user_id=destination_user.id,
        )

        async for record in self.source_catalog.iter_watched(source_user.id, cutoff):
            user_report.watched += 1

            resolved = resolve(record, index)
            if resolved is None:
                user_report.unmatched += 1
                logger.warning(
                    f"[SetWatchedStatus]::{destination_user.id}\t"
                    f"imdb: {record.imdb_id}, tvdb: {record.tvdb_id}, "
                    f"name: {record.display_title}, path: {record.path} not found"
                )
                continue

            tier, item = resolved
            logger.debug(f"Matched '{record.display_title}' -> {item.id} by {tier.name}")

            user_report.matched += 1
            if user_report.matched % PROGRESS_INTERVAL == 0:
                logger.info(
                    f"[SetWatchedStatus]::{destination_user.id}\tWatched record count: {user_report.matched}"
                )

            await self.replayer.apply(destination_user.id, item.id, record.last_played_at)

        logger.info(
            f"[SetWatchedStatus]::{destination_user.id}\tTotal watched record count: {user_report.matched}"
        )
        return user_report

    async def close(self) -> None:
        """Close all client connections."""
        await self.source.close()
        await self.destination.close()
