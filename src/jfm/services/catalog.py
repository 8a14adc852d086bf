"""Paged catalog fetching for destination catalogs and source watched history."""

from collections.abc import AsyncIterator, Callable
from datetime import datetime
from typing import Any, Optional, TypeVar

from loguru import logger

from jfm.clients.jellyfin import JellyfinClient, to_media_item, to_watched_record
from jfm.core.retry import RetryPolicy
from jfm.models.media import IdentityIndex, MediaItem, WatchedRecord

T = TypeVar("T")

PAGE_SIZE = 500

MEDIA_ITEM_TYPES = "Episode,Movie"

# Exclusion filter variant for the destination catalog
NON_MEDIA_ITEM_TYPES = "Studio,Person,PlaylistsFolder,UserView,Genre,Program"

ITEM_FIELDS = "ProviderIds,Path"


class CatalogFetcher:
    """Fetches complete item collections one page at a time."""

    def __init__(
        self,
        client: JellyfinClient,
        retry: Optional[RetryPolicy] = None,
        page_size: int = PAGE_SIZE,
        exclude_types: bool = False,
        early_exit: bool = True,
    ):
        """
        Initialize catalog fetcher.

        Args:
            client: Server to fetch from
            retry: Policy applied to every page request
            page_size: Items requested per page
            exclude_types: Filter the catalog by excluding non-media types
                instead of including episodes and movies
            early_exit: Stop the watched fetch at the first item older than the cutoff
        """
        self.client = client
        self.retry = retry or RetryPolicy()
        self.page_size = page_size
        self.exclude_types = exclude_types
        self.early_exit = early_exit

    async def iter_pages(
        self,
        user_id: str,
        params: dict[str, Any],
        parse: Callable[[dict[str, Any]], T],
        label: str = "Fetch",
    ) -> AsyncIterator[list[T]]:
        """
        Yield parsed pages until a short or empty page.

        A page is requested and parsed inside the retry policy, so it is
        yielded whole or retried whole.

        Args:
            user_id: User whose items are fetched
            params: Filter parameters
            parse: Converts one raw item payload
            label: Log prefix
        """
        offset = 0
        total = 0

        while True:

            async def fetch_page(start: int = offset) -> list[T]:
                raw = await self.client.get_user_items(
                    user_id, params, start_index=start, limit=self.page_size
                )
                return [parse(item) for item in raw]

            page = await self.retry.call(
                fetch_page,
                f"[{label}]::{user_id} page at offset {offset}",
            )

            total += len(page)
            logger.info(f"[{label}]::{user_id} fetched {total} items")
            if page:
                yield page

            if len(page) < self.page_size:
                return
            offset += len(page)

    def catalog_params(self) -> dict[str, Any]:
        """Get filter parameters for the destination catalog."""
        params: dict[str, Any] = {"Fields": ITEM_FIELDS, "Recursive": True}
        if self.exclude_types:
            params["ExcludeItemTypes"] = NON_MEDIA_ITEM_TYPES
        else:
            params["IncludeItemTypes"] = MEDIA_ITEM_TYPES
        return params

    @staticmethod
    def watched_params() -> dict[str, Any]:
        """Get filter parameters for played items, most recent first."""
        return {
            "Fields": ITEM_FIELDS,
            "IncludeItemTypes": MEDIA_ITEM_TYPES,
            "IsPlayed": True,
            "SortBy": "DatePlayed",
            "SortOrder": "Descending",
            "Recursive": True,
        }

    async def iter_catalog(self, user_id: str) -> AsyncIterator[MediaItem]:
        """Yield every catalog item visible to a user."""
        async for page in self.iter_pages(
            user_id, self.catalog_params(), to_media_item, label="DestinationCatalog"
        ):
            for item in page:
                yield item

    async def build_index(self, user_id: str) -> IdentityIndex:
        """Fetch a user's catalog into an IdentityIndex."""
        index = IdentityIndex([item async for item in self.iter_catalog(user_id)])
        logger.info(f"[DestinationCatalog] Identity index built with {len(index)} items")
        return index

    async def iter_watched(
        self,
        user_id: str,
        cutoff: Optional[datetime] = None,
    ) -> AsyncIterator[WatchedRecord]:
        """
        Yield a user's played items, most recently played first.

        Args:
            user_id: Source user ID
            cutoff: Items last played before this are skipped (None = no bound)
        """
        count = 0
        pages = self.iter_pages(user_id, self.watched_params(), to_watched_record, label="Watched")
        try:
            async for page in pages:
                for record in page:
                    if cutoff is not None and record.last_played_at < cutoff:
                        if self.early_exit:
                            logger.info(
                                f"[Watched]::{user_id} reached cutoff {cutoff.isoformat()} "
                                f"after {count} recently played items"
                            )
                            return
                        continue
                    count += 1
                    yield record
        finally:
            await pages.aclose()

        logger.info(f"[Watched]::{user_id} finished with {count} recently played items")
