"""
Incremental synchronizer for cached paginated collections.

CacheSynchronizer keeps the locally stored prefix of a remote paginated
collection (a user's playlist list, a playlist's track list) large enough
to serve a requested page, fetching only the pages that are missing.

Algorithm (ensure_page):
    1. Hard refresh when the total is unknown or the collection expired:
       drop every cached item and start again from offset 0.
    2. Otherwise return right away if the cache already covers the page
       (see is_page_sufficient).
    3. Re-read the first page when at most one page is cached; its `total`
       becomes the known total and items it holds that are not cached yet
       are appended (items are deduplicated by id). Then fetch each
       missing page in order up to the requested one (or to the end for
       page <= 0).
    4. Every fetched page is written before the next request is made, so a
       failure mid-way leaves the earlier pages cached and the next call
       resumes at the first missing page.

The synchronizer knows nothing about playlists or tracks: callers pass the
fetch function, the item converter and, when they need to react to newly
seen items, an on_append callback (see spot_updater.sync.collections).

Concurrency:
    The whole sequence runs under the collection key's lock from
    spot_updater.core.locking, so two requests for the same collection
    never append the same page twice.
"""

import math
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Sequence

from spot_updater.core.database import Database
from spot_updater.core.locking import KeyedLock
from spot_updater.core.logger import get_logger
from spot_updater.core.records import UNKNOWN_TOTAL, PagedCollectionState
from spot_updater.spotify.models import Page

logger = get_logger(__name__)


# Upper page bound used when every page is requested
ALL_PAGES_SENTINEL = 1000000

FetchPage = Callable[[int, int], Page]
ToItem = Callable[[Any], tuple[str | None, Any]]
OnAppend = Callable[[Sequence[Any]], None]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def is_expired(state: PagedCollectionState, expiry: timedelta, now: datetime) -> bool:
    """Whether the next access to `state` must be a hard refresh."""
    return state.known_total < 0 or state.last_refreshed_at + expiry <= now


def is_page_sufficient(cached_size: int, known_total: int, page: int, page_size: int) -> bool:
    """
    Whether a cache of `cached_size` items already serves `page`.

    Args:
        cached_size: Number of items cached.
        known_total: Remote-reported total (>= 0).
        page: 1-indexed page number, or <= 0 for "every page".
        page_size: Items per page.

    Rules:
        - Every page: the cache must hold the whole collection.
        - A single page: a complete cache serves any page, including pages
          past the end. Otherwise the cache must reach into the page and
          either cover all of it, or the page must be the last one of the
          collection.
        - An empty remote collection is always served.
    """
    if page <= 0:
        return known_total <= cached_size

    if known_total > 0:
        if cached_size >= known_total:
            return True
        if cached_size <= (page - 1) * page_size:
            return False
        if cached_size < known_total:
            return cached_size >= page * page_size or (page + 1) * page_size > known_total
        return True

    return True


class CacheSynchronizer:
    """
    Brings cached collections up to a requested page.

    Attributes:
        _database: Store holding the collections.
        _locks: Per-collection-key locks; share one KeyedLock between every
                synchronizer working on the same database.
        _clock: Returns the current aware UTC time.
    """

    def __init__(
        self,
        database: Database,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._database = database
        self._locks = locks if locks is not None else KeyedLock()
        self._clock = clock

    @property
    def locks(self) -> KeyedLock:
        return self._locks

    def ensure_page(
        self,
        key: str,
        page: int,
        page_size: int,
        expiry: timedelta,
        fetch_page: FetchPage,
        to_item: ToItem,
        on_append: OnAppend | None = None
    ) -> PagedCollectionState:
        """
        Make sure page `page` of collection `key` is cached.

        Args:
            key: Collection key.
            page: 1-indexed page to make available; <= 0 means every page.
            page_size: Items per remote request.
            expiry: Age after which the collection is hard-refreshed.
            fetch_page: fetch_page(offset, limit) -> Page, one remote request.
            to_item: Converts a remote item to the (item_id, data) pair to
                     store.
            on_append: Called with the raw items of every fetched page after
                       they are committed.

        Returns:
            The collection as stored after synchronization.

        Raises:
            SpotifyError: If a fetch fails. Pages fetched before the failure
                          stay cached.
            DatabaseError: If the store fails.
        """
        with self._locks.hold(key):
            state = self._database.load_collection(key)
            now = self._clock()

            if is_expired(state, expiry, now):
                logger.info(f"Hard refresh of {key} (known total {state.known_total})")
                # Persisted as unknown until the first page lands, so a failed
                # first fetch is retried instead of read as an empty collection
                self._database.reset_collection(key, known_total=UNKNOWN_TOTAL, last_refreshed_at=now)
                state = PagedCollectionState(key=key, known_total=0, last_refreshed_at=now)
            elif is_page_sufficient(state.cached_size, state.known_total, page, page_size):
                logger.debug(f"{key}: page {page} already cached ({state.cached_size}/{state.known_total})")
                return state

            cached_size = state.cached_size
            known_total = state.known_total
            last_page = math.ceil(cached_size / page_size)

            if last_page <= 1:
                first = self._fetch(key, fetch_page, 0, page_size)
                known_total = first.total
                self._database.set_collection_total(key, known_total)
                self._commit(key, 0, first, to_item, on_append)
                last_page = 1

            upper = min(
                page if page > 0 else ALL_PAGES_SENTINEL,
                math.ceil(known_total / page_size)
            )
            for page_index in range(last_page, upper):
                fetched = self._fetch(key, fetch_page, page_index * page_size, page_size)
                self._commit(key, page_index * page_size, fetched, to_item, on_append)

            return self._database.load_collection(key)

    def _fetch(self, key: str, fetch_page: FetchPage, offset: int, limit: int) -> Page:
        logger.debug(f"{key}: fetching offset {offset} (limit {limit})")
        return fetch_page(offset, limit)

    def _commit(
        self,
        key: str,
        offset: int,
        page: Page,
        to_item: ToItem,
        on_append: OnAppend | None
    ) -> None:
        if not page.items:
            return
        written = self._database.append_collection_items(key, (to_item(item) for item in page.items))
        logger.info(f"{key}: cached {written} item(s) at offset {offset}")
        if on_append is not None:
            on_append(page.items)
