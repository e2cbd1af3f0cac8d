"""
Playlist-list and track-list synchronization.

The two kinds of cached collection the updater keeps:

    user:<id>       The user's playlists, 50 per request, 1 day expiry.
                    Items are {"id": playlist_id}; the playlist bodies are
                    stored as PlaylistRecord rows.
    playlist:<id>   A playlist's tracks, 100 per request, 7 day expiry.
                    Items are the Spotify track objects.

Reconciliation:
    Every playlist seen while syncing a user's list is created or has its
    info snapshot refreshed. When Spotify reports a track count that does
    not match the cached track list's known total, the track list is
    invalidated so its next access is a hard refresh.

Lock order:
    A user's key is always taken before any of its playlists' keys.
"""

from typing import Any, Sequence

from spot_updater.core.config import CacheConfig
from spot_updater.core.database import Database
from spot_updater.core.locking import KeyedLock
from spot_updater.core.logger import get_logger
from spot_updater.core.records import (
    UNKNOWN_TOTAL,
    PagedCollectionState,
    PlaylistRecord,
    playlist_collection_key,
    user_collection_key,
)
from spot_updater.spotify.client import (
    PLAYLISTS_PER_REQUEST,
    TRACKS_PER_REQUEST,
    SpotifyClient,
)
from spot_updater.sync.synchronizer import CacheSynchronizer

logger = get_logger(__name__)


def playlist_item(raw: dict[str, Any]) -> tuple[str, dict[str, str]]:
    """Store only the id of a listed playlist; the body lives in its record."""
    return raw["id"], {"id": raw["id"]}


def track_item(raw: dict[str, Any] | None) -> tuple[str | None, dict[str, Any] | None]:
    """
    Unwrap a playlist track object to the track itself.

    Tracks Spotify no longer serves come back as {"track": None}; they keep
    a place in the cache with no data.
    """
    track = raw.get("track") if raw else None
    if not track:
        return None, None
    return track.get("id"), track


class CollectionSync:
    """
    Synchronizes one user's playlist list and track lists.

    Attributes:
        _database: Shared store.
        _client: Spotify client authenticated as the user.
        _synchronizer: Generic synchronizer (owns the per-key locks).
        _cache: Expiry settings.
    """

    def __init__(
        self,
        database: Database,
        client: SpotifyClient,
        synchronizer: CacheSynchronizer,
        cache: CacheConfig
    ) -> None:
        self._database = database
        self._client = client
        self._synchronizer = synchronizer
        self._cache = cache

    def ensure_playlists(self, user_id: str, page: int) -> PagedCollectionState:
        """Make page `page` (<= 0: all) of the user's playlist list available."""
        return self._synchronizer.ensure_page(
            user_collection_key(user_id),
            page,
            PLAYLISTS_PER_REQUEST,
            self._cache.playlists_expiry,
            fetch_page=lambda offset, limit: self._client.current_user_playlists(limit=limit, offset=offset),
            to_item=playlist_item,
            on_append=lambda items: self.reconcile_playlists(user_id, items),
        )

    def ensure_tracks(self, playlist_id: str, page: int) -> PagedCollectionState:
        """Make page `page` (<= 0: all) of the playlist's tracks available."""
        return self._synchronizer.ensure_page(
            playlist_collection_key(playlist_id),
            page,
            TRACKS_PER_REQUEST,
            self._cache.tracks_expiry,
            fetch_page=lambda offset, limit: self._client.playlist_items(playlist_id, limit=limit, offset=offset),
            to_item=track_item,
        )

    @property
    def locks(self) -> KeyedLock:
        return self._synchronizer.locks

    def reconcile_playlists(self, user_id: str, playlists: Sequence[dict[str, Any]]) -> None:
        """
        Create or refresh the records of playlists observed in the user's list.

        New playlists start with an unknown track list and "Never Updated".
        Existing ones get their info snapshot replaced; main-artist state and
        watermark are left alone.
        """
        for info in playlists:
            if not info or not info.get("id"):
                continue
            playlist_id = info["id"]
            remote_total = int((info.get("tracks") or {}).get("total", 0))

            existing = self._database.load_playlist(playlist_id)
            if existing is None:
                logger.debug(f"New playlist {playlist_id} ({info.get('name', '')})")
                self._database.save_playlist(PlaylistRecord(id=playlist_id, user_id=user_id, info=info))
                self.invalidate_tracks(playlist_id)
                continue

            self._database.update_playlist(playlist_id, info=info)
            known_total = self._database.collection_total(playlist_collection_key(playlist_id))
            if known_total < 0:
                self.invalidate_tracks(playlist_id)
            elif known_total != remote_total:
                logger.info(
                    f"Track count of playlist {playlist_id} changed "
                    f"({known_total} -> {remote_total}), invalidating its tracks"
                )
                self.invalidate_tracks(playlist_id)

    def invalidate_tracks(self, playlist_id: str) -> None:
        """Drop a playlist's cached tracks; the next access hard-refreshes them."""
        key = playlist_collection_key(playlist_id)
        with self._synchronizer.locks.hold(key):
            self._database.reset_collection(key)

    def invalidate_user(self, user_id: str) -> int:
        """
        Drop a user's playlist list and the track lists of every playlist
        the user owns.

        Returns:
            Number of playlists whose tracks were invalidated.
        """
        key = user_collection_key(user_id)
        with self._synchronizer.locks.hold(key):
            self._database.reset_collection(key, known_total=UNKNOWN_TOTAL)
            playlists = self._database.load_user_playlists(user_id)
            for playlist in playlists:
                self.invalidate_tracks(playlist.id)
        return len(playlists)
