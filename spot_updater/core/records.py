"""
Persisted record snapshots.

These frozen dataclasses are what the Database repository returns and
accepts. They are plain values: updating a record means building a new one
with dataclasses.replace() and saving it.

Records:
    PagedCollectionState - Cached prefix of a remote paginated collection
    UserRecord           - A Spotify user and its public profile snapshot
    PlaylistRecord       - A playlist, its main-artist state and watermark
    ArtistRecord         - Shared main-artist info snapshot

Collection keys:
    A user's playlist list is cached under user_collection_key(user_id),
    a playlist's track list under playlist_collection_key(playlist_id).
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any


EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

MESSAGE_LAST_UPDATED_PREFIX = "Last Updated:"
MESSAGE_NEVER_UPDATED = "Never Updated"

# Sentinel for "remote total unknown, hard refresh on next access"
UNKNOWN_TOTAL = -1


def user_collection_key(user_id: str) -> str:
    return f"user:{user_id}"


def playlist_collection_key(playlist_id: str) -> str:
    return f"playlist:{playlist_id}"


@dataclass(frozen=True)
class PagedCollectionState:
    """
    Locally cached prefix of a remote paginated collection.

    Attributes:
        key: Collection key (see user_collection_key/playlist_collection_key).
        items: Cached items in remote order. For a user's playlist list each
               item is {"id": playlist_id}; for a playlist's track list each
               item is the Spotify track object (or None for tracks Spotify
               no longer returns).
        known_total: Remote-reported total. UNKNOWN_TOTAL (-1) forces a
                     hard refresh on next access.
        last_refreshed_at: Time of the last hard refresh, not of the last
                           incremental append.
    """
    key: str
    items: tuple[Any, ...] = ()
    known_total: int = UNKNOWN_TOTAL
    last_refreshed_at: datetime = EPOCH

    @property
    def cached_size(self) -> int:
        return len(self.items)


@dataclass(frozen=True)
class UserRecord:
    """
    A Spotify user known to the store.

    The user's playlist list is cached separately, under
    user_collection_key(id); it holds playlist ids only, the playlist
    bodies live in PlaylistRecord.
    """
    id: str
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def display_name(self) -> str:
        return self.info.get("display_name") or self.id


@dataclass(frozen=True)
class PlaylistRecord:
    """
    A playlist belonging to a user.

    Attributes:
        id: Spotify playlist ID.
        user_id: Owning user (the user whose playlist list observed it).
        info: Simplified playlist object from the last sync (name, images,
              tracks.total, uri, ...).
        main_artist_id: Resolved main artist, or None while unresolved.
        various_artists: Sticky flag; once True the resolver is never run
                         again for this playlist.
        last_updated_at: Watermark: the newest release date already
                         incorporated into the playlist.
        updated_message: Human-readable status line.
    """
    id: str
    user_id: str
    info: dict[str, Any] = field(default_factory=dict)
    main_artist_id: str | None = None
    various_artists: bool = False
    last_updated_at: datetime = EPOCH
    updated_message: str = MESSAGE_NEVER_UPDATED

    @property
    def name(self) -> str:
        return self.info.get("name", "")

    @property
    def track_total(self) -> int:
        """Track count reported by Spotify when `info` was captured."""
        tracks = self.info.get("tracks") or {}
        return int(tracks.get("total", 0))

    @property
    def is_resolved(self) -> bool:
        return self.main_artist_id is not None and not self.various_artists


@dataclass(frozen=True)
class ArtistRecord:
    """Shared snapshot of an artist resolved as some playlist's main artist."""
    id: str
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.info.get("name", "")
