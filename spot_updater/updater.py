"""
Caller-facing operations of spot-updater.

PlaylistUpdater ties the store, the synchronizer, the main-artist resolver
and the release differ together behind the operations a front end needs
(the CLI in spot_updater.cli, or any other caller holding a user's
credential).

Operations:
    register_user             Store a user after login, sync playlist page 1
    ensure_playlists_page     Make a page of the user's playlist list available
    ensure_tracks_page        Make a page of a playlist's tracks available
    get_playlists_page        Ensure and slice a page of playlists
    get_tracks_page           Ensure and slice a page of tracks
    get_or_resolve_main_artist
                              Resolve the main artist if needed, then list
                              new tracks
    commit_new_tracks         Add tracks to the playlist and move its watermark
    mark_checked              Move the watermark without adding anything
    refresh_playlist          Invalidate tracks and re-read playlist info
    force_invalidate_playlist Invalidate a playlist's tracks
    force_invalidate_user     Invalidate a user's list and all their playlists
    remove_personal_info      Delete a user and everything cached for them

Usage:
    updater = PlaylistUpdater(database, client, config.cache, locks=locks)
    user = updater.register_user(client.current_user())

    result = updater.get_or_resolve_main_artist(playlist_id)
    if result.candidate_tracks:
        updater.commit_new_tracks(
            playlist_id, [t.uri for t in result.candidate_tracks], result.checked_at
        )
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable

from spot_updater.artist.releases import NewReleaseDiffer
from spot_updater.artist.resolver import MainArtistResolver, last_updated_message
from spot_updater.core.config import CacheConfig
from spot_updater.core.database import Database
from spot_updater.core.locking import KeyedLock
from spot_updater.core.logger import get_logger, log_new_releases, log_unresolved_playlist
from spot_updater.core.records import (
    PagedCollectionState,
    PlaylistRecord,
    UserRecord,
    user_collection_key,
)
from spot_updater.spotify.client import PLAYLISTS_PER_REQUEST, TRACKS_PER_REQUEST, SpotifyClient
from spot_updater.spotify.models import NewTrack
from spot_updater.sync.collections import CollectionSync
from spot_updater.sync.synchronizer import CacheSynchronizer, utc_now
from spot_updater.utils import clamp_page, format_length, max_page

logger = get_logger(__name__)


def describe_new_track(new_track: NewTrack) -> str:
    """One-line description of a candidate track: release date, album, title, length."""
    return (
        f"{new_track.album.release_date}  {new_track.album.name} - {new_track.name} "
        f"[{format_length(new_track.duration_ms)}]"
    )


@dataclass(frozen=True)
class PlaylistsPage:
    """One page of a user's playlists."""
    playlists: tuple[PlaylistRecord, ...]
    page: int
    max_page: int
    total: int


@dataclass(frozen=True)
class TracksPage:
    """One page of a playlist's cached tracks (None for unavailable tracks)."""
    playlist: PlaylistRecord
    tracks: tuple[dict[str, Any] | None, ...]
    page: int
    max_page: int
    total: int


@dataclass(frozen=True)
class NewTracksResult:
    """
    Outcome of checking a playlist for new releases.

    Attributes:
        playlist: Playlist snapshot after the check.
        candidate_tracks: Tracks that could be added, oldest release first.
        checked_at: When the catalog was read; pass it back to
                    commit_new_tracks() or mark_checked(). None on rejection.
        rejection_message: Set when no main artist could be identified.
        initial_resolution: True when this call resolved the main artist.
    """
    playlist: PlaylistRecord
    candidate_tracks: tuple[NewTrack, ...] = ()
    checked_at: datetime | None = None
    rejection_message: str | None = None
    initial_resolution: bool = False


class PlaylistUpdater:
    """
    Operations on one user's playlists.

    One instance per authenticated client. Instances working on the same
    database from several threads must share one KeyedLock.
    """

    def __init__(
        self,
        database: Database,
        client: SpotifyClient,
        cache: CacheConfig,
        locks: KeyedLock | None = None,
        clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._database = database
        self._client = client
        self._synchronizer = CacheSynchronizer(database, locks, clock)
        self._collections = CollectionSync(database, client, self._synchronizer, cache)
        self._resolver = MainArtistResolver(
            database, client, self._collections, cache.main_artist_threshold
        )
        self._differ = NewReleaseDiffer(client, self._collections, clock)

    # =========================================================================
    # Users
    # =========================================================================

    def register_user(self, user_info: dict[str, Any]) -> UserRecord:
        """
        Store or update a user after login and load their first playlists.

        Args:
            user_info: The user's profile as returned by Spotify (/me).
        """
        user = UserRecord(id=user_info["id"], info=user_info)
        self._database.save_user(user)
        logger.info(f"Registered user {user.display_name} ({user.id})")
        self.ensure_playlists_page(user.id, 1)
        return user

    def remove_personal_info(self, user_id: str) -> int:
        """
        Delete a user, their playlists and every cache belonging to them.

        Returns:
            Number of playlists removed.
        """
        with self._synchronizer.locks.hold(user_collection_key(user_id)):
            removed = self._database.remove_user(user_id)
        logger.info(f"Removed user {user_id} and {removed} playlist(s)")
        return removed

    # =========================================================================
    # Pages
    # =========================================================================

    def ensure_playlists_page(self, user_id: str, page: int) -> PagedCollectionState:
        return self._collections.ensure_playlists(user_id, page)

    def ensure_tracks_page(self, playlist_id: str, page: int) -> PagedCollectionState:
        return self._collections.ensure_tracks(playlist_id, page)

    def get_playlists_page(self, user_id: str, page: int) -> PlaylistsPage:
        """
        Return page `page` of the user's playlists.

        Page numbers outside [1, last page] are clamped.
        """
        state = self.ensure_playlists_page(user_id, max(page, 1))
        page = clamp_page(page, state.known_total, PLAYLISTS_PER_REQUEST)
        start = (page - 1) * PLAYLISTS_PER_REQUEST
        ids = [item["id"] for item in state.items[start:start + PLAYLISTS_PER_REQUEST] if item]
        return PlaylistsPage(
            playlists=tuple(self._database.load_playlists(ids)),
            page=page,
            max_page=max_page(state.known_total, PLAYLISTS_PER_REQUEST),
            total=state.known_total,
        )

    def get_tracks_page(self, playlist_id: str, page: int) -> TracksPage:
        """
        Return page `page` of a playlist's tracks.

        Page numbers outside [1, last page] are clamped.

        Raises:
            RecordNotFoundError: If the playlist is unknown.
        """
        playlist = self._database.get_playlist(playlist_id)
        state = self.ensure_tracks_page(playlist_id, max(page, 1))
        page = clamp_page(page, state.known_total, TRACKS_PER_REQUEST)
        start = (page - 1) * TRACKS_PER_REQUEST
        return TracksPage(
            playlist=playlist,
            tracks=state.items[start:start + TRACKS_PER_REQUEST],
            page=page,
            max_page=max_page(state.known_total, TRACKS_PER_REQUEST),
            total=state.known_total,
        )

    def all_playlists(self, user_id: str) -> list[PlaylistRecord]:
        """Every playlist of the user, in Spotify's order."""
        state = self.ensure_playlists_page(user_id, -1)
        return self._database.load_playlists([item["id"] for item in state.items if item])

    # =========================================================================
    # New tracks
    # =========================================================================

    def get_or_resolve_main_artist(self, playlist_id: str) -> NewTracksResult:
        """
        Resolve the playlist's main artist if needed and list new tracks.

        When nothing new is found the watermark moves to the check time.

        Raises:
            RecordNotFoundError: If the playlist is unknown.
            SpotifyError: If a request fails. An artist resolved before the
                          failure stays resolved.
        """
        resolution = self._resolver.resolve(playlist_id)
        if not resolution.accepted:
            log_unresolved_playlist(
                logger, resolution.playlist.name, playlist_id, resolution.rejection_message
            )
            return NewTracksResult(
                playlist=resolution.playlist,
                rejection_message=resolution.rejection_message
            )

        diff = self._differ.find_new_tracks(resolution.playlist)
        playlist = resolution.playlist
        if diff.candidates:
            log_new_releases(
                logger, playlist.name, playlist_id,
                (describe_new_track(new_track) for new_track in diff.candidates)
            )
        else:
            logger.info(
                f"No new tracks for playlist '{playlist.name}' "
                f"({diff.albums_checked} newer release(s) checked)"
            )
            playlist = self.mark_checked(playlist_id, diff.checked_at)

        return NewTracksResult(
            playlist=playlist,
            candidate_tracks=diff.candidates,
            checked_at=diff.checked_at,
            initial_resolution=resolution.initial,
        )

    def commit_new_tracks(
        self,
        playlist_id: str,
        track_uris: list[str],
        checked_at: datetime
    ) -> PlaylistRecord:
        """
        Append tracks to the playlist and move its watermark to `checked_at`.

        The playlist is refreshed afterwards even when adding fails, since
        some batches may already have been added.
        """
        self._database.get_playlist(playlist_id)
        try:
            requests_made = self._client.playlist_add_items(playlist_id, track_uris)
            logger.info(f"Added {len(track_uris)} track(s) to {playlist_id} in {requests_made} request(s)")
            self.mark_checked(playlist_id, checked_at)
        finally:
            playlist = self.refresh_playlist(playlist_id)
        return playlist

    def mark_checked(self, playlist_id: str, checked_at: datetime) -> PlaylistRecord:
        """Move the watermark to `checked_at` and update the status line."""
        return self._database.update_playlist(
            playlist_id,
            last_updated_at=checked_at,
            updated_message=last_updated_message(checked_at)
        )

    # =========================================================================
    # Invalidation
    # =========================================================================

    def refresh_playlist(self, playlist_id: str) -> PlaylistRecord:
        """Invalidate the playlist's tracks and re-read its info from Spotify."""
        self._collections.invalidate_tracks(playlist_id)
        info = self._client.playlist(playlist_id)
        return self._database.update_playlist(playlist_id, info=info)

    def force_invalidate_playlist(self, playlist_id: str) -> None:
        self._database.get_playlist(playlist_id)
        self._collections.invalidate_tracks(playlist_id)
        logger.info(f"Invalidated tracks of playlist {playlist_id}")

    def force_invalidate_user(self, user_id: str) -> int:
        """
        Invalidate the user's playlist list and every owned playlist's tracks.

        Returns:
            Number of playlists invalidated.
        """
        count = self._collections.invalidate_user(user_id)
        logger.info(f"Invalidated playlist list of {user_id} and {count} playlist(s)")
        return count
