"""
New-release detection for a playlist's main artist.

Finds the tracks of the main artist's albums and singles released since the
playlist's watermark that the playlist does not contain yet.

Steps:
    1. Page through the artist's albums and singles.
    2. Fetch the full albums, 20 per request.
    3. Sort them by release date, singles first on equal dates.
    4. Keep the ones released after the watermark (see ReleaseDate.is_after).
    5. Expand each kept album to its whole track listing.
    6. Load the whole playlist and drop the tracks it already has.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Iterable

from spot_updater.core.logger import get_logger
from spot_updater.core.records import PlaylistRecord
from spot_updater.spotify.client import ARTIST_ALBUM_GROUPS, SpotifyClient
from spot_updater.spotify.models import Album, NewTrack
from spot_updater.sync.collections import CollectionSync
from spot_updater.sync.synchronizer import utc_now

logger = get_logger(__name__)


@dataclass(frozen=True)
class ReleaseDiff:
    """
    New tracks found for a playlist.

    Attributes:
        candidates: Tracks missing from the playlist, oldest release first.
        checked_at: When the check started; the next watermark.
        albums_checked: Number of releases newer than the old watermark.
    """
    candidates: tuple[NewTrack, ...]
    checked_at: datetime
    albums_checked: int = 0


def sort_releases(albums: Iterable[Album]) -> list[Album]:
    """Order albums by release date; singles come before albums of the same date."""
    return sorted(albums, key=lambda album: album.release_sort_key)


def releases_after(albums: Iterable[Album], watermark: datetime) -> list[Album]:
    """Keep albums released after `watermark`; undated albums are dropped."""
    return [
        album for album in albums
        if album.release_date is not None and album.release_date.is_after(watermark)
    ]


class NewReleaseDiffer:
    """Compares an artist's catalog with a playlist's cached tracks."""

    def __init__(
        self,
        client: SpotifyClient,
        collections: CollectionSync,
        clock: Callable[[], datetime] = utc_now
    ) -> None:
        self._client = client
        self._collections = collections
        self._clock = clock

    def find_new_tracks(self, playlist: PlaylistRecord) -> ReleaseDiff:
        """
        Find the main artist's tracks released after the playlist's watermark.

        Args:
            playlist: A playlist with a resolved main artist.

        Raises:
            ValueError: If the playlist has no main artist.
            SpotifyError: If a request fails.
        """
        if not playlist.is_resolved:
            raise ValueError(f"Playlist {playlist.id} has no main artist")

        checked_at = self._clock()
        album_ids = self.artist_album_ids(playlist.main_artist_id)
        albums = sort_releases(
            Album.from_spotify_api(data) for data in self._client.albums(album_ids)
        )
        newer = releases_after(albums, playlist.last_updated_at)
        logger.info(
            f"Playlist '{playlist.name}': {len(albums)} release(s) in catalog, "
            f"{len(newer)} since {playlist.last_updated_at:%Y-%m-%d}"
        )

        released: list[NewTrack] = []
        for album in newer:
            released.extend(NewTrack(track=track, album=album) for track in self.album_tracks(album))

        state = self._collections.ensure_tracks(playlist.id, -1)
        known_ids = {track.get("id") for track in state.items if track}

        candidates: list[NewTrack] = []
        seen: set[str] = set()
        for new_track in released:
            if new_track.id in known_ids or new_track.id in seen:
                continue
            if new_track.id:
                seen.add(new_track.id)
            candidates.append(new_track)

        logger.info(f"Playlist '{playlist.name}': {len(candidates)} new track(s)")
        return ReleaseDiff(candidates=tuple(candidates), checked_at=checked_at, albums_checked=len(newer))

    def artist_album_ids(self, artist_id: str) -> list[str]:
        """Every album and single id of an artist, following the cursor to the end."""
        page = self._client.artist_albums(artist_id, include_groups=ARTIST_ALBUM_GROUPS)
        album_ids = [album["id"] for album in page.items if album]
        while page.next:
            page = self._client.next_page(page.next)
            album_ids.extend(album["id"] for album in page.items if album)
        return album_ids

    def album_tracks(self, album: Album) -> list[dict[str, Any]]:
        """The whole track listing of an album, starting from its embedded first page."""
        tracks = [track for track in album.tracks.items if track]
        next_url = album.tracks.next
        while next_url:
            page = self._client.next_page(next_url)
            tracks.extend(track for track in page.items if track)
            next_url = page.next
        return tracks
