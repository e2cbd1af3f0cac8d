"""
Main-artist resolution.

A playlist is "about" one artist when that artist is credited on enough of
its tracks. The resolver looks only at the tracks already cached (normally
the first page) and decides:

    1. An artist whose name equals the playlist name (case-insensitive) is
       the candidate, however often another artist appears.
    2. Otherwise the most credited artist is the candidate.
    3. The candidate is accepted when credited on at least
       `threshold` of the cached tracks.

Accepting stores the artist, loads the rest of the playlist and sets the
watermark to the newest release date found on it. Rejecting marks the
playlist as Various Artists for good and stores the reason as its status.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Iterable, Sequence

from spot_updater.core.database import Database
from spot_updater.core.logger import get_logger
from spot_updater.core.records import (
    MESSAGE_LAST_UPDATED_PREFIX,
    ArtistRecord,
    PlaylistRecord,
    playlist_collection_key,
)
from spot_updater.spotify.client import SpotifyClient
from spot_updater.spotify.models import ReleaseDate
from spot_updater.sync.collections import CollectionSync
from spot_updater.utils import date_string

logger = get_logger(__name__)


MESSAGE_CANNOT_IDENTIFY = "Could not identify main artist. Unable to find new tracks."
MESSAGE_MULTIPLE_ARTISTS = (
    "Playlist appears to contain multiple artists. "
    "Please ensure there are enough tracks by the desired artist."
)
MESSAGE_NO_ARTISTS = (
    "Unable to identify main artist. "
    "Please ensure the playlist already contains tracks by the desired artist."
)


def insufficient_frequency_message(threshold: float) -> str:
    return (
        f"Main artist does not appear in at least {threshold * 100:g}% of the tracks. "
        "Unable to properly identify."
    )


@dataclass(frozen=True)
class ArtistTally:
    """How often one artist is credited across the cached tracks."""
    info: dict[str, Any]
    count: int


@dataclass(frozen=True)
class Resolution:
    """
    Outcome of resolving a playlist's main artist.

    Attributes:
        playlist: Playlist snapshot after resolution.
        artist: The main artist, when known.
        rejection_message: Why no main artist could be identified; None
                           when resolved.
        initial: True only on the call that resolved the artist.
    """
    playlist: PlaylistRecord
    artist: ArtistRecord | None = None
    rejection_message: str | None = None
    initial: bool = False

    @property
    def accepted(self) -> bool:
        return self.rejection_message is None


def tally_artists(tracks: Iterable[dict[str, Any]]) -> dict[str, ArtistTally]:
    """Count artist credits per artist id, in first-seen order."""
    tallies: dict[str, ArtistTally] = {}
    for track in tracks:
        for artist in track.get("artists") or ():
            artist_id = artist.get("id")
            if not artist_id:
                continue
            previous = tallies.get(artist_id)
            tallies[artist_id] = ArtistTally(
                info=previous.info if previous else artist,
                count=previous.count + 1 if previous else 1,
            )
    return tallies


def choose_main_artist(
    tracks: Sequence[dict[str, Any]],
    playlist_name: str,
    threshold: float
) -> tuple[str | None, str | None]:
    """
    Pick the main artist of a set of tracks.

    Returns:
        (artist_id, None) when accepted, (None, rejection_message) otherwise.
    """
    tallies = tally_artists(tracks)
    if not tallies:
        return None, MESSAGE_NO_ARTISTS

    required = threshold * len(tracks)
    wanted_name = playlist_name.casefold()
    name_match: str | None = None
    # the last credit whose name matches wins
    for track in tracks:
        for artist in track.get("artists") or ():
            if artist.get("id") in tallies and (artist.get("name") or "").casefold() == wanted_name:
                name_match = artist["id"]

    if name_match is not None:
        if tallies[name_match].count >= required:
            return name_match, None
        return None, insufficient_frequency_message(threshold)

    # max() keeps the first of equal counts
    artist_id, tally = max(tallies.items(), key=lambda entry: entry[1].count)
    if tally.count >= required:
        return artist_id, None
    return None, MESSAGE_MULTIPLE_ARTISTS


def latest_release(tracks: Iterable[dict[str, Any] | None]) -> datetime | None:
    """
    Start of the newest album release date among `tracks`.

    Local files and tracks without a parsable release date are skipped.
    """
    latest: datetime | None = None
    for track in tracks:
        if not track or track.get("is_local"):
            continue
        release_date = ReleaseDate.parse((track.get("album") or {}).get("release_date"))
        if release_date is None:
            continue
        start = release_date.start()
        if latest is None or start > latest:
            latest = start
    return latest


def last_updated_message(moment: datetime) -> str:
    return f"{MESSAGE_LAST_UPDATED_PREFIX} {date_string(moment)}"


class MainArtistResolver:
    """
    Resolves and persists playlists' main artists.

    The playlist's lock is held for the whole resolution, so concurrent
    checks of the same playlist resolve it once.
    """

    def __init__(
        self,
        database: Database,
        client: SpotifyClient,
        collections: CollectionSync,
        threshold: float = 0.75
    ) -> None:
        self._database = database
        self._client = client
        self._collections = collections
        self._threshold = threshold

    def resolve(self, playlist_id: str) -> Resolution:
        """
        Return the playlist's main artist, resolving it on first use.

        Raises:
            RecordNotFoundError: If the playlist is not in the store.
            SpotifyError: If a request fails. A failure before the artist is
                          accepted leaves the playlist unresolved.
        """
        with self._collections.locks.hold(playlist_collection_key(playlist_id)):
            playlist = self._database.get_playlist(playlist_id)

            if playlist.various_artists:
                return Resolution(playlist=playlist, rejection_message=MESSAGE_CANNOT_IDENTIFY)

            if playlist.main_artist_id:
                return Resolution(
                    playlist=playlist,
                    artist=self._database.load_artist(playlist.main_artist_id)
                )

            state = self._collections.ensure_tracks(playlist_id, 1)
            tracks = [track for track in state.items if track]
            artist_id, rejection = choose_main_artist(tracks, playlist.name, self._threshold)

            if artist_id is None:
                logger.debug(f"No main artist for playlist '{playlist.name}': {rejection}")
                playlist = self._database.update_playlist(
                    playlist_id,
                    various_artists=True,
                    updated_message=rejection
                )
                return Resolution(playlist=playlist, rejection_message=rejection)

            artist = ArtistRecord(id=artist_id, info=self._client.artist(artist_id))
            self._database.save_artist(artist)
            logger.info(f"Main artist of playlist '{playlist.name}' is {artist.name} ({artist_id})")

            state = self._collections.ensure_tracks(playlist_id, -1)
            watermark = playlist.last_updated_at
            newest = latest_release(state.items)
            if newest is not None and newest > watermark:
                watermark = newest

            playlist = self._database.update_playlist(
                playlist_id,
                main_artist_id=artist_id,
                last_updated_at=watermark,
                updated_message=last_updated_message(watermark)
            )
            return Resolution(playlist=playlist, artist=artist, initial=True)
