"""
Spotify Web API client for spot-updater.

This module wraps the spotipy library behind the small set of calls the
updater needs, and converts every spotipy/requests failure into a
SpotifyError.

Contract:
    - Every method issues exactly the requests it describes. Paging is done
      by the caller (the synchronizer decides which offsets it needs); the
      only loops here are the fixed-size batch splits imposed by the API.
    - Failures are never retried here beyond what spotipy is configured to
      do (HTTP settings from config.yaml). A non-2xx status or transport
      error surfaces as SpotifyError; 401 sets is_auth_error.

Authentication:
    The client is handed a ready credential: either an access token
    obtained elsewhere, or a spotipy auth manager (the CLI uses
    SpotifyOAuth, whose token cache and refresh are handled by spotipy).

Usage:
    client = SpotifyClient.from_access_token(token, config.http)

    page = client.current_user_playlists(limit=PLAYLISTS_PER_REQUEST, offset=0)
    print(page.total)
"""

from typing import Any, Callable, TypeVar

import requests
import spotipy

from spot_updater.core.config import HttpConfig
from spot_updater.core.exceptions import SpotifyError
from spot_updater.core.logger import get_logger
from spot_updater.spotify.models import Page
from spot_updater.utils import batches

logger = get_logger(__name__)

T = TypeVar("T")


# Limits imposed by the Spotify Web API
PLAYLISTS_PER_REQUEST = 50
TRACKS_PER_REQUEST = 100
ALBUMS_PER_REQUEST = 20
TRACKS_TO_ADD_PER_REQUEST = 100
ARTIST_ALBUMS_PER_REQUEST = 50

ARTIST_ALBUM_GROUPS = "album,single"


class SpotifyClient:
    """
    Thin Spotify Web API client.

    One instance per authenticated user. Instances hold no cache and no
    per-request state, so they can be shared between threads as far as
    spotipy's session allows.

    Attributes:
        _spotify: The underlying spotipy.Spotify instance.
    """

    def __init__(self, spotify_instance: spotipy.Spotify) -> None:
        self._spotify = spotify_instance

    @classmethod
    def from_access_token(cls, access_token: str, http: HttpConfig | None = None) -> "SpotifyClient":
        """
        Build a client around a pre-validated OAuth access token.

        Raises:
            SpotifyError: If the token is empty (is_auth_error=True).
        """
        if not access_token:
            raise SpotifyError("No Spotify access token available", is_auth_error=True)
        http = http or HttpConfig()
        return cls(spotipy.Spotify(
            auth=access_token,
            requests_timeout=http.timeout,
            retries=http.retries,
        ))

    @classmethod
    def from_auth_manager(cls, auth_manager: Any, http: HttpConfig | None = None) -> "SpotifyClient":
        """Build a client whose token is obtained and refreshed by a spotipy auth manager."""
        http = http or HttpConfig()
        return cls(spotipy.Spotify(
            auth_manager=auth_manager,
            requests_timeout=http.timeout,
            retries=http.retries,
        ))

    def _call(
        self,
        description: str,
        details: dict[str, Any],
        func: Callable[..., T],
        *args: Any,
        **kwargs: Any
    ) -> T:
        """
        Run one spotipy call and translate its failures.

        Raises:
            SpotifyError: On any SpotifyException or requests failure, or
                          when Spotify returns an empty body.
        """
        try:
            result = func(*args, **kwargs)
        except spotipy.SpotifyException as e:
            status = e.http_status
            if status == 429:
                raise SpotifyError(
                    f"Rate limited while trying to {description}",
                    details={**details, "http_status": 429},
                    is_rate_limit=True
                ) from e
            if status == 401:
                raise SpotifyError(
                    f"Spotify rejected the access token while trying to {description}",
                    details={**details, "http_status": 401},
                    is_auth_error=True
                ) from e
            raise SpotifyError(
                f"Failed to {description}: {e.msg}",
                details={**details, "http_status": status, "original_error": str(e)}
            ) from e
        except requests.exceptions.RequestException as e:
            raise SpotifyError(
                f"Network error while trying to {description}: {e}",
                details={**details, "original_error": str(e)}
            ) from e

        if result is None:
            raise SpotifyError(
                f"Empty response while trying to {description}",
                details=details
            )
        return result

    # =========================================================================
    # User
    # =========================================================================

    def current_user(self) -> dict[str, Any]:
        """Get the authenticated user's profile."""
        return self._call("fetch the current user", {}, self._spotify.current_user)

    def current_user_playlists(
        self,
        limit: int = PLAYLISTS_PER_REQUEST,
        offset: int = 0
    ) -> Page:
        """
        Get one page of the authenticated user's playlists.

        Args:
            limit: Page size (max 50).
            offset: Index of the first playlist to return.

        Returns:
            Page of simplified playlist objects; `total` is the size of the
            whole list.
        """
        data = self._call(
            "fetch playlists",
            {"offset": offset, "limit": limit},
            self._spotify.current_user_playlists,
            limit=min(limit, PLAYLISTS_PER_REQUEST),
            offset=offset
        )
        return Page.from_spotify_api(data)

    # =========================================================================
    # Playlists
    # =========================================================================

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        """
        Get a playlist's metadata.

        Only the fields of a simplified playlist object are requested; the
        track listing is fetched page by page through playlist_items().
        """
        return self._call(
            "fetch playlist",
            {"playlist_id": playlist_id},
            self._spotify.playlist,
            playlist_id,
            fields="id,name,description,owner,images,external_urls,tracks.total,uri,snapshot_id"
        )

    def playlist_items(
        self,
        playlist_id: str,
        limit: int = TRACKS_PER_REQUEST,
        offset: int = 0
    ) -> Page:
        """
        Get one page of a playlist's items.

        Returns:
            Page of playlist track objects ({"added_at", "track", ...}).
        """
        data = self._call(
            "fetch playlist items",
            {"playlist_id": playlist_id, "offset": offset, "limit": limit},
            self._spotify.playlist_items,
            playlist_id,
            limit=min(limit, TRACKS_PER_REQUEST),
            offset=offset,
            additional_types=("track",)
        )
        return Page.from_spotify_api(data)

    def playlist_add_items(self, playlist_id: str, uris: list[str]) -> int:
        """
        Append tracks to a playlist.

        Args:
            playlist_id: Target playlist.
            uris: Track URIs, any number; sent 100 per request.

        Returns:
            Number of requests made.

        Note:
            Batches are sent in order; if one fails the earlier ones stay
            added and the error propagates.
        """
        requests_made = 0
        for i, batch in batches(uris, TRACKS_TO_ADD_PER_REQUEST):
            self._call(
                "add tracks to playlist",
                {"playlist_id": playlist_id, "batch_start": i, "batch_size": len(batch)},
                self._spotify.playlist_add_items,
                playlist_id,
                batch
            )
            requests_made += 1
        return requests_made

    # =========================================================================
    # Artists and albums
    # =========================================================================

    def artist(self, artist_id: str) -> dict[str, Any]:
        """Get a full artist object (images, genres, followers)."""
        return self._call(
            "fetch artist",
            {"artist_id": artist_id},
            self._spotify.artist,
            artist_id
        )

    def artist_albums(
        self,
        artist_id: str,
        include_groups: str = ARTIST_ALBUM_GROUPS,
        limit: int = ARTIST_ALBUMS_PER_REQUEST,
        offset: int = 0
    ) -> Page:
        """
        Get one page of an artist's releases.

        Args:
            include_groups: Comma-separated album groups; the updater asks
                            for albums and singles only.
        """
        data = self._call(
            "fetch artist albums",
            {"artist_id": artist_id, "offset": offset},
            self._spotify.artist_albums,
            artist_id,
            include_groups=include_groups,
            limit=min(limit, ARTIST_ALBUMS_PER_REQUEST),
            offset=offset
        )
        return Page.from_spotify_api(data)

    def albums(self, album_ids: list[str]) -> list[dict[str, Any]]:
        """
        Get full album objects, 20 per request (Spotify API limit).

        Returns:
            Album objects in input order. Albums Spotify could not return
            are left out.
        """
        results: list[dict[str, Any]] = []
        for i, batch in batches(album_ids, ALBUMS_PER_REQUEST):
            response = self._call(
                "fetch albums batch",
                {"batch_start": i, "batch_size": len(batch)},
                self._spotify.albums,
                batch
            )
            results.extend(album for album in response.get("albums", []) if album)
        return results

    def next_page(self, next_url: str) -> Page:
        """Follow a paging object's `next` URL."""
        data = self._call(
            "fetch next page",
            {"url": next_url},
            self._spotify.next,
            {"next": next_url}
        )
        return Page.from_spotify_api(data)
