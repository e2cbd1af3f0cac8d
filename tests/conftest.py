"""Test configuration and fixtures"""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from spot_updater.core.config import CacheConfig
from spot_updater.core.database import Database
from spot_updater.core.locking import KeyedLock
from spot_updater.core.records import PlaylistRecord
from spot_updater.spotify.models import Page
from spot_updater.updater import PlaylistUpdater


START_TIME = datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc)


def make_artist(artist_id: str, name: str | None = None) -> dict[str, Any]:
    return {"id": artist_id, "name": name or artist_id.title(), "type": "artist"}


def make_track(
    track_id: str,
    artists: list[dict[str, Any]],
    release_date: str | None = "2020-01-01",
    is_local: bool = False,
    duration_ms: int = 180000
) -> dict[str, Any]:
    album = {"id": f"album_{track_id}", "name": f"Album of {track_id}"}
    if release_date is not None:
        album["release_date"] = release_date
    return {
        "id": None if is_local else track_id,
        "name": f"Track {track_id}",
        "uri": f"spotify:track:{track_id}",
        "artists": artists,
        "album": album,
        "duration_ms": duration_ms,
        "is_local": is_local,
    }


class FakeClock:
    """Controllable replacement for the synchronizer's clock"""

    def __init__(self, now: datetime = START_TIME) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


class FakeSpotify:
    """
    In-memory stand-in for SpotifyClient.

    Serves paginated data the way the Web API does and records every call
    as a tuple in `calls`. Put an exception in `failures` under a call tuple
    to make that call raise once.
    """

    def __init__(self, user_id: str = "user1") -> None:
        self.user = {"id": user_id, "display_name": "Test User"}
        self.playlists: list[dict[str, Any]] = []
        self.playlist_tracks: dict[str, list[dict[str, Any] | None]] = {}
        self.artists: dict[str, dict[str, Any]] = {}
        self.artist_albums_by_id: dict[str, list[str]] = {}
        self.album_data: dict[str, dict[str, Any]] = {}
        self.album_track_lists: dict[str, list[dict[str, Any]]] = {}
        self.album_tracks_page_size = 50
        self.artist_albums_page_size = 50
        self.added: list[tuple[str, list[str]]] = []
        self.calls: list[tuple] = []
        self.failures: dict[tuple, Exception] = {}

    # -- setup helpers --------------------------------------------------------

    def add_playlist(self, playlist_id: str, name: str, tracks: list[dict[str, Any] | None]) -> None:
        self.playlists.append({"id": playlist_id, "name": name, "tracks": {"total": len(tracks)}})
        self.playlist_tracks[playlist_id] = list(tracks)

    def set_playlist_tracks(self, playlist_id: str, tracks: list[dict[str, Any] | None]) -> None:
        self.playlist_tracks[playlist_id] = list(tracks)
        for info in self.playlists:
            if info["id"] == playlist_id:
                info["tracks"] = {"total": len(tracks)}

    def add_album(
        self,
        album_id: str,
        artist_id: str,
        release_date: str,
        track_ids: list[str],
        album_type: str = "album"
    ) -> None:
        artist = self.artists.get(artist_id) or make_artist(artist_id)
        self.artists.setdefault(artist_id, artist)
        self.artist_albums_by_id.setdefault(artist_id, []).append(album_id)
        self.album_data[album_id] = {
            "id": album_id,
            "name": f"Album {album_id}",
            "album_type": album_type,
            "release_date": release_date,
            "uri": f"spotify:album:{album_id}",
        }
        self.album_track_lists[album_id] = [
            {"id": track_id, "name": f"Track {track_id}", "uri": f"spotify:track:{track_id}",
             "artists": [artist], "duration_ms": 200000}
            for track_id in track_ids
        ]

    def count(self, method: str) -> int:
        return sum(1 for call in self.calls if call[0] == method)

    def offsets(self, method: str) -> list[int]:
        return [call[-1] for call in self.calls if call[0] == method]

    def _record(self, *call: Any) -> None:
        self.calls.append(call)
        error = self.failures.pop(call, None)
        if error is not None:
            raise error

    # -- SpotifyClient interface ----------------------------------------------

    def current_user(self) -> dict[str, Any]:
        self._record("current_user")
        return dict(self.user)

    def current_user_playlists(self, limit: int = 50, offset: int = 0) -> Page:
        self._record("current_user_playlists", offset)
        return _page([dict(p) for p in self.playlists], limit, offset)

    def playlist(self, playlist_id: str) -> dict[str, Any]:
        self._record("playlist", playlist_id)
        for info in self.playlists:
            if info["id"] == playlist_id:
                return dict(info)
        raise KeyError(playlist_id)

    def playlist_items(self, playlist_id: str, limit: int = 100, offset: int = 0) -> Page:
        self._record("playlist_items", playlist_id, offset)
        items = [{"track": track} for track in self.playlist_tracks[playlist_id]]
        return _page(items, limit, offset)

    def playlist_add_items(self, playlist_id: str, uris: list[str]) -> int:
        requests_made = 0
        for i in range(0, len(uris), 100):
            self._record("playlist_add_items", playlist_id, i)
            self.added.append((playlist_id, uris[i:i + 100]))
            requests_made += 1
        return requests_made

    def artist(self, artist_id: str) -> dict[str, Any]:
        self._record("artist", artist_id)
        return {**self.artists.get(artist_id, make_artist(artist_id)), "followers": {"total": 1}}

    def artist_albums(
        self,
        artist_id: str,
        include_groups: str = "album,single",
        limit: int = 50,
        offset: int = 0
    ) -> Page:
        self._record("artist_albums", artist_id, offset)
        return self._artist_albums_page(artist_id, offset)

    def albums(self, album_ids: list[str]) -> list[dict[str, Any]]:
        self._record("albums", tuple(album_ids))
        results = []
        for album_id in album_ids:
            data = dict(self.album_data[album_id])
            tracks = _page(self.album_track_lists[album_id], self.album_tracks_page_size, 0)
            data["tracks"] = {
                "items": list(tracks.items),
                "total": tracks.total,
                "next": self._album_tracks_next(album_id, self.album_tracks_page_size),
            }
            results.append(data)
        return results

    def next_page(self, next_url: str) -> Page:
        self._record("next_page", next_url)
        kind, key, offset_text = next_url.split(":")
        offset = int(offset_text)
        if kind == "album-tracks":
            tracks = self.album_track_lists[key]
            page = _page(tracks, self.album_tracks_page_size, offset)
            return Page(
                items=page.items,
                total=page.total,
                offset=offset,
                next=self._album_tracks_next(key, offset + self.album_tracks_page_size),
            )
        return self._artist_albums_page(key, offset)

    def _artist_albums_page(self, artist_id: str, offset: int) -> Page:
        album_ids = self.artist_albums_by_id.get(artist_id, [])
        size = self.artist_albums_page_size
        items = [{"id": album_id} for album_id in album_ids[offset:offset + size]]
        next_url = f"artist-albums:{artist_id}:{offset + size}" if offset + size < len(album_ids) else None
        return Page(items=tuple(items), total=len(album_ids), limit=size, offset=offset, next=next_url)

    def _album_tracks_next(self, album_id: str, offset: int) -> str | None:
        if offset < len(self.album_track_lists[album_id]):
            return f"album-tracks:{album_id}:{offset}"
        return None


def _page(items: list[Any], limit: int, offset: int) -> Page:
    return Page(
        items=tuple(items[offset:offset + limit]),
        total=len(items),
        limit=limit,
        offset=offset,
        next=None,
    )


@pytest.fixture
def temp_dir():
    """Create temporary directory for tests"""
    with tempfile.TemporaryDirectory() as temp_dir:
        yield Path(temp_dir)


@pytest.fixture
def database(temp_dir):
    """Fresh SQLite database"""
    db = Database(temp_dir / "database.db")
    yield db
    db.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fake_spotify():
    return FakeSpotify()


@pytest.fixture
def cache_config():
    return CacheConfig()


@pytest.fixture
def updater(database, fake_spotify, cache_config, clock):
    """PlaylistUpdater wired to the fake client"""
    return PlaylistUpdater(database, fake_spotify, cache_config, locks=KeyedLock(), clock=clock)


@pytest.fixture
def save_playlist(database):
    """Store a playlist record owned by user1"""
    def _save(playlist_id: str, name: str, **fields: Any) -> PlaylistRecord:
        record = PlaylistRecord(id=playlist_id, user_id="user1", info={"id": playlist_id, "name": name}, **fields)
        database.save_playlist(record)
        return record
    return _save
