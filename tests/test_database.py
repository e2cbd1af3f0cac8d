"""Test the SQLite store"""

import dataclasses
from datetime import datetime, timedelta, timezone

import pytest

from spot_updater.core.database import Database
from spot_updater.core.exceptions import DatabaseError, RecordNotFoundError
from spot_updater.core.records import (
    EPOCH,
    MESSAGE_NEVER_UPDATED,
    UNKNOWN_TOTAL,
    ArtistRecord,
    PlaylistRecord,
    UserRecord,
    playlist_collection_key,
    user_collection_key,
)


WATERMARK = datetime(2021, 3, 14, 9, 30, tzinfo=timezone.utc)


class TestDatabaseSetup:
    """Test database creation"""

    def test_missing_parent_directory(self, temp_dir):
        """Test a database in a missing directory is rejected"""
        with pytest.raises(DatabaseError):
            Database(temp_dir / "missing" / "database.db")

    def test_reopen_existing_database(self, temp_dir):
        """Test data survives closing and reopening"""
        db = Database(temp_dir / "database.db")
        db.save_user(UserRecord(id="user1", info={"display_name": "Me"}))
        db.close()

        reopened = Database(temp_dir / "database.db")
        assert reopened.load_user("user1").display_name == "Me"
        reopened.close()


class TestPlaylists:
    """Test playlist records"""

    def test_new_record_defaults(self, database):
        """Test a new playlist starts unresolved and never updated"""
        database.save_playlist(PlaylistRecord(id="p1", user_id="user1", info={"name": "Mix"}))

        playlist = database.get_playlist("p1")

        assert playlist.main_artist_id is None
        assert playlist.various_artists is False
        assert playlist.last_updated_at == EPOCH
        assert playlist.updated_message == MESSAGE_NEVER_UPDATED

    def test_timestamp_round_trip(self, database):
        """Test watermarks come back as aware UTC datetimes"""
        database.save_playlist(PlaylistRecord(id="p1", user_id="user1", last_updated_at=WATERMARK))

        loaded = database.get_playlist("p1").last_updated_at

        assert loaded == WATERMARK
        assert loaded.tzinfo is not None

    def test_offset_timestamp_normalized(self, database):
        """Test timestamps in other zones are stored as the same instant"""
        moment = datetime(2021, 3, 14, 11, 30, tzinfo=timezone(timedelta(hours=2)))
        database.save_playlist(PlaylistRecord(id="p1", user_id="user1", last_updated_at=moment))

        assert database.get_playlist("p1").last_updated_at == WATERMARK

    def test_naive_timestamp_is_utc(self, database):
        """Test naive timestamps are read as UTC"""
        database.save_playlist(
            PlaylistRecord(id="p1", user_id="user1", last_updated_at=datetime(2021, 3, 14, 9, 30))
        )

        assert database.get_playlist("p1").last_updated_at == WATERMARK

    def test_update_touches_only_named_fields(self, database):
        """Test update_playlist leaves other columns alone"""
        database.save_playlist(PlaylistRecord(
            id="p1", user_id="user1", info={"name": "Old"}, main_artist_id="a1", last_updated_at=WATERMARK
        ))

        updated = database.update_playlist("p1", info={"name": "New"})

        assert updated.name == "New"
        assert updated.main_artist_id == "a1"
        assert updated.last_updated_at == WATERMARK

    def test_update_rejects_unknown_field(self, database):
        """Test update_playlist refuses fields that are not columns"""
        database.save_playlist(PlaylistRecord(id="p1", user_id="user1"))

        with pytest.raises(ValueError):
            database.update_playlist("p1", user_id="someone-else")

    def test_update_missing_playlist(self, database):
        """Test updating an unknown playlist raises RecordNotFoundError"""
        with pytest.raises(RecordNotFoundError):
            database.update_playlist("nope", various_artists=True)

    def test_get_missing_playlist(self, database):
        """Test get_playlist raises while load_playlist returns None"""
        assert database.load_playlist("nope") is None
        with pytest.raises(RecordNotFoundError):
            database.get_playlist("nope")

    def test_save_replaces_snapshot(self, database):
        """Test saving a replaced record overwrites every field"""
        record = PlaylistRecord(id="p1", user_id="user1")
        database.save_playlist(record)

        database.save_playlist(dataclasses.replace(record, various_artists=True, updated_message="Various Artists"))

        loaded = database.get_playlist("p1")
        assert loaded.various_artists is True
        assert loaded.updated_message == "Various Artists"

    def test_load_playlists_keeps_order(self, database):
        """Test load_playlists returns records in the requested order"""
        for playlist_id in ("p1", "p2", "p3"):
            database.save_playlist(PlaylistRecord(id=playlist_id, user_id="user1"))

        loaded = database.load_playlists(["p3", "missing", "p1"])

        assert [p.id for p in loaded] == ["p3", "p1"]


class TestCollections:
    """Test cached collections"""

    def test_unknown_collection(self, database):
        """Test a collection never written reads as empty with unknown total"""
        state = database.load_collection("playlist:none")

        assert state.items == ()
        assert state.known_total == UNKNOWN_TOTAL
        assert state.last_refreshed_at == EPOCH
        assert database.collection_total("playlist:none") == UNKNOWN_TOTAL

    def test_append_skips_repeated_items(self, database):
        """Test an id seen twice in one append is cached once"""
        key = playlist_collection_key("p1")
        database.reset_collection(key, known_total=3, last_refreshed_at=WATERMARK)

        written = database.append_collection_items(
            key, [("t1", {"id": "t1"}), ("t2", {"id": "t2"}), ("t1", {"id": "t1"})]
        )

        assert written == 2
        assert [item["id"] for item in database.load_collection(key).items] == ["t1", "t2"]

    def test_append_never_overwrites_items(self, database):
        """Test appending a page twice leaves the first write in place"""
        key = playlist_collection_key("p1")
        database.append_collection_items(key, [("t1", {"id": "t1", "v": 1})])

        written = database.append_collection_items(key, [("t1", {"id": "t1", "v": 2}), ("t2", {"id": "t2"})])

        assert written == 1
        assert database.load_collection(key).items == ({"id": "t1", "v": 1}, {"id": "t2"})

    def test_unavailable_items_are_always_kept(self, database):
        """Test None items are stored and read back as None"""
        key = playlist_collection_key("p1")
        database.append_collection_items(key, [(None, None), ("t2", {"id": "t2"})])
        database.append_collection_items(key, [(None, None)])

        assert database.load_collection(key).items == (None, {"id": "t2"}, None)

    def test_reset_and_totals(self, database):
        """Test reset clears items and set_collection_total keeps them"""
        key = playlist_collection_key("p1")
        database.append_collection_items(key, [("t1", {"id": "t1"})])
        database.set_collection_total(key, 10)
        assert database.load_collection(key).known_total == 10
        assert database.load_collection(key).cached_size == 1

        database.reset_collection(key, known_total=0, last_refreshed_at=WATERMARK)

        state = database.load_collection(key)
        assert state.items == ()
        assert state.known_total == 0
        assert state.last_refreshed_at == WATERMARK


class TestRemoveUser:
    """Test predicate removal of a user's data"""

    def test_removes_user_playlists_and_caches(self, database):
        """Test remove_user deletes only the user's own data"""
        database.save_user(UserRecord(id="user1"))
        database.save_user(UserRecord(id="user2"))
        database.save_playlist(PlaylistRecord(id="p1", user_id="user1"))
        database.save_playlist(PlaylistRecord(id="p2", user_id="user2"))
        database.save_artist(ArtistRecord(id="a1", info={"name": "Artist"}))
        for key in (user_collection_key("user1"), playlist_collection_key("p1"), playlist_collection_key("p2")):
            database.append_collection_items(key, [("x", {"id": "x"})])

        removed = database.remove_user("user1")

        assert removed == 1
        assert database.load_user("user1") is None
        assert database.load_playlist("p1") is None
        assert database.load_collection(user_collection_key("user1")).items == ()
        assert database.load_collection(playlist_collection_key("p1")).items == ()
        assert database.load_user("user2") is not None
        assert database.load_playlist("p2") is not None
        assert database.load_collection(playlist_collection_key("p2")).cached_size == 1
        assert database.load_artist("a1").name == "Artist"
