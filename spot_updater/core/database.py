"""
Thread-safe SQLite store for spot-updater.

This module is the Pagination Cache Store plus the record repositories.
Every read returns an immutable snapshot from spot_updater.core.records;
every write goes straight to disk (write-through).

Schema:
    users:              One row per Spotify user (id, profile JSON)
    playlists:          One row per playlist (owner, info JSON, main artist
                        state, watermark, status message)
    artists:            Shared main-artist snapshots (id, info JSON)
    collections:        Bookkeeping per cached collection (known_total,
                        last_refreshed_at)
    collection_items:   Cached items in remote order (collection_key,
                        position) with the item id and JSON

Item identity:
    A cached item's identity is its remote id. Appending a page skips every
    item whose id the collection already holds and writes the rest after
    the last cached item, so re-reading a page never duplicates or
    overwrites anything. Items without an id (unavailable tracks) are
    always written.

Timestamps:
    Stored as ISO-8601 UTC text and turned back into aware datetimes by the
    row converters below, column by column.

Usage:
    db = Database(storage_dir / "database.db")

    state = db.load_collection(playlist_collection_key(playlist_id))
    db.append_collection_items(state.key, items)
"""

import json
import sqlite3
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Generator, Iterable, Sequence

from spot_updater.core.exceptions import DatabaseError, RecordNotFoundError
from spot_updater.core.records import (
    EPOCH,
    UNKNOWN_TOTAL,
    ArtistRecord,
    PagedCollectionState,
    PlaylistRecord,
    UserRecord,
    playlist_collection_key,
    user_collection_key,
)


DATABASE_VERSION = 1


_SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY
);

CREATE TABLE IF NOT EXISTS users (
    id TEXT PRIMARY KEY,
    info TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS playlists (
    id TEXT PRIMARY KEY,
    user_id TEXT NOT NULL,
    info TEXT NOT NULL,
    main_artist_id TEXT,
    various_artists INTEGER NOT NULL DEFAULT 0,
    last_updated_at TEXT NOT NULL,
    updated_message TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS artists (
    id TEXT PRIMARY KEY,
    info TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS collections (
    key TEXT PRIMARY KEY,
    known_total INTEGER NOT NULL,
    last_refreshed_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS collection_items (
    collection_key TEXT NOT NULL,
    position INTEGER NOT NULL,
    item_id TEXT,
    data TEXT,
    PRIMARY KEY (collection_key, position)
);

CREATE INDEX IF NOT EXISTS idx_playlists_user ON playlists(user_id);
CREATE INDEX IF NOT EXISTS idx_collection_items_item ON collection_items(collection_key, item_id);
"""

# Columns update_playlist() may touch
_PLAYLIST_FIELDS = (
    "info",
    "main_artist_id",
    "various_artists",
    "last_updated_at",
    "updated_message",
)


def _to_iso(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime:
    if not value:
        return EPOCH
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _row_to_playlist(row: sqlite3.Row) -> PlaylistRecord:
    return PlaylistRecord(
        id=row["id"],
        user_id=row["user_id"],
        info=json.loads(row["info"]),
        main_artist_id=row["main_artist_id"],
        various_artists=bool(row["various_artists"]),
        last_updated_at=_from_iso(row["last_updated_at"]),
        updated_message=row["updated_message"],
    )


def _playlist_column_value(field_name: str, value: Any) -> Any:
    if field_name == "info":
        return json.dumps(value)
    if field_name == "various_artists":
        return 1 if value else 0
    if field_name == "last_updated_at":
        return _to_iso(value)
    return value


class Database:
    """
    Thread-safe SQLite database holding users, playlists, artists and
    cached collections.

    Uses a single persistent connection with thread locking for safety.
    All public methods acquire self._lock before executing. The lock only
    makes each call atomic; serializing a whole synchronization sequence
    is the job of spot_updater.core.locking.KeyedLock.
    """

    def __init__(self, db_path: Path) -> None:
        self.db_path = db_path
        self._lock = threading.Lock()
        self._conn: sqlite3.Connection | None = None

        if not db_path.parent.exists():
            raise DatabaseError(
                f"Parent directory does not exist: {db_path.parent}",
                details={"path": str(db_path.parent)}
            )

        try:
            self._init_database()
        except sqlite3.Error as e:
            raise DatabaseError(
                f"Failed to initialize database: {e}",
                details={"path": str(db_path)}
            ) from e

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get the persistent database connection as a context manager.

        sqlite3 errors raised inside the block are wrapped in DatabaseError.
        """
        if self._conn is None:
            self._conn = sqlite3.connect(
                str(self.db_path),
                timeout=30.0,
                check_same_thread=False  # We handle thread safety with _lock
            )
            self._conn.row_factory = sqlite3.Row
            self._conn.execute("PRAGMA journal_mode = WAL")
        try:
            yield self._conn
        except sqlite3.Error as e:
            self._conn.rollback()
            raise DatabaseError(
                f"Database operation failed: {e}",
                details={"path": str(self.db_path), "original_error": str(e)}
            ) from e

    def close(self) -> None:
        """Close the database connection."""
        with self._lock:
            if self._conn is not None:
                self._conn.close()
                self._conn = None

    def __del__(self) -> None:
        """Ensure connection is closed on garbage collection."""
        if hasattr(self, '_conn') and self._conn is not None:
            try:
                self._conn.close()
            except Exception:
                pass

    def _init_database(self) -> None:
        with self._get_connection() as conn:
            conn.executescript(_SCHEMA_SQL)

            cursor = conn.execute("SELECT version FROM schema_version LIMIT 1")
            row = cursor.fetchone()

            if row is None:
                conn.execute("INSERT INTO schema_version (version) VALUES (?)", (DATABASE_VERSION,))
            elif row[0] != DATABASE_VERSION:
                raise DatabaseError(
                    f"Database version mismatch: expected {DATABASE_VERSION}, got {row[0]}",
                    details={"expected": DATABASE_VERSION, "actual": row[0]}
                )
            conn.commit()

    # =========================================================================
    # Users
    # =========================================================================

    def load_user(self, user_id: str) -> UserRecord | None:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT id, info FROM users WHERE id = ?", (user_id,))
                row = cursor.fetchone()
                if row is None:
                    return None
                return UserRecord(id=row["id"], info=json.loads(row["info"]))

    def save_user(self, user: UserRecord) -> None:
        """Create or update a user's profile snapshot."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO users (id, info) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET info = excluded.info
                """, (user.id, json.dumps(user.info)))
                conn.commit()

    def remove_user(self, user_id: str) -> int:
        """
        Delete a user, every playlist it owns, and all of their caches.

        Artists are shared and are left in place.

        Returns:
            Number of playlists removed.
        """
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT id FROM playlists WHERE user_id = ?", (user_id,))
                playlist_ids = [row[0] for row in cursor.fetchall()]

                keys = [user_collection_key(user_id)]
                keys.extend(playlist_collection_key(pid) for pid in playlist_ids)
                conn.executemany("DELETE FROM collection_items WHERE collection_key = ?", [(k,) for k in keys])
                conn.executemany("DELETE FROM collections WHERE key = ?", [(k,) for k in keys])
                conn.execute("DELETE FROM playlists WHERE user_id = ?", (user_id,))
                conn.execute("DELETE FROM users WHERE id = ?", (user_id,))
                conn.commit()
                return len(playlist_ids)

    # =========================================================================
    # Playlists
    # =========================================================================

    def load_playlist(self, playlist_id: str) -> PlaylistRecord | None:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT * FROM playlists WHERE id = ?", (playlist_id,))
                row = cursor.fetchone()
                return _row_to_playlist(row) if row else None

    def get_playlist(self, playlist_id: str) -> PlaylistRecord:
        """Like load_playlist(), but raises RecordNotFoundError when missing."""
        playlist = self.load_playlist(playlist_id)
        if playlist is None:
            raise RecordNotFoundError(
                f"Playlist not found: {playlist_id}",
                details={"playlist_id": playlist_id}
            )
        return playlist

    def load_playlists(self, playlist_ids: Sequence[str]) -> list[PlaylistRecord]:
        """Load several playlists, preserving the order of `playlist_ids`."""
        if not playlist_ids:
            return []
        with self._lock:
            with self._get_connection() as conn:
                placeholders = ",".join("?" for _ in playlist_ids)
                cursor = conn.execute(
                    f"SELECT * FROM playlists WHERE id IN ({placeholders})",
                    tuple(playlist_ids)
                )
                by_id = {row["id"]: _row_to_playlist(row) for row in cursor.fetchall()}
        return [by_id[pid] for pid in playlist_ids if pid in by_id]

    def load_user_playlists(self, user_id: str) -> list[PlaylistRecord]:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT * FROM playlists WHERE user_id = ? ORDER BY id", (user_id,)
                )
                return [_row_to_playlist(row) for row in cursor.fetchall()]

    def save_playlist(self, playlist: PlaylistRecord) -> None:
        """Create a playlist or overwrite every field of an existing one."""
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO playlists (
                        id, user_id, info, main_artist_id, various_artists,
                        last_updated_at, updated_message
                    ) VALUES (?, ?, ?, ?, ?, ?, ?)
                    ON CONFLICT(id) DO UPDATE SET
                        user_id = excluded.user_id,
                        info = excluded.info,
                        main_artist_id = excluded.main_artist_id,
                        various_artists = excluded.various_artists,
                        last_updated_at = excluded.last_updated_at,
                        updated_message = excluded.updated_message
                """, (
                    playlist.id, playlist.user_id, json.dumps(playlist.info),
                    playlist.main_artist_id, 1 if playlist.various_artists else 0,
                    _to_iso(playlist.last_updated_at), playlist.updated_message
                ))
                conn.commit()

    def update_playlist(self, playlist_id: str, **fields: Any) -> PlaylistRecord:
        """
        Set only the named fields of a playlist and return the new snapshot.

        Writers holding different locks (playlist-list reconciliation vs.
        main-artist resolution) touch disjoint fields, so a partial update
        never clobbers the other writer's columns.

        Raises:
            ValueError: If a field is not an updatable playlist column.
            RecordNotFoundError: If the playlist does not exist.
        """
        unknown = set(fields) - set(_PLAYLIST_FIELDS)
        if unknown:
            raise ValueError(f"Not updatable playlist fields: {sorted(unknown)}")

        if fields:
            assignments = ", ".join(f"{name} = ?" for name in fields)
            values = [_playlist_column_value(name, value) for name, value in fields.items()]
            with self._lock:
                with self._get_connection() as conn:
                    cursor = conn.execute(
                        f"UPDATE playlists SET {assignments} WHERE id = ?",
                        (*values, playlist_id)
                    )
                    conn.commit()
                    if cursor.rowcount == 0:
                        raise RecordNotFoundError(
                            f"Playlist not found: {playlist_id}",
                            details={"playlist_id": playlist_id}
                        )
        return self.get_playlist(playlist_id)

    # =========================================================================
    # Artists
    # =========================================================================

    def load_artist(self, artist_id: str) -> ArtistRecord | None:
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT id, info FROM artists WHERE id = ?", (artist_id,))
                row = cursor.fetchone()
                if row is None:
                    return None
                return ArtistRecord(id=row["id"], info=json.loads(row["info"]))

    def save_artist(self, artist: ArtistRecord) -> None:
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("""
                    INSERT INTO artists (id, info) VALUES (?, ?)
                    ON CONFLICT(id) DO UPDATE SET info = excluded.info
                """, (artist.id, json.dumps(artist.info)))
                conn.commit()

    # =========================================================================
    # Cached collections
    # =========================================================================

    def load_collection(self, key: str) -> PagedCollectionState:
        """
        Read a collection's cached items and bookkeeping.

        A collection never written before reads as empty with an unknown
        total, which makes the next synchronization a hard refresh.
        """
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT known_total, last_refreshed_at FROM collections WHERE key = ?", (key,)
                )
                meta = cursor.fetchone()
                cursor = conn.execute(
                    "SELECT data FROM collection_items WHERE collection_key = ? ORDER BY position",
                    (key,)
                )
                items = tuple(
                    json.loads(row[0]) if row[0] is not None else None
                    for row in cursor.fetchall()
                )

        if meta is None:
            return PagedCollectionState(key=key, items=items)
        return PagedCollectionState(
            key=key,
            items=items,
            known_total=meta["known_total"],
            last_refreshed_at=_from_iso(meta["last_refreshed_at"]),
        )

    def collection_total(self, key: str) -> int:
        """Read only a collection's known_total (UNKNOWN_TOTAL if never written)."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute("SELECT known_total FROM collections WHERE key = ?", (key,))
                row = cursor.fetchone()
                return row[0] if row else UNKNOWN_TOTAL

    def reset_collection(
        self,
        key: str,
        known_total: int = UNKNOWN_TOTAL,
        last_refreshed_at: datetime = EPOCH
    ) -> None:
        """
        Drop every cached item of a collection and set its bookkeeping.

        Defaults invalidate the collection (unknown total, refreshed at
        epoch) so the next access hard-refreshes it.
        """
        with self._lock:
            with self._get_connection() as conn:
                conn.execute("DELETE FROM collection_items WHERE collection_key = ?", (key,))
                self._upsert_collection_meta(conn, key, known_total, last_refreshed_at)
                conn.commit()

    def set_collection_total(self, key: str, known_total: int) -> None:
        """Record the remote-reported total without touching cached items."""
        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "UPDATE collections SET known_total = ? WHERE key = ?", (known_total, key)
                )
                if cursor.rowcount == 0:
                    self._upsert_collection_meta(conn, key, known_total, EPOCH)
                conn.commit()

    def append_collection_items(
        self,
        key: str,
        items: Iterable[tuple[str | None, Any]]
    ) -> int:
        """
        Append items to the end of a collection, skipping known ones.

        Args:
            key: Collection key.
            items: (item_id, data) pairs in remote order. data is any
                   JSON-serializable value (None allowed).

        Returns:
            Number of items actually written. An item whose id is already
            cached in the collection (or earlier in `items`) is skipped;
            items without an id are always written.
        """
        items = list(items)
        if not items:
            return 0

        with self._lock:
            with self._get_connection() as conn:
                cursor = conn.execute(
                    "SELECT item_id FROM collection_items WHERE collection_key = ? AND item_id IS NOT NULL",
                    (key,)
                )
                known = {row[0] for row in cursor.fetchall()}
                cursor = conn.execute(
                    "SELECT COALESCE(MAX(position) + 1, 0) FROM collection_items WHERE collection_key = ?",
                    (key,)
                )
                position = cursor.fetchone()[0]

                rows = []
                for item_id, data in items:
                    if item_id is not None:
                        if item_id in known:
                            continue
                        known.add(item_id)
                    rows.append((key, position, item_id, json.dumps(data) if data is not None else None))
                    position += 1

                conn.executemany("""
                    INSERT INTO collection_items (collection_key, position, item_id, data)
                    VALUES (?, ?, ?, ?)
                """, rows)
                conn.commit()
                return len(rows)

    def _upsert_collection_meta(
        self,
        conn: sqlite3.Connection,
        key: str,
        known_total: int,
        last_refreshed_at: datetime
    ) -> None:
        conn.execute("""
            INSERT INTO collections (key, known_total, last_refreshed_at) VALUES (?, ?, ?)
            ON CONFLICT(key) DO UPDATE SET
                known_total = excluded.known_total,
                last_refreshed_at = excluded.last_refreshed_at
        """, (key, known_total, _to_iso(last_refreshed_at)))
