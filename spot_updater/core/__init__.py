"""
Core module for spot-updater.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - records: Immutable snapshots of persisted users, playlists and caches
    - database: Thread-safe SQLite store for records and cached collections
    - locking: Per-key locks serializing work on one collection
    - logger: Logging system with multiple outputs

Usage:
    from spot_updater.core import (
        Config, load_config,
        Database, KeyedLock,
        setup_logging, get_logger,
        SpotUpdaterError, ConfigError, DatabaseError
    )
"""

from spot_updater.core.config import (
    CacheConfig,
    Config,
    HttpConfig,
    SpotifyConfig,
    StorageConfig,
    load_config,
    parse_config,
)
from spot_updater.core.database import Database
from spot_updater.core.exceptions import (
    ConfigError,
    DatabaseError,
    RecordNotFoundError,
    SpotifyError,
    SpotUpdaterError,
)
from spot_updater.core.locking import KeyedLock
from spot_updater.core.logger import get_logger, setup_logging, shutdown_logging
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

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "StorageConfig",
    "CacheConfig",
    "HttpConfig",
    "load_config",
    "parse_config",
    # Database
    "Database",
    "KeyedLock",
    # Records
    "EPOCH",
    "UNKNOWN_TOTAL",
    "PagedCollectionState",
    "UserRecord",
    "PlaylistRecord",
    "ArtistRecord",
    "user_collection_key",
    "playlist_collection_key",
    # Exceptions
    "SpotUpdaterError",
    "ConfigError",
    "DatabaseError",
    "RecordNotFoundError",
    "SpotifyError",
    # Logger
    "setup_logging",
    "get_logger",
    "shutdown_logging",
]
