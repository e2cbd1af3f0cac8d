"""
spot-updater: Keep artist playlists up to date with new releases.

For every playlist of a Spotify user, spot-updater identifies the playlist's
main artist from its tracks, then lists that artist's albums and singles
released since the playlist was last updated and offers the tracks the
playlist does not contain yet.

Architecture:
    Spotify is rate limited and paginated, so everything read from it is
    cached locally and fetched incrementally:

    sync/ (Cache Synchronizer)
        - Keeps a cached prefix of each paginated collection (a user's
          playlists, a playlist's tracks)
        - Fetches only the pages a request needs
        - Hard-refreshes collections once they expire

    artist/ (Main Artist Resolver, New-Release Differ)
        - Votes a main artist from the cached tracks
        - Reads the artist's catalog, sorts and filters it by
          partial-precision release dates
        - Diffs it against the playlist

Modules:
    core/       - Configuration, SQLite store, records, locking, logging,
                  exceptions
    spotify/    - Spotify API client and models
    sync/       - Paginated cache synchronization
    artist/     - Main-artist resolution and release diffing
    updater.py  - Operations used by front ends
    utils/      - Formatting helpers
    cli.py      - Command-line interface

Usage:
    Command Line:
        spot-updater playlists
        spot-updater check <playlist-id>
        spot-updater check-all

    Python API:
        from spot_updater import Database, KeyedLock, PlaylistUpdater, SpotifyClient, load_config

        config = load_config()
        database = Database(config.storage.database_path)
        client = SpotifyClient.from_access_token(access_token, config.http)

        updater = PlaylistUpdater(database, client, config.cache, locks=KeyedLock())
        user = updater.register_user(client.current_user())
        page = updater.get_playlists_page(user.id, 1)

Configuration:
    Requires a config.yaml file in the current directory:

        spotify:
          client_id: "your_client_id"
          client_secret: "your_client_secret"

        storage:
          directory: "~/.spot-updater"

        cache:
          playlists_expire_days: 1
          tracks_expire_days: 7
          main_artist_threshold: 0.75

Dependencies:
    - spotipy: Spotify API client
    - requests: HTTP transport errors
    - click: CLI framework
    - rich-click: CLI colors
    - tqdm: Progress bars
    - pyyaml: Configuration file parsing
"""

__version__ = "0.1.0"
__author__ = "spot-updater"
__license__ = "MIT"

# Convenience imports for common usage
from spot_updater.core import (
    Config,
    ConfigError,
    Database,
    DatabaseError,
    KeyedLock,
    RecordNotFoundError,
    SpotifyError,
    SpotUpdaterError,
    get_logger,
    load_config,
    setup_logging,
)
from spot_updater.spotify import SpotifyClient
from spot_updater.updater import NewTracksResult, PlaylistUpdater

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "Database",
    "KeyedLock",
    "setup_logging",
    "get_logger",
    # Exceptions
    "SpotUpdaterError",
    "ConfigError",
    "DatabaseError",
    "RecordNotFoundError",
    "SpotifyError",
    # Operations
    "SpotifyClient",
    "PlaylistUpdater",
    "NewTracksResult",
]
