"""
Configuration management for spot-updater.

This module handles loading, validating, and providing access to the
application configuration stored in config.yaml.

The configuration file contains:
    - Spotify API credentials and OAuth settings
    - Storage directory for the database and log files
    - Cache expiry periods and the main-artist threshold
    - HTTP timeout and retry settings handed to spotipy

Page sizes (50 playlists, 100 tracks, 20 albums, 100 tracks added per
request) are limits imposed by the Spotify Web API and are NOT configurable;
they live in spot_updater.spotify.client.

Example config.yaml:
    spotify:
      client_id: "your_client_id_here"
      client_secret: "your_client_secret_here"
      redirect_uri: "http://127.0.0.1:8888/callback"

    storage:
      directory: "~/.spot-updater"

    cache:
      playlists_expire_days: 1
      tracks_expire_days: 7
      main_artist_threshold: 0.75

    http:
      timeout: 10
      retries: 3
"""

from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from spot_updater.core.exceptions import ConfigError


# Default configuration file name (always in current working directory)
CONFIG_FILENAME = "config.yaml"

DEFAULT_REDIRECT_URI = "http://127.0.0.1:8888/callback"
DEFAULT_SCOPE = (
    "playlist-read-private playlist-read-collaborative "
    "playlist-modify-public playlist-modify-private"
)
DEFAULT_STORAGE_DIRECTORY = "~/.spot-updater"


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials and OAuth settings.

    Attributes:
        client_id: The Spotify application client ID.
        client_secret: The Spotify application client secret.
        redirect_uri: Redirect URI registered in the Developer Dashboard.
        scope: Space-separated OAuth scopes requested at login.
    """
    client_id: str
    client_secret: str
    redirect_uri: str = DEFAULT_REDIRECT_URI
    scope: str = DEFAULT_SCOPE


@dataclass(frozen=True)
class StorageConfig:
    """
    Storage location configuration.

    Attributes:
        directory: Absolute path holding database.db and the logs/ folder.
                   Path expansion is performed (~ is expanded).
    """
    directory: Path

    @property
    def database_path(self) -> Path:
        return self.directory / "database.db"

    @property
    def logs_directory(self) -> Path:
        return self.directory / "logs"


@dataclass(frozen=True)
class CacheConfig:
    """
    Cache freshness and main-artist heuristic settings.

    Attributes:
        playlists_expire_days: Age after which a user's playlist list is
                               hard-refreshed on next access. Default 1.
        tracks_expire_days: Age after which a playlist's track list is
                            hard-refreshed on next access. Default 7.
        main_artist_threshold: Fraction of cached tracks an artist must be
                               credited on to be accepted as the playlist's
                               main artist. Default 0.75.
    """
    playlists_expire_days: int = 1
    tracks_expire_days: int = 7
    main_artist_threshold: float = 0.75

    @property
    def playlists_expiry(self) -> timedelta:
        return timedelta(days=self.playlists_expire_days)

    @property
    def tracks_expiry(self) -> timedelta:
        return timedelta(days=self.tracks_expire_days)


@dataclass(frozen=True)
class HttpConfig:
    """
    HTTP settings handed to spotipy.

    Attributes:
        timeout: Per-request timeout in seconds.
        retries: Number of retries spotipy performs on 429/5xx responses.
                 The synchronizer itself never retries.
    """
    timeout: float = 10.0
    retries: int = 3


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Database: {config.storage.database_path}")
        print(f"Tracks expire after {config.cache.tracks_expire_days} days")
    """
    spotify: SpotifyConfig
    storage: StorageConfig
    cache: CacheConfig
    http: HttpConfig


def load_config(config_path: Path | None = None) -> Config:
    """
    Load and validate configuration from config.yaml.

    Args:
        config_path: Optional explicit path to config file.
                     If None, looks for config.yaml in current working directory.

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If the config file is not found, has invalid YAML syntax,
                     is missing required fields, or contains invalid values.

    Behavior:
        1. Locate config file (explicit path or CWD/config.yaml)
        2. Read and parse YAML content
        3. Validate structure (the spotify section is required)
        4. Parse each section, applying defaults for optional ones
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME

    if not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = f.read()
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    try:
        raw_config = yaml.safe_load(content)
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    return parse_config(raw_config)


def parse_config(raw_config: dict[str, Any]) -> Config:
    """
    Build a Config from an already-parsed dictionary.

    Split out of load_config() so callers (and tests) holding a dictionary
    do not need a file on disk.
    """
    _validate_config(raw_config)

    return Config(
        spotify=_parse_spotify_config(raw_config["spotify"]),
        storage=_parse_storage_config(_optional_section(raw_config, "storage")),
        cache=_parse_cache_config(_optional_section(raw_config, "cache")),
        http=_parse_http_config(_optional_section(raw_config, "http")),
    )


def _validate_config(raw_config: dict[str, Any]) -> None:
    """
    Validate the raw configuration dictionary structure.

    Raises:
        ConfigError: If the spotify section is missing or not a dictionary.
    """
    if "spotify" not in raw_config:
        raise ConfigError(
            "Missing required section: 'spotify'",
            details={"missing_section": "spotify"}
        )

    if not isinstance(raw_config["spotify"], dict):
        raise ConfigError(
            "Section 'spotify' must be a dictionary",
            details={"section": "spotify"}
        )


def _optional_section(raw_config: dict[str, Any], name: str) -> dict[str, Any]:
    section = raw_config.get(name)
    if section is None:
        return {}
    if not isinstance(section, dict):
        raise ConfigError(
            f"Section '{name}' must be a dictionary",
            details={"section": name}
        )
    return section


def _parse_spotify_config(spotify_section: dict[str, Any]) -> SpotifyConfig:
    """
    Parse and validate the Spotify configuration section.

    Raises:
        ConfigError: If client_id or client_secret is missing or empty,
                     or if redirect_uri/scope are not strings.
    """
    client_id = spotify_section.get("client_id", "")
    client_secret = spotify_section.get("client_secret", "")

    if not isinstance(client_id, str) or not client_id.strip():
        raise ConfigError(
            "'spotify.client_id' must be a non-empty string",
            details={"field": "spotify.client_id"}
        )

    if not isinstance(client_secret, str) or not client_secret.strip():
        raise ConfigError(
            "'spotify.client_secret' must be a non-empty string",
            details={"field": "spotify.client_secret"}
        )

    redirect_uri = spotify_section.get("redirect_uri", DEFAULT_REDIRECT_URI)
    scope = spotify_section.get("scope", DEFAULT_SCOPE)
    for field_name, value in (("redirect_uri", redirect_uri), ("scope", scope)):
        if not isinstance(value, str) or not value.strip():
            raise ConfigError(
                f"'spotify.{field_name}' must be a non-empty string",
                details={"field": f"spotify.{field_name}"}
            )

    return SpotifyConfig(
        client_id=client_id.strip(),
        client_secret=client_secret.strip(),
        redirect_uri=redirect_uri.strip(),
        scope=scope.strip()
    )


def _parse_storage_config(storage_section: dict[str, Any]) -> StorageConfig:
    """
    Parse the storage section. Expands ~ and makes the path absolute.
    Does NOT create the directory (the CLI does that at startup).
    """
    directory = storage_section.get("directory", DEFAULT_STORAGE_DIRECTORY)

    if not isinstance(directory, str) or not directory.strip():
        raise ConfigError(
            "'storage.directory' must be a non-empty string",
            details={"field": "storage.directory"}
        )

    return StorageConfig(directory=Path(directory.strip()).expanduser().resolve())


def _parse_cache_config(cache_section: dict[str, Any]) -> CacheConfig:
    """
    Parse the cache section, applying defaults for missing fields.

    Raises:
        ConfigError: If an expiry is not a non-negative integer or the
                     threshold is outside (0, 1].
    """
    defaults = CacheConfig()

    expiries = {}
    for field_name in ("playlists_expire_days", "tracks_expire_days"):
        value = cache_section.get(field_name, getattr(defaults, field_name))
        # bool is an int subclass; reject `true` explicitly
        if not isinstance(value, int) or isinstance(value, bool) or value < 0:
            raise ConfigError(
                f"'cache.{field_name}' must be a non-negative integer",
                details={"field": f"cache.{field_name}", "value": value}
            )
        expiries[field_name] = value

    threshold = cache_section.get("main_artist_threshold", defaults.main_artist_threshold)
    if (
        not isinstance(threshold, (int, float))
        or isinstance(threshold, bool)
        or not 0 < threshold <= 1
    ):
        raise ConfigError(
            "'cache.main_artist_threshold' must be a number in (0, 1]",
            details={"field": "cache.main_artist_threshold", "value": threshold}
        )

    return CacheConfig(main_artist_threshold=float(threshold), **expiries)


def _parse_http_config(http_section: dict[str, Any]) -> HttpConfig:
    """
    Parse the http section, applying defaults for missing fields.

    Raises:
        ConfigError: If timeout is not positive or retries is negative.
    """
    defaults = HttpConfig()

    timeout = http_section.get("timeout", defaults.timeout)
    if not isinstance(timeout, (int, float)) or isinstance(timeout, bool) or timeout <= 0:
        raise ConfigError(
            "'http.timeout' must be a positive number of seconds",
            details={"field": "http.timeout", "value": timeout}
        )

    retries = http_section.get("retries", defaults.retries)
    if not isinstance(retries, int) or isinstance(retries, bool) or retries < 0:
        raise ConfigError(
            "'http.retries' must be a non-negative integer",
            details={"field": "http.retries", "value": retries}
        )

    return HttpConfig(timeout=float(timeout), retries=retries)
