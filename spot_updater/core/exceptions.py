"""
Exception classes for spot-updater.

This module defines all custom exceptions used throughout the application.
Each exception carries a human-readable message plus an optional details
dictionary for logging.

Exception Hierarchy:
    SpotUpdaterError (base)
        ConfigError - Configuration file issues
        DatabaseError - SQLite store issues
            RecordNotFoundError - Unknown user/playlist identity
        SpotifyError - Spotify Web API issues (transport, HTTP, auth)

Main-artist rejection is not an exception: a playlist
whose main artist cannot be identified is a normal outcome and is reported
through Resolution.rejection_message, not raised.
"""


class SpotUpdaterError(Exception):
    """
    Base exception for all spot-updater errors.

    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (ids, URLs, ...).

    Example:
        try:
            updater.ensure_tracks_page(playlist_id, 1)
        except SpotUpdaterError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.

        Args:
            message: Human-readable error description shown to the user.
            details: Optional dictionary containing additional context.
                     Common keys include:
                     - 'playlist_id': Spotify playlist ID involved in the error
                     - 'http_status': HTTP status returned by Spotify
                     - 'original_error': The underlying exception text
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(SpotUpdaterError):
    """
    Raised when there's an issue with the configuration file.

    This is a CRITICAL error that should stop program execution.

    Common causes:
        - config.yaml not found
        - config.yaml has invalid YAML syntax
        - Required fields missing (client_id, client_secret)
        - Invalid field values (e.g., negative expiry, threshold above 1)
    """
    pass


class DatabaseError(SpotUpdaterError):
    """
    Raised when there's an issue with the SQLite store.

    Common causes:
        - database.db is corrupted or has an unexpected schema version
        - Permission denied when reading/writing
        - Storage directory does not exist
    """
    pass


class RecordNotFoundError(DatabaseError):
    """
    Raised when an operation addresses a user or playlist that has never
    been stored.

    Playlists are only created while synchronizing a user's playlist list,
    so asking for the tracks of an unknown playlist is a caller error.

    Example:
        raise RecordNotFoundError(
            f"Playlist not found: {playlist_id}",
            details={"playlist_id": playlist_id}
        )
    """
    pass


class SpotifyError(SpotUpdaterError):
    """
    Raised when a call to the Spotify Web API fails.

    Covers every non-2xx response and every transport failure (connection
    errors, timeouts). The synchronizer never retries these; they propagate
    to the caller with any already-fetched pages left committed.

    Attributes:
        is_auth_error: True when the access credential is missing, expired
                       or rejected (HTTP 401). The caller must re-authenticate.
        is_rate_limit: True for HTTP 429 after spotipy's own retries ran out.

    Example:
        raise SpotifyError(
            "Failed to fetch playlist items: timed out",
            details={'playlist_id': playlist_id, 'offset': 200}
        )
    """

    def __init__(
        self,
        message: str,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize Spotify error with additional flags.

        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit
