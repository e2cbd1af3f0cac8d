"""
Logging configuration for spot-updater.

Outputs, all under the storage directory's logs/ folder except the console:
    - Console: colored level + message, written through tqdm so the
      check-all progress bar stays intact
    - log_full_<timestamp>.log: every record, DEBUG and above
    - log_errors_<timestamp>.log: ERROR and CRITICAL only
    - check_report_<timestamp>.log: one entry per checked playlist that
      has new tracks or could not be matched to a main artist

The check report is fed by log_new_releases() and log_unresolved_playlist(),
which attach the extra fields CheckReportHandler looks for. Ordinary
records never reach the report.

Usage:
    from spot_updater.core.logger import setup_logging, get_logger

    setup_logging(config.storage.logs_directory)  # once, at startup
    logger = get_logger(__name__)

    logger.info("Synchronizing playlists")
"""

import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Iterable, TextIO

from tqdm import tqdm


FILE_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
FILE_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

PLAYLIST_URL = "https://open.spotify.com/playlist/{}"

# Extra-field names read by CheckReportHandler
REPORT_PLAYLIST_NAME = "report_playlist_name"
REPORT_PLAYLIST_ID = "report_playlist_id"
REPORT_LINES = "report_lines"


class Colors:
    RESET = "\033[0m"
    RED = "\033[31m"
    GREEN = "\033[32m"
    YELLOW = "\033[33m"
    BLUE = "\033[34m"
    WHITE = "\033[37m"
    BOLD = "\033[1m"


class ColoredConsoleFormatter(logging.Formatter):
    """Prefix console messages with a colored level name."""

    LEVEL_COLORS = {
        logging.DEBUG: Colors.BLUE,
        logging.INFO: Colors.GREEN,
        logging.WARNING: Colors.YELLOW,
        logging.ERROR: Colors.RED,
        logging.CRITICAL: Colors.BOLD + Colors.RED,
    }

    def format(self, record: logging.LogRecord) -> str:
        color = self.LEVEL_COLORS.get(record.levelno, Colors.WHITE)
        return f"{color}{record.levelname}{Colors.RESET}: {record.getMessage()}"


class TqdmLoggingHandler(logging.Handler):
    """
    Console handler writing through tqdm.write().

    Lines printed while a tqdm bar is active appear above the bar instead
    of tearing it.
    """

    def __init__(self, stream: TextIO = sys.stderr) -> None:
        super().__init__()
        self.stream = stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            tqdm.write(self.format(record), file=self.stream)
        except Exception:
            self.handleError(record)


class ErrorOnlyFilter(logging.Filter):
    """Let through ERROR and CRITICAL records only."""

    def filter(self, record: logging.LogRecord) -> bool:
        return record.levelno >= logging.ERROR


class CheckReportHandler(logging.Handler):
    """
    Writes the human-readable outcome of playlist checks.

    Each entry is the playlist name, its Spotify URL and the detail lines
    attached to the record:

        Artist X Essentials
        https://open.spotify.com/playlist/37i9dQZF1DX...
          2024-03-01  New Album - First Song [3:21]

        Road Trip Mix
        https://open.spotify.com/playlist/5ab...
          Playlist appears to contain multiple artists. ...

    Records without the REPORT_PLAYLIST_NAME field are ignored.

    Attributes:
        report_path: File the report is written to (overwritten per run).
        report_file: Open handle, set by open().
    """

    def __init__(self, report_path: Path) -> None:
        super().__init__()
        self.report_path = report_path
        self.report_file: TextIO | None = None

    def open(self) -> None:
        self.report_file = open(self.report_path, "w", encoding="utf-8")

    def emit(self, record: logging.LogRecord) -> None:
        if not hasattr(record, REPORT_PLAYLIST_NAME) or self.report_file is None:
            return

        try:
            name = getattr(record, REPORT_PLAYLIST_NAME)
            playlist_id = getattr(record, REPORT_PLAYLIST_ID, "")
            lines = getattr(record, REPORT_LINES, ())

            self.acquire()
            try:
                self.report_file.write(f"{name}\n{PLAYLIST_URL.format(playlist_id)}\n")
                for line in lines:
                    self.report_file.write(f"  {line}\n")
                self.report_file.write("\n")
                self.report_file.flush()
            finally:
                self.release()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self.report_file is not None:
            self.report_file.close()
            self.report_file = None
        super().close()


def setup_logging(logs_dir: Path, verbose: bool = False) -> None:
    """
    Configure the root logger. Call once at startup, after the
    configuration is loaded.

    Args:
        logs_dir: Directory for this run's log files; created if missing.
        verbose: Show DEBUG records on the console too (cache hits,
                 individual page fetches).

    Thread Safety:
        Not thread-safe. Call from the main thread before any work starts.
    """
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
    file_formatter = logging.Formatter(FILE_LOG_FORMAT, FILE_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)
    root_logger.handlers.clear()

    console_handler = TqdmLoggingHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    console_handler.setFormatter(ColoredConsoleFormatter())
    root_logger.addHandler(console_handler)

    full_handler = logging.FileHandler(logs_dir / f"log_full_{timestamp}.log", mode="w", encoding="utf-8")
    full_handler.setLevel(logging.DEBUG)
    full_handler.setFormatter(file_formatter)
    root_logger.addHandler(full_handler)

    error_handler = logging.FileHandler(logs_dir / f"log_errors_{timestamp}.log", mode="w", encoding="utf-8")
    error_handler.setLevel(logging.DEBUG)  # ErrorOnlyFilter does the filtering
    error_handler.setFormatter(file_formatter)
    error_handler.addFilter(ErrorOnlyFilter())
    root_logger.addHandler(error_handler)

    report_handler = CheckReportHandler(logs_dir / f"check_report_{timestamp}.log")
    report_handler.open()
    root_logger.addHandler(report_handler)

    # spotipy and urllib3 log every request at DEBUG
    logging.getLogger("spotipy").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """
    Get the logger for a module (pass __name__).

    Loggers obtained before setup_logging() have no handlers of their own
    and produce nothing until it runs.
    """
    return logging.getLogger(name)


def log_new_releases(
    logger: logging.Logger,
    playlist_name: str,
    playlist_id: str,
    track_lines: Iterable[str]
) -> None:
    """
    Log the new tracks found for a playlist, for the check report.

    Example:
        log_new_releases(logger, "Artist X Essentials", playlist_id,
                         ["2024-03-01  New Album - First Song [3:21]"])
    """
    lines = tuple(track_lines)
    logger.info(
        f"{len(lines)} new track(s) for playlist '{playlist_name}'",
        extra={
            REPORT_PLAYLIST_NAME: playlist_name,
            REPORT_PLAYLIST_ID: playlist_id,
            REPORT_LINES: lines,
        }
    )


def log_unresolved_playlist(
    logger: logging.Logger,
    playlist_name: str,
    playlist_id: str,
    message: str
) -> None:
    """Log a playlist whose main artist could not be identified, for the check report."""
    logger.warning(
        f"No main artist for playlist '{playlist_name}': {message}",
        extra={
            REPORT_PLAYLIST_NAME: playlist_name,
            REPORT_PLAYLIST_ID: playlist_id,
            REPORT_LINES: (message,),
        }
    )


def shutdown_logging() -> None:
    """Flush, close and remove every root handler. Called from the CLI's finally block."""
    root_logger = logging.getLogger()

    for handler in root_logger.handlers[:]:
        try:
            handler.flush()
            handler.close()
        except Exception:
            pass
        root_logger.removeHandler(handler)
