"""
Command-line interface for spot-updater.

This module implements the CLI using Click, exposing the PlaylistUpdater
operations for the logged-in Spotify user.
rich-click is used for the output colors.

Commands:
    spot-updater playlists [PAGE]               List your playlists
    spot-updater tracks <playlist-id> [PAGE]    List a playlist's tracks
    spot-updater check <playlist-id> [--yes]    Find and add new releases
    spot-updater check-all                      Report new releases for all playlists
    spot-updater refresh [<playlist-id>]        Drop cached data
    spot-updater forget                         Delete everything stored about you

Options:
    --config <path>                             Path to config.yaml
    --verbose                                   Show debug output

Usage:
    # First run opens the browser for the Spotify login
    spot-updater playlists

    # Check one playlist and add its main artist's new tracks
    spot-updater check 37i9dQZF1DX4JAvHpjipBk

Configuration:
    The CLI requires a config.yaml file in the current directory (or the
    path given with --config) with:
    - Spotify API credentials (client_id, client_secret)
    - Optional storage directory, cache expiry and HTTP settings

Exit codes:
    0 success, 1 configuration error, 2 database error, 3 Spotify error,
    4 other spot-updater error, 130 interrupted.
"""

import sys
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

import rich_click as click
from spotipy.oauth2 import SpotifyOAuth
from tqdm import tqdm

# Configure rich-click for better help formatting
click.rich_click.USE_RICH_MARKUP = True
click.rich_click.SHOW_ARGUMENTS = True
click.rich_click.GROUP_ARGUMENTS_OPTIONS = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100

from spot_updater import __version__
from spot_updater.core import (
    Config,
    ConfigError,
    Database,
    DatabaseError,
    KeyedLock,
    SpotifyError,
    SpotUpdaterError,
    UserRecord,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from spot_updater.spotify import TRACKS_PER_REQUEST, SpotifyClient
from spot_updater.updater import PlaylistUpdater, describe_new_track
from spot_updater.utils import format_length

logger = get_logger(__name__)


TOKEN_CACHE_FILENAME = ".spotify_token_cache"


@click.group()
@click.option(
    "--config", "config_path",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="Configuration file (default: ./config.yaml)"
)
@click.option(
    "--verbose",
    is_flag=True,
    help="Show debug output (page fetches, cache hits)"
)
@click.version_option(__version__, prog_name="spot-updater")
@click.pass_context
def cli(ctx: click.Context, config_path: Path | None, verbose: bool) -> None:
    """
    spot-updater: Keep artist playlists up to date with new releases.

    Each playlist is matched to its main artist; newer albums and singles
    by that artist are offered as tracks to add.

    \b
    BASIC USAGE:
        spot-updater playlists                 # List your playlists
        spot-updater check <playlist-id>       # Find new tracks, confirm, add
        spot-updater check-all                 # Report new tracks everywhere
    """
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["verbose"] = verbose


@contextmanager
def _session(ctx: click.Context) -> Iterator[tuple[PlaylistUpdater, UserRecord]]:
    """
    Set up configuration, logging, storage and the Spotify login for one
    command, and map failures to exit codes.

    Yields:
        The updater and the registered current user.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    database: Database | None = None

    try:
        config = load_config(ctx.obj["config_path"])

        setup_logging(config.storage.logs_directory, verbose=ctx.obj["verbose"])
        logger.info(f"spot-updater {__version__} starting ({ctx.invoked_subcommand})")

        database = Database(config.storage.database_path)
        client = _initialize_spotify(config)

        updater = PlaylistUpdater(database, client, config.cache, locks=KeyedLock())
        user = updater.register_user(client.current_user())

        yield updater, user

        logger.info("spot-updater completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except DatabaseError as e:
        click.echo(f"Database error: {e.message}", err=True)
        logger.error(f"Database error: {e.message}", exc_info=True)
        sys.exit(2)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Log in again, or check client_id and client_secret in config.yaml", err=True)
        elif e.is_rate_limit:
            click.echo("Spotify is rate limiting requests, try again later", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotUpdaterError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(4)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    finally:
        if database is not None:
            database.close()
        shutdown_logging()


def _initialize_spotify(config: Config) -> SpotifyClient:
    """
    Log in with the OAuth authorization-code flow.

    The token is cached in the storage directory; spotipy refreshes it
    and only opens the browser when no valid token is cached.
    """
    auth_manager = SpotifyOAuth(
        client_id=config.spotify.client_id,
        client_secret=config.spotify.client_secret,
        redirect_uri=config.spotify.redirect_uri,
        scope=config.spotify.scope,
        cache_path=str(config.storage.directory / TOKEN_CACHE_FILENAME),
        open_browser=True
    )
    return SpotifyClient.from_auth_manager(auth_manager, config.http)


@cli.command()
@click.argument("page", type=int, default=1)
@click.pass_context
def playlists(ctx: click.Context, page: int) -> None:
    """List your playlists and their update status."""
    with _session(ctx) as (updater, user):
        result = updater.get_playlists_page(user.id, page)
        click.echo(f"{user.display_name}: page {result.page}/{result.max_page} ({result.total} playlists)")
        for playlist in result.playlists:
            click.echo(
                f"  {playlist.id}  {playlist.name}  "
                f"({playlist.track_total} tracks)  {playlist.updated_message}"
            )


@cli.command()
@click.argument("playlist_id")
@click.argument("page", type=int, default=1)
@click.pass_context
def tracks(ctx: click.Context, playlist_id: str, page: int) -> None:
    """List the tracks of a playlist."""
    with _session(ctx) as (updater, _user):
        result = updater.get_tracks_page(playlist_id, page)
        click.echo(f"{result.playlist.name}: page {result.page}/{result.max_page} ({result.total} tracks)")
        first_number = (result.page - 1) * TRACKS_PER_REQUEST + 1
        for number, track in enumerate(result.tracks, start=first_number):
            if not track:
                click.echo(f"  {number:>4}. (unavailable)")
                continue
            artists = ", ".join(a.get("name", "") for a in track.get("artists", []))
            click.echo(
                f"  {number:>4}. {track.get('name', '')} - {artists} "
                f"[{format_length(track.get('duration_ms'))}]"
            )


@cli.command()
@click.argument("playlist_id")
@click.option("--yes", "assume_yes", is_flag=True, help="Add new tracks without asking")
@click.pass_context
def check(ctx: click.Context, playlist_id: str, assume_yes: bool) -> None:
    """Find the main artist's new tracks for a playlist and offer to add them."""
    with _session(ctx) as (updater, _user):
        result = updater.get_or_resolve_main_artist(playlist_id)

        if result.rejection_message:
            click.echo(result.rejection_message)
            return
        if result.initial_resolution:
            click.echo(f"Main artist identified. {result.playlist.updated_message}")
        if not result.candidate_tracks:
            click.echo("No new tracks found.")
            return

        click.echo(f"{len(result.candidate_tracks)} new track(s) for {result.playlist.name}:")
        for new_track in result.candidate_tracks:
            click.echo(f"  {describe_new_track(new_track)}")

        if assume_yes or click.confirm("Add these tracks to the playlist?", default=True):
            playlist = updater.commit_new_tracks(
                playlist_id,
                [new_track.uri for new_track in result.candidate_tracks],
                result.checked_at
            )
            click.echo(f"Added. {playlist.updated_message}")
        else:
            playlist = updater.mark_checked(playlist_id, result.checked_at)
            click.echo(f"Skipped. {playlist.updated_message}")


@cli.command("check-all")
@click.pass_context
def check_all(ctx: click.Context) -> None:
    """Report new tracks for every playlist (nothing is added)."""
    with _session(ctx) as (updater, user):
        found: list[tuple[str, int]] = []
        skipped = 0
        for playlist in tqdm(updater.all_playlists(user.id), desc="Checking playlists", unit="playlist"):
            if playlist.various_artists:
                skipped += 1
                continue
            result = updater.get_or_resolve_main_artist(playlist.id)
            if result.rejection_message:
                skipped += 1
            elif result.candidate_tracks:
                found.append((playlist.name, len(result.candidate_tracks)))

        for name, count in found:
            click.echo(f"  {name}: {count} new track(s)")
        click.echo(f"{len(found)} playlist(s) with new tracks, {skipped} without a main artist")


@cli.command()
@click.argument("playlist_id", required=False)
@click.pass_context
def refresh(ctx: click.Context, playlist_id: str | None) -> None:
    """Drop cached tracks of a playlist, or all your cached data."""
    with _session(ctx) as (updater, user):
        if playlist_id:
            playlist = updater.refresh_playlist(playlist_id)
            click.echo(f"Refreshed {playlist.name}")
        else:
            count = updater.force_invalidate_user(user.id)
            updater.ensure_playlists_page(user.id, 1)
            click.echo(f"Refreshed your playlist list and {count} playlist(s)")


@cli.command()
@click.option("--yes", "assume_yes", is_flag=True, help="Do not ask for confirmation")
@click.pass_context
def forget(ctx: click.Context, assume_yes: bool) -> None:
    """Delete everything stored about you (profile, playlists, caches)."""
    with _session(ctx) as (updater, user):
        if not assume_yes and not click.confirm(f"Delete all data stored for {user.display_name}?"):
            return
        removed = updater.remove_personal_info(user.id)
        click.echo(f"Removed your profile and {removed} playlist(s)")


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `spot-updater` from the command line.
    It invokes the Click CLI group.
    """
    cli()


if __name__ == "__main__":
    main()
