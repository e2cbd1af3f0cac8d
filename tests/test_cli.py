"""Test the command-line interface"""

from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import FakeSpotify, make_artist, make_track
from spot_updater.cli import cli
from spot_updater.core.exceptions import SpotifyError


MAIN = make_artist("main", "Main Artist")


@pytest.fixture
def config_file(temp_dir):
    path = temp_dir / "config.yaml"
    path.write_text(
        "spotify:\n"
        "  client_id: \"abc\"\n"
        "  client_secret: \"def\"\n"
        "storage:\n"
        f"  directory: \"{temp_dir / 'storage'}\"\n",
        encoding="utf-8"
    )
    return path


@pytest.fixture
def spotify():
    fake = FakeSpotify()
    fake.add_playlist("p1", "Main Artist", [make_track("t1", [MAIN], "2019-01-01")])
    fake.add_album("new", "main", "2021-05-05", ["n1", "n2"])
    return fake


def run(config_file, spotify, *args, input=None):
    with patch("spot_updater.cli._initialize_spotify", return_value=spotify):
        return CliRunner().invoke(cli, ["--config", str(config_file), *args], input=input)


class TestCommands:
    """Test CLI commands against the fake client"""

    def test_playlists(self, config_file, spotify):
        """Test the playlist list shows names and status"""
        result = run(config_file, spotify, "playlists")

        assert result.exit_code == 0
        assert "page 1/1 (1 playlists)" in result.output
        assert "Main Artist" in result.output
        assert "Never Updated" in result.output

    def test_tracks(self, config_file, spotify):
        result = run(config_file, spotify, "tracks", "p1")

        assert result.exit_code == 0
        assert "Track t1 - Main Artist [3:00]" in result.output

    def test_check_adds_tracks(self, config_file, spotify):
        """Test check --yes adds the new tracks"""
        result = run(config_file, spotify, "check", "p1", "--yes")

        assert result.exit_code == 0
        assert "2 new track(s)" in result.output
        assert spotify.added == [("p1", ["spotify:track:n1", "spotify:track:n2"])]

    def test_check_declined(self, config_file, spotify):
        """Test declining the prompt adds nothing"""
        result = run(config_file, spotify, "check", "p1", input="n\n")

        assert result.exit_code == 0
        assert "Skipped." in result.output
        assert spotify.added == []

    def test_check_all_reports_only(self, config_file, spotify):
        result = run(config_file, spotify, "check-all")

        assert result.exit_code == 0
        assert "Main Artist: 2 new track(s)" in result.output
        assert spotify.added == []

    def test_forget(self, config_file, spotify):
        result = run(config_file, spotify, "forget", "--yes")

        assert result.exit_code == 0
        assert "Removed your profile and 1 playlist(s)" in result.output


class TestExitCodes:
    """Test failures map to exit codes"""

    def test_config_error(self, temp_dir, spotify):
        path = temp_dir / "config.yaml"
        path.write_text("cache: {}\n", encoding="utf-8")

        result = run(path, spotify, "playlists")

        assert result.exit_code == 1

    def test_spotify_auth_error(self, config_file, spotify):
        spotify.failures[("current_user",)] = SpotifyError("Token rejected", is_auth_error=True)

        result = run(config_file, spotify, "playlists")

        assert result.exit_code == 3
        assert "Log in again" in result.output

    def test_unknown_playlist(self, config_file, spotify):
        result = run(config_file, spotify, "tracks", "missing")

        assert result.exit_code == 2
