"""
Spotify integration module for spot-updater.

This module provides all functionality for talking to the Spotify Web API:
    - SpotifyClient: Per-user API client wrapping spotipy
    - Page, ReleaseDate, Album, NewTrack: Data models for Spotify entities

Usage:
    from spot_updater.spotify import SpotifyClient, ReleaseDate

    client = SpotifyClient.from_access_token(token)
    page = client.playlist_items(playlist_id, offset=0)
"""

from spot_updater.spotify.client import (
    ALBUMS_PER_REQUEST,
    ARTIST_ALBUMS_PER_REQUEST,
    PLAYLISTS_PER_REQUEST,
    TRACKS_PER_REQUEST,
    TRACKS_TO_ADD_PER_REQUEST,
    SpotifyClient,
)
from spot_updater.spotify.models import Album, NewTrack, Page, ReleaseDate

__all__ = [
    # Client
    "SpotifyClient",
    "PLAYLISTS_PER_REQUEST",
    "TRACKS_PER_REQUEST",
    "ALBUMS_PER_REQUEST",
    "TRACKS_TO_ADD_PER_REQUEST",
    "ARTIST_ALBUMS_PER_REQUEST",
    # Models
    "Page",
    "ReleaseDate",
    "Album",
    "NewTrack",
]
