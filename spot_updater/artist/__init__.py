"""
Main-artist resolution and new-release detection.

    - MainArtistResolver: Infers and stores a playlist's main artist
    - NewReleaseDiffer: Finds the main artist's releases missing from a playlist

Usage:
    from spot_updater.artist import MainArtistResolver, NewReleaseDiffer

    resolution = resolver.resolve(playlist_id)
    if resolution.accepted:
        diff = differ.find_new_tracks(resolution.playlist)
"""

from spot_updater.artist.releases import NewReleaseDiffer, ReleaseDiff
from spot_updater.artist.resolver import MainArtistResolver, Resolution

__all__ = [
    "MainArtistResolver",
    "Resolution",
    "NewReleaseDiffer",
    "ReleaseDiff",
]
