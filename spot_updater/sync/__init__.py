"""
Cache synchronization for spot-updater.

    - CacheSynchronizer: Generic incremental synchronizer for paginated
      collections
    - CollectionSync: Playlist-list and track-list specializations,
      including playlist reconciliation

Usage:
    from spot_updater.sync import CacheSynchronizer, CollectionSync

    synchronizer = CacheSynchronizer(database, locks)
    collections = CollectionSync(database, client, synchronizer, config.cache)
    state = collections.ensure_tracks(playlist_id, page=2)
"""

from spot_updater.sync.collections import CollectionSync
from spot_updater.sync.synchronizer import CacheSynchronizer, is_page_sufficient

__all__ = [
    "CacheSynchronizer",
    "CollectionSync",
    "is_page_sufficient",
]
