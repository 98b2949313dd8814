"""
Signage CMS Services Package.

Business logic services including:
- PlaylistOrderService: Keeps playlist play orders contiguous and acyclic
- PresenceService: Online/offline status and stale session reconciliation
- TrashService: Soft delete, restore and purge of folders and files
- AnalyticsService: Play log and session aggregation
- DeviceCodeGenerator: Unique player device codes and keys
- Storage backends: S3 and local media storage with signed URLs
"""

from signage_cms.services.playlist_order import PlaylistOrderService
from signage_cms.services.presence import PresenceService
from signage_cms.services.trash import TrashService
from signage_cms.services.analytics import AnalyticsService
from signage_cms.services.device_codes import DeviceCodeGenerator
from signage_cms.services.storage import get_storage, signed_url

__all__ = [
    'PlaylistOrderService',
    'PresenceService',
    'TrashService',
    'AnalyticsService',
    'DeviceCodeGenerator',
    'get_storage',
    'signed_url',
]
