"""
Signage CMS Routes Package

Blueprint registration for all API route modules:
- Auth: Admin accounts, login, token refresh, logout
- Media: Client folders, uploads and media files
- Playlists: Playlists, ordered items and nested playlists
- Players: Player devices and their activity
- TV App: Device-facing link, playlist, play log and session endpoints
- Trash: Soft-deleted folders and files
- Analytics: Dashboard counters and play log breakdowns
"""

# Import Auth blueprint from its module
from signage_cms.routes.auth import auth_bp

# Import Media blueprint from its module
from signage_cms.routes.media import media_bp

# Import Playlists blueprint from its module
from signage_cms.routes.playlists import playlists_bp

# Import Players blueprint from its module
from signage_cms.routes.players import players_bp

# Import TV App blueprint from its module
from signage_cms.routes.tv_app import tv_app_bp

# Import Trash blueprint from its module
from signage_cms.routes.trash import trash_bp

# Import Analytics blueprint from its module
from signage_cms.routes.analytics import analytics_bp


__all__ = [
    'auth_bp',
    'media_bp',
    'playlists_bp',
    'players_bp',
    'tv_app_bp',
    'trash_bp',
    'analytics_bp',
]
