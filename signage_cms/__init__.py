"""
Signage CMS.

Backend for managing digital-signage media players: client folders and
media files, playlists with nested sub-playlists, player devices and
their sessions, play logs and analytics.
"""

__version__ = '0.1.0'
