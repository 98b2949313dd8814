"""
Signage CMS Models Package.

SQLAlchemy models for the signage backend including:
- Users (admin accounts)
- User Sessions (bearer and refresh tokens)
- Folders (clients owning media)
- Media Files (uploaded objects, soft-deletable)
- Playlists and Playlist Items (ordered files and nested playlists)
- Players and Player Sessions (devices and their heartbeats)
- Play Logs (one row per reported playback)
"""

from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy import DateTime as _SADateTime
from sqlalchemy.types import TypeDecorator


class DateTimeUTC(TypeDecorator):
    """DateTime type that ensures values are always timezone-aware (UTC).

    SQLite stores datetimes as naive strings.  This TypeDecorator adds UTC
    timezone info when reading and strips it when writing, so Python code
    can safely compare with ``datetime.now(timezone.utc)`` without hitting
    "can't compare offset-naive and offset-aware datetimes".
    """

    impl = _SADateTime
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and isinstance(value, datetime):
            if value.tzinfo is not None:
                value = value.astimezone(timezone.utc)
            return value.replace(tzinfo=None)
        return value

    def process_result_value(self, value, dialect):
        if value is not None and isinstance(value, datetime):
            if value.tzinfo is None:
                return value.replace(tzinfo=timezone.utc)
        return value


class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy models.

    All models should inherit from db.Model which uses this Base class.
    """
    pass


def utcnow():
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def isoformat(value):
    """Serialize an optional datetime as ISO-8601 with a Z suffix."""
    if value is None:
        return None
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value.isoformat() + 'Z'


# SQLAlchemy database instance
db = SQLAlchemy(model_class=Base)


# Import models after db is defined to avoid circular imports
from signage_cms.models.user import User
from signage_cms.models.user_session import UserSession
from signage_cms.models.folder import Folder
from signage_cms.models.media_file import MediaFile
from signage_cms.models.playlist import Playlist, PlaylistItem
from signage_cms.models.player import Player, PlayerSession
from signage_cms.models.play_log import PlayLog

__all__ = [
    'db',
    'Base',
    'DateTimeUTC',
    'utcnow',
    'isoformat',
    'User',
    'UserSession',
    'Folder',
    'MediaFile',
    'Playlist',
    'PlaylistItem',
    'Player',
    'PlayerSession',
    'PlayLog',
]
