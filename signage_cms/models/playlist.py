"""
Playlist Model for Signage CMS.

Represents playlists and their ordered entries:
- Playlist metadata: name, default item duration
- Playlist items: files or nested playlists at a 1-based play_order
"""

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


DEFAULT_ITEM_DURATION = 30


class Playlist(db.Model):
    """
    SQLAlchemy model representing a playlist.

    A playlist is an ordered collection of media files and other
    playlists that can be assigned to players.

    Attributes:
        id: Integer primary key
        name: Human-readable playlist name
        default_duration: Seconds each still image plays unless overridden
        created_at: Timestamp when the playlist was created
        updated_at: Timestamp when the playlist was last modified
    """

    __tablename__ = 'playlists'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    default_duration = db.Column(db.Integer, nullable=False, default=DEFAULT_ITEM_DURATION)
    created_at = db.Column(DateTimeUTC(), default=utcnow)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    items = db.relationship(
        'PlaylistItem',
        foreign_keys='PlaylistItem.playlist_id',
        back_populates='playlist',
        order_by='PlaylistItem.play_order',
        cascade='all, delete-orphan',
        lazy='select',
    )

    players = db.relationship('Player', back_populates='playlist', lazy='select')

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'defaultDuration': self.default_duration,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Playlist {self.id} {self.name}>'


class PlaylistItem(db.Model):
    """
    SQLAlchemy model representing one entry of a playlist.

    Exactly one of ``file_id`` and ``sub_playlist_id`` is set; the
    ``is_sub_playlist`` flag says which. ``play_order`` values of one
    playlist are always 1..N without gaps.

    Attributes:
        id: Integer primary key
        playlist_id: Owning playlist
        play_order: 1-based position within the playlist
        duration: Seconds this entry plays
        is_sub_playlist: Whether the entry embeds another playlist
        file_id: Media file played by this entry
        sub_playlist_id: Playlist embedded by this entry
    """

    __tablename__ = 'playlist_items'

    id = db.Column(db.Integer, primary_key=True)
    playlist_id = db.Column(db.Integer, db.ForeignKey('playlists.id', ondelete='CASCADE'), nullable=False, index=True)
    play_order = db.Column(db.Integer, nullable=False)
    duration = db.Column(db.Integer, nullable=True)
    is_sub_playlist = db.Column(db.Boolean, nullable=False, default=False)
    file_id = db.Column(db.Integer, db.ForeignKey('media_files.id', ondelete='CASCADE'), nullable=True, index=True)
    sub_playlist_id = db.Column(db.Integer, db.ForeignKey('playlists.id', ondelete='CASCADE'), nullable=True, index=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    playlist = db.relationship('Playlist', foreign_keys=[playlist_id], back_populates='items')
    sub_playlist = db.relationship('Playlist', foreign_keys=[sub_playlist_id])
    file = db.relationship('MediaFile')

    __table_args__ = (
        db.CheckConstraint(
            '(file_id IS NULL) != (sub_playlist_id IS NULL)',
            name='ck_playlist_items_one_target',
        ),
    )

    def to_dict(self):
        return {
            'id': self.id,
            'playlistId': self.playlist_id,
            'playOrder': self.play_order,
            'duration': self.duration,
            'isSubPlaylist': bool(self.is_sub_playlist),
            'fileId': self.file_id,
            'subPlaylistId': self.sub_playlist_id,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<PlaylistItem {self.id} playlist={self.playlist_id} order={self.play_order}>'
