"""
PlayLog Model for Signage CMS.

One row per playback reported by a player. Analytics aggregate these.
"""

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


class PlayLog(db.Model):
    """
    SQLAlchemy model representing a reported playback.

    Attributes:
        id: Integer primary key
        player_id: Reporting player
        file_id: File that was played
        playlist_id: Playlist assigned to the player at the time
        playlist_item_id: Entry of that playlist that was played
        sub_playlist_id: Nested playlist the file came from, if any
        is_sub_playlist: Whether the file came from a nested playlist
        created_at: When the playback was reported
    """

    __tablename__ = 'play_logs'

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    file_id = db.Column(db.Integer, db.ForeignKey('media_files.id', ondelete='CASCADE'), nullable=False, index=True)
    playlist_id = db.Column(db.Integer, db.ForeignKey('playlists.id', ondelete='SET NULL'), nullable=True, index=True)
    playlist_item_id = db.Column(db.Integer, db.ForeignKey('playlist_items.id', ondelete='SET NULL'), nullable=True, index=True)
    sub_playlist_id = db.Column(db.Integer, db.ForeignKey('playlists.id', ondelete='SET NULL'), nullable=True)
    is_sub_playlist = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(DateTimeUTC(), default=utcnow, index=True)

    player = db.relationship('Player')
    file = db.relationship('MediaFile')
    playlist = db.relationship('Playlist', foreign_keys=[playlist_id])
    playlist_item = db.relationship('PlaylistItem')

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'fileId': self.file_id,
            'playlistId': self.playlist_id,
            'playlistFileId': self.playlist_item_id,
            'subPlaylistId': self.sub_playlist_id,
            'isSubPlaylist': self.is_sub_playlist,
            'createdAt': isoformat(self.created_at),
        }

    def __repr__(self):
        return f'<PlayLog {self.id} player={self.player_id} file={self.file_id}>'
