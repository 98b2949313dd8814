"""
Player Models for Signage CMS.

Represents physical playback devices and their sessions:
- Player: a screen with a device code, a device key and an assigned playlist
- PlayerSession: one uptime interval of a player, kept alive by heartbeats
"""

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


class Player(db.Model):
    """
    SQLAlchemy model representing a player device.

    Attributes:
        id: Integer primary key
        name: Device name, used together with device_key to link the TV app
        location: Free-form install location
        device_code: Unique 16-hex code the TV app uses on every call
        device_key: Unique pairing secret entered on the device
        linked: Whether the TV app has linked with this player
        playlist_id: Assigned playlist, if any
        created_at: Timestamp when the player was created
        updated_at: Timestamp when the player was last modified
    """

    __tablename__ = 'players'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    location = db.Column(db.String(255), nullable=True)
    device_code = db.Column(db.String(32), unique=True, nullable=False, index=True)
    device_key = db.Column(db.String(32), unique=True, nullable=False, index=True)
    linked = db.Column(db.Boolean, nullable=False, default=False)
    playlist_id = db.Column(db.Integer, db.ForeignKey('playlists.id', ondelete='SET NULL'), nullable=True, index=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    playlist = db.relationship('Playlist', back_populates='players')
    sessions = db.relationship(
        'PlayerSession',
        back_populates='player',
        order_by=lambda: [PlayerSession.started_at.desc(), PlayerSession.id.desc()],
        cascade='all, delete-orphan',
        lazy='select',
    )

    def latest_session(self):
        """Most recently started session, or None."""
        return self.sessions[0] if self.sessions else None

    def active_session(self):
        """Most recently started session that is still open, or None."""
        for session in self.sessions:
            if session.is_active:
                return session
        return None

    def to_dict(self, include_key=False):
        result = {
            'id': self.id,
            'name': self.name,
            'location': self.location,
            'deviceCode': self.device_code,
            'linked': self.linked,
            'playlistId': self.playlist_id,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if include_key:
            result['deviceKey'] = self.device_key
        return result

    def __repr__(self):
        return f'<Player {self.id} {self.name}>'


class PlayerSession(db.Model):
    """
    SQLAlchemy model representing a player uptime session.

    Attributes:
        id: Integer primary key
        player_id: Owning player
        started_at: When the TV app opened the session
        ended_at: When the session was closed (explicitly or as stale)
        last_active_at: Last heartbeat or play log seen on this session
        is_active: Whether the session is still open
    """

    __tablename__ = 'player_sessions'

    id = db.Column(db.Integer, primary_key=True)
    player_id = db.Column(db.Integer, db.ForeignKey('players.id', ondelete='CASCADE'), nullable=False, index=True)
    started_at = db.Column(DateTimeUTC(), nullable=False, default=utcnow, index=True)
    ended_at = db.Column(DateTimeUTC(), nullable=True)
    last_active_at = db.Column(DateTimeUTC(), nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    player = db.relationship('Player', back_populates='sessions')

    def touch(self, now=None):
        """Record a heartbeat."""
        self.last_active_at = now or utcnow()

    def end(self, ended_at=None):
        self.is_active = False
        self.ended_at = ended_at or utcnow()

    def duration_seconds(self, now=None):
        """Elapsed seconds from start to end (or to now while open)."""
        if not self.started_at:
            return 0
        end = self.ended_at or now or utcnow()
        return max(0, int((end - self.started_at).total_seconds()))

    def to_dict(self):
        return {
            'id': self.id,
            'playerId': self.player_id,
            'startedAt': isoformat(self.started_at),
            'endedAt': isoformat(self.ended_at),
            'lastActiveAt': isoformat(self.last_active_at),
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f'<PlayerSession {self.id} player={self.player_id} active={self.is_active}>'
