"""
UserSession Model for Signage CMS.

Represents an admin login session with token-based authentication.

Features:
- Opaque bearer token checked on every admin request
- Separate refresh token that can be exchanged for a fresh pair
- Activity tracking via last_active timestamp
- Immediate revocation by deleting the row
"""

from datetime import timedelta
import secrets

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


# Default session durations
DEFAULT_SESSION_HOURS = 8
DEFAULT_REFRESH_DAYS = 7


class UserSession(db.Model):
    """
    SQLAlchemy model representing an admin login session.

    Attributes:
        id: Integer primary key
        user_id: Foreign key reference to the user who owns this session
        token: Bearer token sent in the Authorization header
        refresh_token: Token exchanged at /auth/refresh-token
        ip_address: IP address from which the session was created
        user_agent: Browser/client user agent string
        expires_at: Timestamp when the bearer token expires
        refresh_expires_at: Timestamp when the refresh token expires
        last_active: Timestamp of last activity using this session
        created_at: Timestamp when the session was created
    """

    __tablename__ = 'user_sessions'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False, index=True)
    token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    refresh_token = db.Column(db.String(64), unique=True, nullable=False, index=True)
    ip_address = db.Column(db.String(45), nullable=True)
    user_agent = db.Column(db.String(500), nullable=True)
    expires_at = db.Column(DateTimeUTC(), nullable=False)
    refresh_expires_at = db.Column(DateTimeUTC(), nullable=False)
    last_active = db.Column(DateTimeUTC(), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)

    # Relationships
    user = db.relationship('User', backref=db.backref('sessions', lazy='dynamic', cascade='all, delete-orphan'))

    @classmethod
    def generate_token(cls):
        """
        Generate a cryptographically secure session token.

        Returns:
            A 43-character URL-safe base64-encoded token (32 bytes of randomness)
        """
        return secrets.token_urlsafe(32)

    @classmethod
    def create_session(cls, user_id, ip_address=None, user_agent=None,
                       session_hours=DEFAULT_SESSION_HOURS, refresh_days=DEFAULT_REFRESH_DAYS):
        """
        Create a new session for a user.

        Args:
            user_id: ID of the user to create session for
            ip_address: Client IP address
            user_agent: Client user agent string
            session_hours: Lifetime of the bearer token
            refresh_days: Lifetime of the refresh token

        Returns:
            New UserSession instance (not yet committed to database)
        """
        now = utcnow()
        return cls(
            user_id=user_id,
            token=cls.generate_token(),
            refresh_token=cls.generate_token(),
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent and len(user_agent) > 500 else user_agent,
            expires_at=now + timedelta(hours=session_hours),
            refresh_expires_at=now + timedelta(days=refresh_days),
            last_active=now,
        )

    def rotate(self, session_hours=DEFAULT_SESSION_HOURS, refresh_days=DEFAULT_REFRESH_DAYS):
        """Issue a new token pair in place, invalidating the old one."""
        now = utcnow()
        self.token = self.generate_token()
        self.refresh_token = self.generate_token()
        self.expires_at = now + timedelta(hours=session_hours)
        self.refresh_expires_at = now + timedelta(days=refresh_days)
        self.last_active = now

    def is_expired(self):
        return utcnow() > self.expires_at

    def is_refresh_expired(self):
        return utcnow() > self.refresh_expires_at

    def update_activity(self):
        """Update the last_active timestamp to current time."""
        self.last_active = utcnow()

    def to_dict(self, include_token=False):
        """
        Serialize the session to a dictionary for API responses.

        Args:
            include_token: If True, include both tokens (only on login/refresh)
        """
        result = {
            'id': self.id,
            'userId': self.user_id,
            'ipAddress': self.ip_address,
            'userAgent': self.user_agent,
            'expiresAt': isoformat(self.expires_at),
            'lastActive': isoformat(self.last_active),
            'createdAt': isoformat(self.created_at),
        }

        if include_token:
            result['accessToken'] = self.token
            result['refreshToken'] = self.refresh_token

        return result

    def __repr__(self):
        return f'<UserSession {self.id} user={self.user_id}>'
