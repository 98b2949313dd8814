"""
Folder Model for Signage CMS.

A folder groups the media files of one client. Folders carry an optional
validity window and are soft-deleted into the trash.
"""

from datetime import timedelta

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


# Folders ending within this window are reported as "N days left"
EXPIRING_WINDOW = timedelta(days=7)


class Folder(db.Model):
    """
    SQLAlchemy model representing a client folder.

    Attributes:
        id: Integer primary key
        name: Folder name, unique among non-deleted folders
        validity_start: Optional start of the client's campaign
        validity_end: Optional end of the client's campaign
        verified: Only verified folders are listed on the dashboard
        is_deleted: Soft-delete flag (folder sits in the trash)
        deleted_at: When the folder was moved to the trash
        created_at: Timestamp when the folder was created
        updated_at: Timestamp when the folder was last modified
    """

    __tablename__ = 'folders'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False, index=True)
    validity_start = db.Column(DateTimeUTC(), nullable=True)
    validity_end = db.Column(DateTimeUTC(), nullable=True)
    verified = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(DateTimeUTC(), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    files = db.relationship('MediaFile', back_populates='folder', lazy='select',
                            order_by='MediaFile.id')

    def live_files(self):
        """Files of this folder that are not in the trash."""
        return [f for f in self.files if not f.is_deleted]

    def validity(self, now=None):
        """
        Classify the validity window relative to now.

        Returns:
            Tuple of (label, bucket) where bucket is one of
            'running', 'completed' or 'expiring'. The label equals the
            bucket except for expiring folders, which read "N days left".
        """
        if not self.validity_start or not self.validity_end:
            return 'running', 'running'

        now = now or utcnow()
        remaining = self.validity_end - now
        if self.validity_end < now:
            return 'completed', 'completed'
        if remaining > EXPIRING_WINDOW:
            return 'running', 'running'

        day_seconds = 24 * 60 * 60
        days_left = -(-int(remaining.total_seconds()) // day_seconds)
        return f'{days_left} days left', 'expiring'

    def validity_period_seconds(self):
        if not self.validity_start or not self.validity_end:
            return None
        return max(0, int((self.validity_end - self.validity_start).total_seconds()))

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'validityStart': isoformat(self.validity_start),
            'validityEnd': isoformat(self.validity_end),
            'verified': self.verified,
            'isDeleted': self.is_deleted,
            'deletedAt': isoformat(self.deleted_at),
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f'<Folder {self.id} {self.name}>'
