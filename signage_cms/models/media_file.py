"""
MediaFile Model for Signage CMS.

Represents an uploaded media object (image, video or PDF) stored under
``file_key`` in the configured storage backend.
"""

from signage_cms.models import db, DateTimeUTC, utcnow, isoformat


def top_level_type(mime):
    """Return the top-level part of a MIME type ('video/mp4' -> 'video')."""
    if not mime:
        return None
    return mime.split('/')[0]


class MediaFile(db.Model):
    """
    SQLAlchemy model representing a media file inside a folder.

    Attributes:
        id: Integer primary key
        folder_id: Owning folder
        name: Display name, unique among live files of the folder
        file_type: MIME type reported at upload
        file_key: Object key in storage
        file_size: Size in bytes
        duration: Playback length in seconds (videos), 0 for stills
        verified: Whether the upload was verified
        is_deleted: Soft-delete flag (file sits in the trash)
        deleted_at: When the file was moved to the trash
        created_at: Timestamp when the file was uploaded
        updated_at: Timestamp when the file was last modified
    """

    __tablename__ = 'media_files'

    id = db.Column(db.Integer, primary_key=True)
    folder_id = db.Column(db.Integer, db.ForeignKey('folders.id', ondelete='CASCADE'), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    file_type = db.Column(db.String(100), nullable=False)
    file_key = db.Column(db.String(500), nullable=False)
    file_size = db.Column(db.BigInteger, nullable=False, default=0)
    duration = db.Column(db.Integer, nullable=False, default=0)
    verified = db.Column(db.Boolean, nullable=False, default=True)
    is_deleted = db.Column(db.Boolean, nullable=False, default=False, index=True)
    deleted_at = db.Column(DateTimeUTC(), nullable=True)
    created_at = db.Column(DateTimeUTC(), default=utcnow)
    updated_at = db.Column(DateTimeUTC(), default=utcnow, onupdate=utcnow)

    folder = db.relationship('Folder', back_populates='files')

    @property
    def type_group(self):
        return top_level_type(self.file_type)

    @property
    def is_video(self):
        return self.type_group == 'video'

    @property
    def is_image(self):
        return self.type_group == 'image'

    def to_dict(self, url=None):
        """
        Serialize the file for API responses.

        Args:
            url: Signed download URL, included as ``signedUrl`` when given
        """
        result = {
            'id': self.id,
            'name': self.name,
            'fileType': self.file_type,
            'fileTypeGroup': self.type_group,
            'fileKey': self.file_key,
            'fileSize': self.file_size,
            'duration': self.duration,
            'verified': self.verified,
            'folderId': self.folder_id,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }
        if url is not None:
            result['signedUrl'] = url
        return result

    def __repr__(self):
        return f'<MediaFile {self.id} {self.name}>'
