"""
Trash Service for Signage CMS.

Soft delete and restore of folders and media files.

Deleting moves rows into the trash (``is_deleted``) and drops the
deleted files from every playlist. Restoring brings rows back, renaming
them "name (1).ext", "name (2).ext", ... when a live row took the name
in the meantime. Permanent deletion removes rows and returns the storage
keys the caller should delete after committing.
"""

import logging
import time
from typing import Callable, List, Optional

from signage_cms.models import db, Folder, MediaFile, PlayLog, utcnow
from signage_cms.services.playlist_order import PlaylistOrderService


logger = logging.getLogger(__name__)

FOLDER = 'folder'
FILE = 'file'
KINDS = (FOLDER, FILE)


class TrashError(Exception):
    """Base exception for trash operations."""
    pass


class TrashItemNotFound(TrashError):
    """Raised when the item does not exist or is not in the trash."""
    pass


def split_name_ext(name: str):
    """Split 'clip.final.mp4' into ('clip.final', '.mp4'); dotfiles keep no extension."""
    idx = name.rfind('.')
    if idx <= 0 or idx == len(name) - 1:
        return name, ''
    return name[:idx], name[idx:]


def next_name(desired: str, exists: Callable[[str], bool], max_tries: int = 1000) -> str:
    """
    First free variant of a name.

    Returns ``desired`` if unused, else "base (n).ext" for the smallest
    free n below max_tries, else a timestamped variant.
    """
    if not exists(desired):
        return desired
    base, ext = split_name_ext(desired)
    for i in range(1, max_tries):
        candidate = f'{base} ({i}){ext}'
        if not exists(candidate):
            return candidate
    return f'{base} ({int(time.time() * 1000)}){ext}'


def folder_name_taken(name: str, exclude_id: Optional[int] = None) -> bool:
    query = Folder.query.filter(Folder.name == name, Folder.is_deleted.is_(False))
    if exclude_id is not None:
        query = query.filter(Folder.id != exclude_id)
    return query.first() is not None


def file_name_taken(folder_id: int, name: str, exclude_id: Optional[int] = None) -> bool:
    query = MediaFile.query.filter(
        MediaFile.folder_id == folder_id,
        MediaFile.name == name,
        MediaFile.is_deleted.is_(False),
    )
    if exclude_id is not None:
        query = query.filter(MediaFile.id != exclude_id)
    return query.first() is not None


class TrashService:
    """
    Service class for soft delete, restore and purge.

    Methods stage changes on ``db.session``; callers commit.
    """

    @classmethod
    def soft_delete_files(cls, files: List[MediaFile], now=None) -> int:
        """Move files to the trash and remove them from every playlist."""
        now = now or utcnow()
        live = [f for f in files if not f.is_deleted]
        for media_file in live:
            media_file.is_deleted = True
            media_file.deleted_at = now
        PlaylistOrderService.remove_file_references([f.id for f in live])
        return len(live)

    @classmethod
    def soft_delete_folders(cls, folders: List[Folder], now=None) -> int:
        """Move folders and all their live files to the trash."""
        now = now or utcnow()
        count = 0
        for folder in folders:
            if folder.is_deleted:
                continue
            folder.is_deleted = True
            folder.deleted_at = now
            cls.soft_delete_files(folder.live_files(), now=now)
            count += 1
        return count

    @classmethod
    def _restore_folder_row(cls, folder: Folder) -> None:
        folder.name = next_name(folder.name, lambda candidate: folder_name_taken(candidate, exclude_id=folder.id))
        folder.is_deleted = False
        folder.deleted_at = None

    @classmethod
    def _restore_file_row(cls, media_file: MediaFile) -> None:
        media_file.name = next_name(
            media_file.name,
            lambda candidate: file_name_taken(media_file.folder_id, candidate, exclude_id=media_file.id),
        )
        media_file.is_deleted = False
        media_file.deleted_at = None

    @classmethod
    def restore_folder(cls, folder_id: int) -> Folder:
        """
        Restore a folder together with the files deleted along with it.

        Raises:
            TrashItemNotFound: If the folder is not in the trash
        """
        folder = db.session.get(Folder, folder_id)
        if folder is None or not folder.is_deleted:
            raise TrashItemNotFound('Folder not found in trash')

        deleted_at = folder.deleted_at
        cls._restore_folder_row(folder)
        db.session.flush()
        for media_file in folder.files:
            if media_file.is_deleted and deleted_at is not None and media_file.deleted_at == deleted_at:
                cls._restore_file_row(media_file)
                db.session.flush()
        return folder

    @classmethod
    def restore_file(cls, file_id: int) -> MediaFile:
        """
        Restore a file; a trashed parent folder is restored first.

        Raises:
            TrashItemNotFound: If the file is not in the trash
        """
        media_file = db.session.get(MediaFile, file_id)
        if media_file is None or not media_file.is_deleted:
            raise TrashItemNotFound('File not found in trash')

        folder = media_file.folder
        if folder is not None and folder.is_deleted:
            cls._restore_folder_row(folder)
            db.session.flush()

        cls._restore_file_row(media_file)
        db.session.flush()
        return media_file

    @classmethod
    def restore(cls, kind: str, item_id: int):
        if kind == FOLDER:
            return cls.restore_folder(item_id)
        if kind == FILE:
            return cls.restore_file(item_id)
        raise TrashError(f'Unknown trash item kind: {kind}')

    @classmethod
    def restore_all(cls) -> dict:
        """Restore every trashed folder, then every trashed file."""
        folders = Folder.query.filter(Folder.is_deleted.is_(True)).order_by(Folder.deleted_at.desc()).all()
        for folder in folders:
            cls._restore_folder_row(folder)
            db.session.flush()

        files = MediaFile.query.filter(MediaFile.is_deleted.is_(True)).order_by(MediaFile.deleted_at.desc()).all()
        for media_file in files:
            cls._restore_file_row(media_file)
            db.session.flush()

        return {'folders': len(folders), 'files': len(files)}

    @classmethod
    def _purge_files(cls, files: List[MediaFile]) -> List[str]:
        if not files:
            return []
        file_ids = [f.id for f in files]
        keys = [f.file_key for f in files if f.file_key]
        PlaylistOrderService.remove_file_references(file_ids)
        PlayLog.query.filter(PlayLog.file_id.in_(file_ids)).delete(synchronize_session=False)
        for media_file in files:
            db.session.delete(media_file)
        db.session.flush()
        return keys

    @classmethod
    def delete_permanently(cls, kind: str, item_id: int) -> List[str]:
        """
        Remove a trashed item for good.

        Returns:
            Storage keys of the removed files

        Raises:
            TrashItemNotFound: If the item is not in the trash
        """
        if kind == FOLDER:
            folder = db.session.get(Folder, item_id)
            if folder is None or not folder.is_deleted:
                raise TrashItemNotFound('Folder not found in trash')
            keys = cls._purge_files(list(folder.files))
            db.session.expire(folder, ['files'])
            db.session.delete(folder)
            db.session.flush()
            return keys

        if kind == FILE:
            media_file = db.session.get(MediaFile, item_id)
            if media_file is None or not media_file.is_deleted:
                raise TrashItemNotFound('File not found in trash')
            return cls._purge_files([media_file])

        raise TrashError(f'Unknown trash item kind: {kind}')

    @classmethod
    def empty(cls) -> List[str]:
        """Permanently delete everything in the trash."""
        keys = []
        folders = Folder.query.filter(Folder.is_deleted.is_(True)).all()
        for folder in folders:
            keys.extend(cls._purge_files(list(folder.files)))
            db.session.expire(folder, ['files'])
            db.session.delete(folder)
        db.session.flush()

        files = MediaFile.query.filter(MediaFile.is_deleted.is_(True)).all()
        keys.extend(cls._purge_files(files))
        logger.info(f"Emptied trash: {len(folders)} folder(s), {len(keys)} object(s)")
        return keys
