"""
Signage CMS Trash Routes

Blueprint for soft-deleted folders and files:
- GET /: Trashed folders and files, newest first
- POST /<kind>/<item_id>/restore: Restore a folder or file
- DELETE /<kind>/<item_id>: Delete a folder or file permanently
- POST /restore-all: Restore everything
- POST /empty: Delete everything in the trash permanently

``kind`` is ``folder`` or ``file``. Storage objects of permanently
deleted files are removed after the database commit succeeds.

All endpoints are prefixed with /api/v1/trash when registered with the app.
"""

from flask import Blueprint, request, jsonify, current_app

from signage_cms.models import db, Folder, MediaFile, isoformat
from signage_cms.services.storage import StorageError, get_storage, signed_url
from signage_cms.services.trash import TrashService, TrashItemNotFound, KINDS, FOLDER
from signage_cms.utils.auth import login_required
from signage_cms.utils.query import clean_search, format_day, sort_rows


# Create trash blueprint
trash_bp = Blueprint('trash', __name__)


def _remove_objects(keys):
    """Delete storage objects; failures leave orphans and are only logged."""
    if not keys:
        return
    try:
        get_storage().delete_many(keys)
    except StorageError as e:
        current_app.logger.warning(f"Failed to delete {len(keys)} storage object(s): {e}")


def _folder_card(folder):
    return {
        'kind': 'folder',
        'id': folder.id,
        'name': folder.name,
        'type': 'folder',
        'location': 'Media',
        'folderId': folder.id,
        'folderDeleted': True,
        'deletedAt': isoformat(folder.deleted_at),
        'deletedAtLabel': format_day(folder.deleted_at) or '',
        'thumbnail': '',
        '_deletedAt': folder.deleted_at,
    }


def _file_card(media_file):
    folder = media_file.folder
    thumbnail = ''
    if media_file.is_image and media_file.file_key:
        thumbnail = signed_url(media_file.file_key) or ''
    return {
        'kind': 'file',
        'id': media_file.id,
        'name': media_file.name,
        'type': media_file.type_group or 'file',
        'location': folder.name if folder else '',
        'folderId': folder.id if folder else None,
        'folderDeleted': bool(folder and folder.is_deleted),
        'deletedAt': isoformat(media_file.deleted_at),
        'deletedAtLabel': format_day(media_file.deleted_at) or '',
        'thumbnail': thumbnail,
        '_deletedAt': media_file.deleted_at,
    }


@trash_bp.route('', methods=['GET'])
@login_required
def list_trash():
    """
    List trashed folders and files as cards, newest deletion first.

    Query Parameters:
        search: Case-insensitive name filter
    """
    search = clean_search(request.args.get('search'))

    folders = Folder.query.filter(Folder.is_deleted.is_(True))
    files = MediaFile.query.filter(MediaFile.is_deleted.is_(True))
    if search:
        folders = folders.filter(Folder.name.ilike(f'%{search}%'))
        files = files.filter(MediaFile.name.ilike(f'%{search}%'))

    cards = [_folder_card(f) for f in folders.all()] + [_file_card(f) for f in files.all()]
    cards = sort_rows(cards, lambda c: c['_deletedAt'], 'desc')
    for card in cards:
        card.pop('_deletedAt', None)

    return jsonify({'message': 'Trash fetched', 'items': cards}), 200


@trash_bp.route('/<kind>/<int:item_id>/restore', methods=['POST'])
@login_required
def restore_item(kind, item_id):
    """
    Restore a trashed folder or file.

    A name taken in the meantime gets a " (n)" suffix. Restoring a file
    whose folder is trashed restores the folder too.
    """
    if kind not in KINDS:
        return jsonify({'error': f'Unknown kind: {kind}'}), 400

    try:
        restored = TrashService.restore(kind, item_id)
        db.session.commit()
    except TrashItemNotFound as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to restore {kind} {item_id}: {e}")
        return jsonify({'error': f'Failed to restore {kind}'}), 500

    return jsonify({
        'message': 'Folder restored' if kind == FOLDER else 'File restored',
        'item': {'kind': kind, 'id': restored.id, 'name': restored.name},
    }), 200


@trash_bp.route('/<kind>/<int:item_id>', methods=['DELETE'])
@login_required
def delete_item_permanently(kind, item_id):
    """Delete a trashed folder (with all its files) or file for good."""
    if kind not in KINDS:
        return jsonify({'error': f'Unknown kind: {kind}'}), 400

    try:
        keys = TrashService.delete_permanently(kind, item_id)
        db.session.commit()
    except TrashItemNotFound as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 404
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to permanently delete {kind} {item_id}: {e}")
        return jsonify({'error': f'Failed to delete {kind}'}), 500

    _remove_objects(keys)
    current_app.logger.info(f"Permanently deleted {kind} {item_id} ({len(keys)} object(s))")
    return jsonify({
        'message': 'Folder deleted permanently' if kind == FOLDER else 'File deleted permanently',
    }), 200


@trash_bp.route('/restore-all', methods=['POST'])
@login_required
def restore_all():
    try:
        counts = TrashService.restore_all()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to restore trash: {e}")
        return jsonify({'error': 'Failed to restore trash'}), 500

    return jsonify({
        'message': 'All items restored',
        'restored': counts,
    }), 200


@trash_bp.route('/empty', methods=['POST'])
@login_required
def empty_trash():
    try:
        keys = TrashService.empty()
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to empty trash: {e}")
        return jsonify({'error': 'Failed to empty trash'}), 500

    _remove_objects(keys)
    return jsonify({
        'message': 'Trash emptied',
        'deletedObjects': len(keys),
    }), 200
