"""
Signage CMS Media Routes

Blueprint for client folders and media files:
- GET /folders: Folder cards with size, duration, validity and status
- POST /folders/create: Create folder
- POST /edit-folder: Rename folder / change validity window
- POST /delete-folder: Move folder and its files to the trash
- POST /bulk/delete-folder: Move several folders to the trash
- POST /<folder_id>/upload-media: Upload one media file
- GET /<folder_id>/media: Files of a folder with signed URLs
- POST /edit-file-name: Rename file
- POST /delete-file: Move file to the trash
- POST /bulk/delete-file: Move several files to the trash
- GET /get-folders: Folder id/name list for pickers
- GET /<folder_id>/get-files: File list for pickers
- GET /files/<key>: Download an object from local storage

All endpoints are prefixed with /api/v1/media when registered with the app.
"""

import os

from flask import Blueprint, request, jsonify, current_app, send_from_directory, abort

from signage_cms.models import db, Folder, MediaFile, Player, PlaylistItem, utcnow, isoformat
from signage_cms.models.media_file import top_level_type
from signage_cms.services.playlist_order import PlaylistOrderService
from signage_cms.services.storage import (
    LocalStorage,
    StorageError,
    build_object_key,
    get_storage,
    signed_url,
)
from signage_cms.services.trash import TrashService, next_name, folder_name_taken, file_name_taken
from signage_cms.utils.auth import login_required
from signage_cms.utils.query import (
    clean_search,
    in_size_bucket,
    in_window,
    max_datetime,
    parse_datetime,
    parse_id_list,
    parse_sort_order,
    positive_int,
    sort_rows,
)


# Create media blueprint
media_bp = Blueprint('media', __name__)

FOLDER_NAME_MAX_LENGTH = 200
FILE_NAME_MAX_LENGTH = 255


def active_file_ids():
    """
    Ids of files that linked players can currently play.

    Covers files in playlists assigned to linked players and in any
    playlist nested inside those.
    """
    assigned = {
        row[0] for row in db.session.query(Player.playlist_id).filter(
            Player.linked.is_(True), Player.playlist_id.isnot(None)
        ).distinct()
    }
    if not assigned:
        return set()

    playlist_ids = set(assigned)
    for playlist_id in assigned:
        playlist_ids |= PlaylistOrderService.descendants(playlist_id)

    return {
        row[0] for row in db.session.query(PlaylistItem.file_id).filter(
            PlaylistItem.playlist_id.in_(playlist_ids), PlaylistItem.file_id.isnot(None)
        ).distinct()
    }


def _folder_card(folder, active_ids, now):
    files = folder.live_files()
    validity_label, validity_bucket = folder.validity(now)
    first_image = next((f for f in files if f.is_image), None)
    return {
        'id': folder.id,
        'name': folder.name,
        'validityStart': isoformat(folder.validity_start),
        'validityEnd': isoformat(folder.validity_end),
        'validityStatus': validity_label,
        'folderSize': sum(f.file_size or 0 for f in files),
        'folderDuration': sum(f.duration or 0 for f in files),
        'fileCount': len(files),
        'thumbnail': signed_url(first_image.file_key) if first_image else '',
        'lastModified': isoformat(max_datetime([folder.updated_at] + [f.updated_at for f in files])),
        'status': 'active' if any(f.id in active_ids for f in files) else 'inactive',
        # internal sort/filter keys, stripped before responding
        '_bucket': validity_bucket,
        '_lastModified': max_datetime([folder.updated_at] + [f.updated_at for f in files]),
        '_period': folder.validity_period_seconds(),
        '_end': folder.validity_end,
    }


def _parse_validity(data):
    """Return (start, end, error) from start_date/end_date in a body."""
    start_raw = data.get('start_date')
    end_raw = data.get('end_date')
    start = parse_datetime(start_raw) if start_raw else None
    end = parse_datetime(end_raw) if end_raw else None
    if start_raw and start is None:
        return None, None, 'Invalid start_date'
    if end_raw and end is None:
        return None, None, 'Invalid end_date'
    if start and end and end < start:
        return None, None, 'end_date must be after start_date'
    return start, end, None


def _clean_name(value, max_length):
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or len(value) > max_length:
        return None
    return value


@media_bp.route('/folders', methods=['GET'])
@login_required
def list_folders():
    """
    List client folders as dashboard cards.

    Query Parameters:
        search: Case-insensitive name filter
        lastModifiedFrom / lastModifiedTo: ISO dates bounding lastModified
        sizeBucket: 0-10, 10-100 or 100+ (megabytes)
        status: running, completed or expiring
        sortBy: name, folderSize, lastModified, validityPeriod, validityDate
        sortOrder: asc or desc (default desc)

    Returns:
        200: { "media": [ folder cards ], "meta": { ... } }
    """
    sort_by = request.args.get('sortBy', 'lastModified')
    sort_order = parse_sort_order(request.args.get('sortOrder'))
    search = clean_search(request.args.get('search'))
    date_from = parse_datetime(request.args.get('lastModifiedFrom'))
    date_to = parse_datetime(request.args.get('lastModifiedTo'))
    size_bucket = request.args.get('sizeBucket') or None
    status = request.args.get('status') or None

    query = Folder.query.filter(Folder.verified.is_(True), Folder.is_deleted.is_(False))
    if search:
        query = query.filter(Folder.name.ilike(f'%{search}%'))
    folders = query.order_by(Folder.updated_at.desc()).all()

    now = utcnow()
    active_ids = active_file_ids()
    cards = [_folder_card(folder, active_ids, now) for folder in folders]

    cards = [c for c in cards if in_window(c['_lastModified'], date_from, date_to)]
    cards = [c for c in cards if in_size_bucket(c['folderSize'], size_bucket)]
    if status:
        cards = [c for c in cards if c['_bucket'] == status]

    sort_keys = {
        'name': lambda c: c['name'].lower(),
        'folderSize': lambda c: c['folderSize'],
        'lastModified': lambda c: c['_lastModified'],
        'validityPeriod': lambda c: c['_period'],
        'validityDate': lambda c: c['_end'],
    }
    if sort_by in sort_keys:
        cards = sort_rows(cards, sort_keys[sort_by], sort_order)

    media = [{k: v for k, v in c.items() if not k.startswith('_')} for c in cards]

    return jsonify({
        'message': 'Folders fetched successfully',
        'media': media,
        'meta': {
            'sortBy': sort_by,
            'sortOrder': sort_order,
            'search': search,
            'filters': {
                'lastModifiedFrom': isoformat(date_from),
                'lastModifiedTo': isoformat(date_to),
                'sizeBucket': size_bucket,
                'status': status,
            },
        },
    }), 200


@media_bp.route('/folders/create', methods=['POST'])
@login_required
def create_folder():
    """
    Create a client folder.

    Request Body:
        {
            "name": "Acme Corp" (required, unique among live folders),
            "start_date": "2024-01-01" (optional),
            "end_date": "2024-03-31" (optional)
        }

    Returns:
        201: { "message": "Folder created successfully", "folder": {...} }
        400: Missing/duplicate name or invalid dates
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    name = _clean_name(data.get('name'), FOLDER_NAME_MAX_LENGTH)
    if not name:
        return jsonify({'error': 'name is required'}), 400

    start, end, error = _parse_validity(data)
    if error:
        return jsonify({'error': error}), 400

    if folder_name_taken(name):
        return jsonify({'error': 'Folder name exists'}), 400

    folder = Folder(name=name, validity_start=start, validity_end=end)

    try:
        db.session.add(folder)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create folder {name}: {e}")
        return jsonify({'error': 'Failed to create folder'}), 500

    return jsonify({
        'message': 'Folder created successfully',
        'folder': folder.to_dict(),
    }), 201


@media_bp.route('/edit-folder', methods=['POST'])
@login_required
def edit_folder():
    """
    Rename a folder and replace its validity window.

    Request Body:
        { "folderId": 1, "name": "New name", "start_date": ..., "end_date": ... }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    folder_id = positive_int(data.get('folderId'))
    if folder_id is None:
        return jsonify({'error': 'Invalid folderId'}), 400

    folder = db.session.get(Folder, folder_id)
    if not folder or folder.is_deleted:
        return jsonify({'error': 'Folder not found'}), 404

    name = _clean_name(data.get('name'), FOLDER_NAME_MAX_LENGTH)
    if not name:
        return jsonify({'error': 'name is required'}), 400

    start, end, error = _parse_validity(data)
    if error:
        return jsonify({'error': error}), 400

    if folder_name_taken(name, exclude_id=folder.id):
        return jsonify({'error': 'Folder name exists'}), 400

    folder.name = name
    folder.validity_start = start
    folder.validity_end = end

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update folder {folder_id}: {e}")
        return jsonify({'error': 'Failed to update folder'}), 500

    return jsonify({
        'message': 'Folder updated successfully',
        'folder': folder.to_dict(),
    }), 200


def _trash_folders(folder_ids):
    folders = Folder.query.filter(Folder.id.in_(folder_ids), Folder.is_deleted.is_(False)).all()
    if not folders:
        return None
    try:
        count = TrashService.soft_delete_folders(folders)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete folders {folder_ids}: {e}")
        raise
    current_app.logger.info(f"Moved {count} folder(s) to trash")
    return count


@media_bp.route('/delete-folder', methods=['POST'])
@login_required
def delete_folder():
    """
    Move a folder and its files to the trash.

    The folder's files are removed from every playlist in the same
    transaction and the affected playlists are renumbered.

    Request Body:
        { "folderId": 1 }
    """
    data = request.get_json(silent=True) or {}
    folder_id = positive_int(data.get('folderId'))
    if folder_id is None:
        return jsonify({'error': 'Invalid folderId'}), 400

    try:
        count = _trash_folders([folder_id])
    except Exception:
        return jsonify({'error': 'Failed to delete folder'}), 500

    if not count:
        return jsonify({'error': 'Folder not found'}), 404

    return jsonify({'message': 'Folder deleted successfully'}), 200


@media_bp.route('/bulk/delete-folder', methods=['POST'])
@login_required
def bulk_delete_folders():
    """
    Move several folders to the trash.

    Request Body:
        { "folderIds": [1, 2, 3] }

    Returns:
        200: { "message": ..., "deletedCount": 2 }
    """
    data = request.get_json(silent=True) or {}
    folder_ids = parse_id_list(data.get('folderIds'))
    if not folder_ids:
        return jsonify({'error': 'folderIds must be a non-empty array of ids'}), 400

    try:
        count = _trash_folders(folder_ids)
    except Exception:
        return jsonify({'error': 'Failed to delete folders'}), 500

    return jsonify({
        'message': 'Folders deleted successfully',
        'deletedCount': count or 0,
    }), 200


def _stream_size(upload):
    stream = upload.stream
    try:
        position = stream.tell()
        stream.seek(0, os.SEEK_END)
        size = stream.tell()
        stream.seek(position)
        return size
    except (AttributeError, OSError):
        return upload.content_length or 0


@media_bp.route('/<int:folder_id>/upload-media', methods=['POST'])
@login_required
def upload_media(folder_id):
    """
    Upload one media file into a folder.

    Form Data:
        file: The media file (required, exactly one)
        name: Display name (optional, defaults to the uploaded filename)
        size: Size in bytes (optional, measured when absent)
        duration: Playback seconds (optional, default 0)
        type: MIME type (optional, must match the uploaded part)

    Returns:
        201: { "message": "File uploaded successfully", "file": {..., "signedUrl": ...} }
        400: Missing/extra file, unsupported type or invalid fields
        404: Folder not found
        502: Storage backend rejected the upload
    """
    folder = db.session.get(Folder, folder_id)
    if not folder or folder.is_deleted:
        return jsonify({'error': 'Folder not found'}), 404

    uploads = [f for key in request.files for f in request.files.getlist(key)]
    if not uploads:
        return jsonify({'error': 'No file found'}), 400
    if len(uploads) > 1:
        return jsonify({'error': 'Only 1 file allowed'}), 400
    upload = uploads[0]

    mimetype = (upload.mimetype or '').lower()
    if mimetype not in current_app.config['ALLOWED_MIME_TYPES']:
        return jsonify({'error': f'Unsupported file type: {mimetype or "unknown"}'}), 400

    declared_type = request.form.get('type')
    if declared_type and declared_type.lower() != mimetype:
        return jsonify({'error': 'Invalid type'}), 400

    size_raw = request.form.get('size')
    if size_raw not in (None, ''):
        try:
            size = int(size_raw)
        except ValueError:
            return jsonify({'error': 'Invalid file size'}), 400
        if size < 0:
            return jsonify({'error': 'Invalid file size'}), 400
    else:
        size = _stream_size(upload)

    duration_raw = request.form.get('duration')
    duration = 0
    if duration_raw not in (None, ''):
        try:
            duration = int(round(float(duration_raw)))
        except ValueError:
            return jsonify({'error': 'Invalid duration'}), 400
        if duration < 0:
            return jsonify({'error': 'Invalid duration'}), 400

    original_name = _clean_name(request.form.get('name') or upload.filename or 'upload', FILE_NAME_MAX_LENGTH)
    if not original_name:
        return jsonify({'error': 'Invalid file name'}), 400
    name = next_name(original_name, lambda candidate: file_name_taken(folder.id, candidate))

    storage = get_storage()
    key = build_object_key(folder.name, original_name)
    try:
        storage.save(key, upload, content_type=mimetype)
    except StorageError as e:
        current_app.logger.error(f"Upload to storage failed for {key}: {e}")
        return jsonify({'error': 'Failed to store file'}), 502

    media_file = MediaFile(
        folder_id=folder.id,
        name=name,
        file_type=mimetype,
        file_key=key,
        file_size=size,
        duration=duration,
        verified=True,
    )
    folder.updated_at = utcnow()

    try:
        db.session.add(media_file)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to save media record for {key}: {e}")
        try:
            storage.delete(key)
        except StorageError as cleanup_error:
            current_app.logger.warning(f"Failed to remove orphaned object {key}: {cleanup_error}")
        return jsonify({'error': 'Failed to save file'}), 500

    current_app.logger.info(f"Uploaded {key} ({size} bytes) to folder {folder.id}")
    return jsonify({
        'message': 'File uploaded successfully',
        'file': media_file.to_dict(url=signed_url(key)),
    }), 201


@media_bp.route('/<int:folder_id>/media', methods=['GET'])
@login_required
def list_folder_media(folder_id):
    """
    List the live files of a folder.

    Query Parameters:
        search: Case-insensitive name filter
        from / to: ISO dates bounding the upload time
        fileType: Top-level type (image, video, application) or full MIME type
        sizeBucket: 0-10, 10-100 or 100+ (megabytes)
        status: active (playable by a linked player) or inactive
        sortBy: name, size, createdAt, fileType
        sortOrder: asc or desc (default desc)
    """
    folder = db.session.get(Folder, folder_id)
    if not folder or folder.is_deleted:
        return jsonify({'error': 'Folder not found'}), 404

    sort_by = request.args.get('sortBy', 'createdAt')
    sort_order = parse_sort_order(request.args.get('sortOrder'))
    search = clean_search(request.args.get('search'))
    date_from = parse_datetime(request.args.get('from'))
    date_to = parse_datetime(request.args.get('to'))
    file_type = clean_search(request.args.get('fileType'))
    size_bucket = request.args.get('sizeBucket') or None
    status = request.args.get('status') or None

    query = MediaFile.query.filter(MediaFile.folder_id == folder.id, MediaFile.is_deleted.is_(False))
    if search:
        query = query.filter(MediaFile.name.ilike(f'%{search}%'))
    files = query.order_by(MediaFile.created_at.desc()).all()

    active_ids = active_file_ids()
    rows = []
    for media_file in files:
        if not in_window(media_file.created_at, date_from, date_to):
            continue
        if not in_size_bucket(media_file.file_size, size_bucket):
            continue
        if file_type:
            wanted = file_type.lower()
            if '/' in wanted and media_file.file_type != wanted:
                continue
            if '/' not in wanted and top_level_type(media_file.file_type) != wanted:
                continue
        file_status = 'active' if media_file.id in active_ids else 'inactive'
        if status and file_status != status:
            continue
        row = media_file.to_dict()
        row['url'] = signed_url(media_file.file_key)
        row['status'] = file_status
        row['_createdAt'] = media_file.created_at
        rows.append(row)

    sort_keys = {
        'name': lambda r: r['name'].lower(),
        'size': lambda r: r['fileSize'],
        'createdAt': lambda r: r['_createdAt'],
        'fileType': lambda r: r['fileType'],
    }
    if sort_by in sort_keys:
        rows = sort_rows(rows, sort_keys[sort_by], sort_order)
    for row in rows:
        row.pop('_createdAt', None)

    return jsonify({
        'message': 'Media fetched successfully',
        'folder': folder.to_dict(),
        'media': rows,
        'meta': {
            'sortBy': sort_by,
            'sortOrder': sort_order,
            'search': search,
            'filters': {
                'from': isoformat(date_from),
                'to': isoformat(date_to),
                'fileType': file_type,
                'sizeBucket': size_bucket,
                'status': status,
            },
        },
    }), 200


@media_bp.route('/edit-file-name', methods=['POST'])
@login_required
def edit_file_name():
    """
    Rename a file; names are unique among the live files of its folder.

    Request Body:
        { "fileId": 1, "name": "new-name.mp4" }
    """
    data = request.get_json(silent=True) or {}
    file_id = positive_int(data.get('fileId'))
    if file_id is None:
        return jsonify({'error': 'Invalid fileId'}), 400

    name = _clean_name(data.get('name'), FILE_NAME_MAX_LENGTH)
    if not name:
        return jsonify({'error': 'name is required'}), 400

    media_file = db.session.get(MediaFile, file_id)
    if not media_file or media_file.is_deleted:
        return jsonify({'error': 'File not found'}), 404

    if file_name_taken(media_file.folder_id, name, exclude_id=media_file.id):
        return jsonify({'error': 'File name exists in this folder'}), 400

    media_file.name = name
    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to rename file {file_id}: {e}")
        return jsonify({'error': 'Failed to rename file'}), 500

    return jsonify({
        'message': 'File renamed successfully',
        'file': media_file.to_dict(),
    }), 200


def _trash_files(file_ids):
    files = MediaFile.query.filter(MediaFile.id.in_(file_ids), MediaFile.is_deleted.is_(False)).all()
    if not files:
        return 0
    try:
        count = TrashService.soft_delete_files(files)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete files {file_ids}: {e}")
        raise
    return count


@media_bp.route('/delete-file', methods=['POST'])
@login_required
def delete_file():
    """
    Move a file to the trash and remove it from every playlist.

    Request Body:
        { "fileId": 1 }
    """
    data = request.get_json(silent=True) or {}
    file_id = positive_int(data.get('fileId'))
    if file_id is None:
        return jsonify({'error': 'Invalid fileId'}), 400

    try:
        count = _trash_files([file_id])
    except Exception:
        return jsonify({'error': 'Failed to delete file'}), 500

    if not count:
        return jsonify({'error': 'File not found'}), 404

    return jsonify({'message': 'File deleted successfully'}), 200


@media_bp.route('/bulk/delete-file', methods=['POST'])
@login_required
def bulk_delete_files():
    """
    Move several files to the trash.

    Request Body:
        { "fileIds": [1, 2, 3] }
    """
    data = request.get_json(silent=True) or {}
    file_ids = parse_id_list(data.get('fileIds'))
    if not file_ids:
        return jsonify({'error': 'fileIds must be a non-empty array of ids'}), 400

    try:
        count = _trash_files(file_ids)
    except Exception:
        return jsonify({'error': 'Failed to delete files'}), 500

    return jsonify({
        'message': 'Files deleted successfully',
        'deletedCount': count,
    }), 200


@media_bp.route('/get-folders', methods=['GET'])
@login_required
def folder_options():
    folders = Folder.query.filter(Folder.is_deleted.is_(False)).order_by(Folder.name).all()
    return jsonify({
        'message': 'Folders fetched successfully',
        'folders': [{'id': f.id, 'name': f.name} for f in folders],
    }), 200


@media_bp.route('/<int:folder_id>/get-files', methods=['GET'])
@login_required
def folder_file_options(folder_id):
    """List a folder's live files with signed URLs for the playlist builder."""
    folder = db.session.get(Folder, folder_id)
    if not folder or folder.is_deleted:
        return jsonify({'error': 'Folder not found'}), 404

    files = [
        {
            'id': f.id,
            'name': f.name,
            'type': f.file_type,
            'key': f.file_key,
            'duration': f.duration,
            'size': f.file_size,
            'url': signed_url(f.file_key),
        }
        for f in folder.live_files()
    ]
    return jsonify({'message': 'Files fetched successfully', 'files': files}), 200


@media_bp.route('/files/<path:key>', methods=['GET'])
def download_file(key):
    """
    Serve an object from local storage.

    Only available with the local storage backend; S3 objects are reached
    through presigned URLs instead.
    """
    storage = get_storage()
    if not isinstance(storage, LocalStorage):
        abort(404)
    return send_from_directory(str(storage.root), key)
