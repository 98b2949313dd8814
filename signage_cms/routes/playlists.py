"""
Signage CMS Playlist Routes

Blueprint for playlist management:
- GET /: Playlist cards with duration, size and thumbnail
- GET /list: Id/name list for pickers
- POST /create: Create playlist
- PUT /<playlist_id>: Rename playlist / change default duration
- GET /<playlist_id>: Playlist detail with ordered items
- POST /add-file: Append a file
- POST /add-sub-playlist: Append a nested playlist
- POST /<playlist_id>/bulk-add-files: Append several files
- POST /<playlist_id>/bulk-add-sub-playlists: Append several nested playlists
- POST /move-item: Move an item to a new position
- DELETE /playlistFile/<item_id>: Remove an item
- POST /bulk-delete-items: Remove several items
- PUT /playlistFile/<item_id>/duration: Change an item's duration
- POST /bulk-edit-duration: Change several items' durations
- DELETE /<playlist_id>: Delete playlist
- POST /bulk-delete: Delete several playlists

All endpoints are prefixed with /api/v1/playlists when registered with the app.
"""

import math

from flask import Blueprint, request, jsonify, current_app

from signage_cms.models import db, MediaFile, Playlist, PlaylistItem, PlayLog, isoformat
from signage_cms.models.playlist import DEFAULT_ITEM_DURATION
from signage_cms.models.media_file import top_level_type
from signage_cms.services.playlist_order import (
    PlaylistOrderService,
    PlaylistCycleError,
    InvalidPlayOrderError,
)
from signage_cms.services.storage import signed_url
from signage_cms.utils.auth import login_required
from signage_cms.utils.query import (
    clean_search,
    in_duration_bucket,
    in_size_bucket,
    in_window,
    max_datetime,
    parse_datetime,
    parse_id_list,
    parse_int,
    parse_sort_order,
    positive_int,
    sort_rows,
)


# Create playlists blueprint
playlists_bp = Blueprint('playlists', __name__)

NAME_MIN_LENGTH = 3
NAME_MAX_LENGTH = 50
DEFAULT_DURATION_MAX = 300
ITEM_DURATION_MAX = 24 * 60 * 60

SUB_PLAYLIST_TYPE = 'subPlaylist'


def _validate_name(value):
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not (NAME_MIN_LENGTH <= len(value) <= NAME_MAX_LENGTH):
        return None
    return value


def _parse_duration(value, maximum):
    """Whole seconds in 1..maximum, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    number = int(number)
    if number < 1 or number > maximum:
        return None
    return number


def _live_file(item):
    media_file = item.file
    if media_file is None or media_file.is_deleted:
        return None
    return media_file


def _playlist_bytes(playlist_id, seen=None):
    """Bytes of the live files a playlist plays, nested playlists included."""
    seen = seen if seen is not None else set()
    if playlist_id in seen:
        return 0
    seen.add(playlist_id)
    total = 0
    for item in PlaylistOrderService.ordered_items(playlist_id):
        media_file = _live_file(item)
        if media_file is not None:
            total += media_file.file_size or 0
        elif item.sub_playlist_id is not None:
            total += _playlist_bytes(item.sub_playlist_id, seen)
    return total


def _visible_items(playlist):
    """Entries that still point at a live file or an existing playlist."""
    return [
        item for item in playlist.items
        if _live_file(item) is not None or item.sub_playlist is not None
    ]


def _playlist_card(playlist):
    items = _visible_items(playlist)
    duration = sum(item.duration or 0 for item in items if item.duration and item.duration > 0)

    size = 0
    thumbnail = None
    modified = [playlist.updated_at]
    for item in items:
        modified.append(item.updated_at)
        media_file = _live_file(item)
        if media_file is not None:
            modified.append(media_file.updated_at)
            size += media_file.file_size or 0
            if thumbnail is None and media_file.is_image:
                thumbnail = signed_url(media_file.file_key)
        else:
            size += _playlist_bytes(item.sub_playlist_id, {playlist.id})

    last_modified = max_datetime(modified)
    return {
        'id': playlist.id,
        'name': playlist.name,
        'defaultDuration': playlist.default_duration,
        'thumbnail': thumbnail,
        'totalItems': len(items),
        'durationSec': duration,
        'playlistSize': size,
        'lastModified': isoformat(last_modified),
        '_lastModified': last_modified,
    }


@playlists_bp.route('', methods=['GET'])
@login_required
def list_playlists():
    """
    List playlists as dashboard cards.

    Query Parameters:
        search: Case-insensitive name filter
        lastModifiedFrom / lastModifiedTo: ISO dates bounding lastModified
        durationBucket: 0-3, 5-10 or 10+ (minutes)
        durationFrom / durationTo: Total duration bounds in seconds
        sortBy: name, items, lastModified, duration
        sortOrder: asc or desc (default desc)
    """
    sort_by = request.args.get('sortBy', 'lastModified')
    sort_order = parse_sort_order(request.args.get('sortOrder'))
    search = clean_search(request.args.get('search'))
    date_from = parse_datetime(request.args.get('lastModifiedFrom'))
    date_to = parse_datetime(request.args.get('lastModifiedTo'))
    duration_bucket = request.args.get('durationBucket') or None
    duration_from = parse_int(request.args.get('durationFrom'))
    duration_to = parse_int(request.args.get('durationTo'))

    query = Playlist.query
    if search:
        query = query.filter(Playlist.name.ilike(f'%{search}%'))
    playlists = query.order_by(Playlist.updated_at.desc()).all()

    cards = [_playlist_card(p) for p in playlists]
    cards = [c for c in cards if in_window(c['_lastModified'], date_from, date_to)]
    cards = [c for c in cards if in_duration_bucket(c['durationSec'], duration_bucket)]
    if duration_from is not None:
        cards = [c for c in cards if c['durationSec'] >= duration_from]
    if duration_to is not None:
        cards = [c for c in cards if c['durationSec'] <= duration_to]

    sort_keys = {
        'name': lambda c: c['name'].lower(),
        'items': lambda c: c['totalItems'],
        'lastModified': lambda c: c['_lastModified'],
        'duration': lambda c: c['durationSec'],
    }
    if sort_by in sort_keys:
        cards = sort_rows(cards, sort_keys[sort_by], sort_order)

    for card in cards:
        card.pop('_lastModified', None)

    return jsonify({
        'message': 'Playlists fetched successfully',
        'playlists': cards,
        'meta': {
            'sortBy': sort_by,
            'sortOrder': sort_order,
            'search': search,
            'filters': {
                'lastModifiedFrom': isoformat(date_from),
                'lastModifiedTo': isoformat(date_to),
                'durationBucket': duration_bucket,
                'durationFrom': duration_from,
                'durationTo': duration_to,
            },
        },
    }), 200


@playlists_bp.route('/list', methods=['GET'])
@login_required
def playlist_options():
    playlists = Playlist.query.order_by(Playlist.name).all()
    return jsonify({
        'message': 'Playlist fetched successfully',
        'playlist': [{'id': p.id, 'name': p.name} for p in playlists],
    }), 200


@playlists_bp.route('/create', methods=['POST'])
@login_required
def create_playlist():
    """
    Create a playlist.

    Request Body:
        {
            "name": "Lobby loop" (required, 3-50 characters),
            "duration": 30 (optional, default seconds per image, 1-300)
        }

    Returns:
        201: { "message": "Playlist created successfully", "playlist": {...} }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    name = _validate_name(data.get('name'))
    if not name:
        return jsonify({'error': f'name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters'}), 400

    duration = DEFAULT_ITEM_DURATION
    if data.get('duration') is not None:
        duration = _parse_duration(data.get('duration'), DEFAULT_DURATION_MAX)
        if duration is None:
            return jsonify({'error': f'duration must be 1-{DEFAULT_DURATION_MAX} seconds'}), 400

    playlist = Playlist(name=name, default_duration=duration)

    try:
        db.session.add(playlist)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create playlist {name}: {e}")
        return jsonify({'error': 'Failed to create playlist'}), 500

    return jsonify({
        'message': 'Playlist created successfully',
        'playlist': playlist.to_dict(),
    }), 201


@playlists_bp.route('/<int:playlist_id>', methods=['PUT'])
@login_required
def edit_playlist(playlist_id):
    """
    Rename a playlist and optionally change its default duration.

    Request Body:
        { "name": "Lobby loop", "defaultDuration": 15 }
    """
    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    name = _validate_name(data.get('name'))
    if not name:
        return jsonify({'error': f'name must be {NAME_MIN_LENGTH}-{NAME_MAX_LENGTH} characters'}), 400

    if data.get('defaultDuration') is not None:
        duration = _parse_duration(data.get('defaultDuration'), DEFAULT_DURATION_MAX)
        if duration is None:
            return jsonify({'error': f'defaultDuration must be 1-{DEFAULT_DURATION_MAX} seconds'}), 400
        playlist.default_duration = duration

    playlist.name = name

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update playlist {playlist_id}: {e}")
        return jsonify({'error': 'Failed to update playlist'}), 500

    return jsonify({
        'message': 'Playlist updated successfully',
        'playlist': playlist.to_dict(),
    }), 200


def _sub_playlist_summary(sub_playlist_id):
    """(file ids, live item count, bytes) of a nested playlist's own entries."""
    file_ids = []
    length = 0
    size = 0
    for item in PlaylistOrderService.ordered_items(sub_playlist_id):
        if item.file_id is not None:
            file_ids.append(item.file_id)
        media_file = _live_file(item)
        if media_file is not None:
            size += media_file.file_size or 0
            length += 1
        elif item.sub_playlist_id is not None:
            length += 1
    return file_ids, length, size


def _item_row(item, log_counts, summaries):
    media_file = _live_file(item)
    if media_file is not None:
        last_modified = max_datetime([item.updated_at, media_file.updated_at])
        return {
            'playlistFileId': item.id,
            'fileId': media_file.id,
            'subPlaylistId': None,
            'isSubPlaylist': False,
            'name': media_file.name,
            'url': signed_url(media_file.file_key),
            'type': media_file.file_type,
            'duration': item.duration or 0,
            'playOrder': item.play_order,
            'size': media_file.file_size or 0,
            'logsCount': log_counts.get(media_file.id, 0),
            'lastModified': isoformat(last_modified),
            '_lastModified': last_modified,
        }

    sub_playlist = item.sub_playlist
    if sub_playlist is None:
        return None

    file_ids, length, size = summaries[sub_playlist.id]
    total_logs = sum(log_counts.get(file_id, 0) for file_id in file_ids)
    last_modified = max_datetime([item.updated_at, sub_playlist.updated_at])
    return {
        'playlistFileId': item.id,
        'fileId': None,
        'subPlaylistId': sub_playlist.id,
        'isSubPlaylist': True,
        'name': sub_playlist.name,
        'url': None,
        'type': SUB_PLAYLIST_TYPE,
        'duration': item.duration or 0,
        'playOrder': item.play_order,
        'size': size,
        'logsCount': math.ceil(total_logs / max(length, 1)),
        'lastModified': isoformat(last_modified),
        '_lastModified': last_modified,
    }


def _matches_type(row, wanted):
    wanted = wanted.lower()
    row_type = (row['type'] or '').lower()
    if wanted == SUB_PLAYLIST_TYPE.lower():
        return row_type == wanted
    if '/' in wanted:
        return row_type == wanted
    return top_level_type(row_type) == wanted


@playlists_bp.route('/<int:playlist_id>', methods=['GET'])
@login_required
def get_playlist(playlist_id):
    """
    Playlist detail with its items.

    A nested playlist's logsCount is the play count of its files divided
    by its number of entries, rounded up.

    Query Parameters:
        search: Case-insensitive item name filter
        type: subPlaylist, a top-level type (image, video) or a full MIME type
        sizeBucket: 0-10, 10-100 or 100+ (megabytes)
        durationBucket: 0-3, 5-10 or 10+ (minutes)
        lastModifiedFrom / lastModifiedTo: ISO dates
        sortBy: playOrder (default), name, type, lastModified, size, duration
        sortOrder: asc or desc (default asc)
    """
    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    sort_by = request.args.get('sortBy', 'playOrder')
    sort_order = parse_sort_order(request.args.get('sortOrder'), default='asc')
    search = clean_search(request.args.get('search'))
    type_filter = clean_search(request.args.get('type'))
    size_bucket = request.args.get('sizeBucket') or None
    duration_bucket = request.args.get('durationBucket') or None
    date_from = parse_datetime(request.args.get('lastModifiedFrom'))
    date_to = parse_datetime(request.args.get('lastModifiedTo'))

    items = PlaylistOrderService.ordered_items(playlist.id)
    summaries = {
        item.sub_playlist_id: _sub_playlist_summary(item.sub_playlist_id)
        for item in items if item.sub_playlist_id is not None
    }

    file_ids = {item.file_id for item in items if item.file_id is not None}
    for sub_file_ids, _, _ in summaries.values():
        file_ids.update(sub_file_ids)
    log_counts = {}
    if file_ids:
        log_counts = dict(db.session.query(PlayLog.file_id, db.func.count(PlayLog.id)).filter(
            PlayLog.file_id.in_(file_ids)
        ).group_by(PlayLog.file_id).all())

    rows = [row for row in (_item_row(item, log_counts, summaries) for item in items) if row]

    if search:
        needle = search.lower()
        rows = [r for r in rows if needle in (r['name'] or '').lower()]
    if type_filter:
        rows = [r for r in rows if _matches_type(r, type_filter)]
    rows = [r for r in rows if in_size_bucket(r['size'], size_bucket)]
    rows = [r for r in rows if in_duration_bucket(r['duration'], duration_bucket)]
    rows = [r for r in rows if in_window(r['_lastModified'], date_from, date_to)]

    sort_keys = {
        'playOrder': lambda r: r['playOrder'],
        'name': lambda r: (r['name'] or '').lower(),
        'type': lambda r: (r['type'] or '').lower(),
        'lastModified': lambda r: r['_lastModified'],
        'size': lambda r: r['size'],
        'duration': lambda r: r['duration'],
    }
    if sort_by in sort_keys:
        rows = sort_rows(rows, sort_keys[sort_by], sort_order)
    else:
        rows = sort_rows(rows, sort_keys['playOrder'], 'asc')

    for row in rows:
        row.pop('_lastModified', None)

    return jsonify({
        'message': 'Playlist fetched successfully',
        'playlist': {
            'id': playlist.id,
            'name': playlist.name,
            'defaultDuration': playlist.default_duration,
            'updatedAt': isoformat(playlist.updated_at),
            'items': rows,
        },
        'meta': {
            'sortBy': sort_by,
            'sortOrder': sort_order,
            'search': search,
            'filters': {
                'type': type_filter,
                'sizeBucket': size_bucket,
                'durationBucket': duration_bucket,
                'lastModifiedFrom': isoformat(date_from),
                'lastModifiedTo': isoformat(date_to),
            },
        },
    }), 200


@playlists_bp.route('/add-file', methods=['POST'])
@login_required
def add_file():
    """
    Append a file to the end of a playlist.

    Request Body:
        { "playlistId": 1, "fileId": 5, "duration": 10 (1-86400 seconds) }

    Returns:
        201: { "message": "File added to playlist successfully", "playlistFile": {...} }
    """
    data = request.get_json(silent=True) or {}
    playlist_id = positive_int(data.get('playlistId'))
    file_id = positive_int(data.get('fileId'))
    if playlist_id is None or file_id is None:
        return jsonify({'error': 'playlistId and fileId are required'}), 400

    duration = _parse_duration(data.get('duration'), ITEM_DURATION_MAX)
    if duration is None:
        return jsonify({'error': f'duration must be 1-{ITEM_DURATION_MAX} seconds'}), 400

    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    media_file = db.session.get(MediaFile, file_id)
    if not media_file or media_file.is_deleted:
        return jsonify({'error': 'File not found'}), 404

    try:
        item = PlaylistOrderService.append_file(playlist, media_file.id, duration)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to add file {file_id} to playlist {playlist_id}: {e}")
        return jsonify({'error': 'Failed to add file to playlist'}), 500

    return jsonify({
        'message': 'File added to playlist successfully',
        'playlistFile': item.to_dict(),
    }), 201


@playlists_bp.route('/add-sub-playlist', methods=['POST'])
@login_required
def add_sub_playlist():
    """
    Append a nested playlist to the end of a playlist.

    The entry's duration is the total duration of the nested playlist.
    Nesting that would make a playlist contain itself is rejected.

    Request Body:
        { "playlistId": 1, "subPlaylistId": 2 }
    """
    data = request.get_json(silent=True) or {}
    playlist_id = positive_int(data.get('playlistId'))
    sub_playlist_id = positive_int(data.get('subPlaylistId'))
    if playlist_id is None or sub_playlist_id is None:
        return jsonify({'error': 'playlistId and subPlaylistId are required'}), 400

    if playlist_id == sub_playlist_id:
        return jsonify({'error': 'A playlist cannot contain itself'}), 400

    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    sub_playlist = db.session.get(Playlist, sub_playlist_id)
    if not sub_playlist:
        return jsonify({'error': 'Sub-playlist not found'}), 404

    try:
        item = PlaylistOrderService.append_sub_playlist(playlist, sub_playlist.id)
        db.session.commit()
    except PlaylistCycleError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to nest playlist {sub_playlist_id} in {playlist_id}: {e}")
        return jsonify({'error': 'Failed to add sub-playlist'}), 500

    return jsonify({
        'message': 'Sub-playlist added successfully',
        'playlistFile': item.to_dict(),
    }), 201


def _bulk_entries(data, id_field):
    """Parse ``items`` into [(id, duration)], dropping malformed entries."""
    raw = data.get('items')
    if not isinstance(raw, list) or not raw:
        return None
    entries = []
    for entry in raw:
        if not isinstance(entry, dict):
            continue
        target_id = positive_int(entry.get(id_field))
        duration = _parse_duration(entry.get('duration'), ITEM_DURATION_MAX)
        if target_id is None or duration is None:
            continue
        entries.append((target_id, duration))
    return entries


@playlists_bp.route('/<int:playlist_id>/bulk-add-files', methods=['POST'])
@login_required
def bulk_add_files(playlist_id):
    """
    Append several files at contiguous positions.

    Request Body:
        { "items": [ { "fileId": 5, "duration": 10 }, ... ] }

    Returns:
        200: { "createdCount": 2, "invalidCount": 1 }
    """
    data = request.get_json(silent=True) or {}
    entries = _bulk_entries(data, 'fileId')
    if entries is None:
        return jsonify({'error': 'items is required'}), 400
    if not entries:
        return jsonify({'error': 'No valid items'}), 400

    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    valid_ids = {
        row[0] for row in db.session.query(MediaFile.id).filter(
            MediaFile.id.in_({file_id for file_id, _ in entries}),
            MediaFile.is_deleted.is_(False),
        )
    }
    valid = [{'file_id': file_id, 'duration': duration} for file_id, duration in entries if file_id in valid_ids]
    if not valid:
        return jsonify({'error': 'No valid files found'}), 404

    try:
        created = PlaylistOrderService.append_items(playlist, valid)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to bulk add files to playlist {playlist_id}: {e}")
        return jsonify({'error': 'Failed to add files'}), 500

    return jsonify({
        'message': 'Files added to playlist successfully',
        'createdCount': len(created),
        'invalidCount': len(entries) - len(valid),
    }), 200


@playlists_bp.route('/<int:playlist_id>/bulk-add-sub-playlists', methods=['POST'])
@login_required
def bulk_add_sub_playlists(playlist_id):
    """
    Append several nested playlists at contiguous positions.

    Entries naming the playlist itself, a missing playlist or a playlist
    that would create a cycle are counted as invalid.

    Request Body:
        { "items": [ { "subPlaylistId": 2, "duration": 120 }, ... ] }
    """
    data = request.get_json(silent=True) or {}
    entries = _bulk_entries(data, 'subPlaylistId')
    if entries is None:
        return jsonify({'error': 'items is required'}), 400
    entries = [(sub_id, duration) for sub_id, duration in entries if sub_id != playlist_id]
    if not entries:
        return jsonify({'error': 'No valid items'}), 400

    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    existing = {
        row[0] for row in db.session.query(Playlist.id).filter(
            Playlist.id.in_({sub_id for sub_id, _ in entries})
        )
    }
    valid = [
        {'sub_playlist_id': sub_id, 'duration': duration}
        for sub_id, duration in entries
        if sub_id in existing and not PlaylistOrderService.would_create_cycle(playlist.id, sub_id)
    ]
    if not valid:
        return jsonify({'error': 'No valid subPlaylists found'}), 404

    try:
        created = PlaylistOrderService.append_items(playlist, valid)
        db.session.commit()
    except PlaylistCycleError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to bulk add sub-playlists to playlist {playlist_id}: {e}")
        return jsonify({'error': 'Failed to add sub-playlists'}), 500

    return jsonify({
        'message': 'SubPlaylists added to playlist successfully',
        'createdCount': len(created),
        'invalidCount': len(entries) - len(valid),
    }), 200


@playlists_bp.route('/move-item', methods=['POST'])
@login_required
def move_item():
    """
    Move an item to a new 1-based position.

    Request Body:
        { "playlistFileId": 7, "playOrder": 2 }

    Returns:
        200: { "message": ..., "playOrder": 2 }
        400: playOrder missing or below 1
    """
    data = request.get_json(silent=True) or {}
    item_id = positive_int(data.get('playlistFileId'))
    if item_id is None:
        return jsonify({'error': 'Invalid playlistFileId'}), 400

    item = db.session.get(PlaylistItem, item_id)
    if not item:
        return jsonify({'error': 'Playlist item not found'}), 404

    try:
        new_order = PlaylistOrderService.move_item(item, data.get('playOrder'))
        db.session.commit()
    except InvalidPlayOrderError as e:
        db.session.rollback()
        return jsonify({'error': str(e)}), 400
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to move playlist item {item_id}: {e}")
        return jsonify({'error': 'Failed to move item'}), 500

    return jsonify({
        'message': 'Playlist item moved successfully',
        'playlistFileId': item.id,
        'playOrder': new_order,
    }), 200


@playlists_bp.route('/playlistFile/<int:item_id>', methods=['DELETE'])
@login_required
def delete_item(item_id):
    item = db.session.get(PlaylistItem, item_id)
    if not item:
        return jsonify({'error': 'Playlist item not found'}), 404

    try:
        PlaylistOrderService.remove_items([item])
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete playlist item {item_id}: {e}")
        return jsonify({'error': 'Failed to delete item'}), 500

    return jsonify({'message': 'Playlist item deleted successfully'}), 200


@playlists_bp.route('/bulk-delete-items', methods=['POST'])
@login_required
def bulk_delete_items():
    """
    Remove several items; every affected playlist is renumbered.

    Request Body:
        { "playlistFileIds": [7, 8] }

    Returns:
        200: { "deletedCount": 2, "affectedPlaylistIds": [1] }
    """
    data = request.get_json(silent=True) or {}
    item_ids = parse_id_list(data.get('playlistFileIds'))
    if not item_ids:
        return jsonify({'error': 'Invalid playlistFileIds'}), 400

    items = PlaylistItem.query.filter(PlaylistItem.id.in_(item_ids)).all()
    if not items:
        return jsonify({'error': 'No playlist items found'}), 404

    try:
        removed = PlaylistOrderService.remove_items(items)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to bulk delete playlist items {item_ids}: {e}")
        return jsonify({'error': 'Failed to delete items'}), 500

    return jsonify({
        'message': 'Playlist items deleted successfully',
        'deletedCount': sum(removed.values()),
        'affectedPlaylistIds': sorted(removed.keys()),
    }), 200


def _duration_skip_reason(item):
    """Entries whose duration is not editable: nested playlists and videos."""
    if item.is_sub_playlist:
        return 'subPlaylist'
    if item.file is not None and item.file.is_video:
        return 'video'
    return None


@playlists_bp.route('/playlistFile/<int:item_id>/duration', methods=['PUT'])
@login_required
def edit_item_duration(item_id):
    """
    Change the duration of one item.

    Nested playlists and videos keep their own length; the response
    reports them as skipped with a reason.

    Request Body:
        { "duration": 15 (1-86400 seconds) }
    """
    data = request.get_json(silent=True) or {}
    duration = _parse_duration(data.get('duration'), ITEM_DURATION_MAX)
    if duration is None:
        return jsonify({'error': f'Invalid duration (must be 1..{ITEM_DURATION_MAX} seconds)'}), 400

    item = db.session.get(PlaylistItem, item_id)
    if not item:
        return jsonify({'error': 'Playlist item not found'}), 404

    reason = _duration_skip_reason(item)
    if reason:
        return jsonify({
            'message': 'Playlist file duration update skipped',
            'skipped': True,
            'reason': reason,
            'playlistFileId': item.id,
        }), 200

    item.duration = duration

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update duration of playlist item {item_id}: {e}")
        return jsonify({'error': 'Failed to update duration'}), 500

    return jsonify({
        'message': 'Playlist file duration updated successfully',
        'skipped': False,
        'playlistFile': {
            'playlistFileId': item.id,
            'playlistId': item.playlist_id,
            'duration': item.duration,
        },
    }), 200


@playlists_bp.route('/bulk-edit-duration', methods=['POST'])
@login_required
def bulk_edit_duration():
    """
    Change the duration of several items, skipping nested playlists and videos.

    Request Body:
        { "playlistFileIds": [7, 8], "duration": 15 }
    """
    data = request.get_json(silent=True) or {}
    item_ids = parse_id_list(data.get('playlistFileIds'))
    if not item_ids:
        return jsonify({'error': 'Invalid playlistFileIds'}), 400

    duration = _parse_duration(data.get('duration'), ITEM_DURATION_MAX)
    if duration is None:
        return jsonify({'error': f'Invalid duration (must be 1..{ITEM_DURATION_MAX} seconds)'}), 400

    items = PlaylistItem.query.filter(PlaylistItem.id.in_(item_ids)).all()
    if not items:
        return jsonify({'error': 'No playlist files found'}), 404

    updated_ids = []
    skipped = []
    for item in items:
        reason = _duration_skip_reason(item)
        if reason:
            skipped.append({'playlistFileId': item.id, 'reason': reason})
            continue
        item.duration = duration
        updated_ids.append(item.id)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to bulk update durations {item_ids}: {e}")
        return jsonify({'error': 'Failed to update durations'}), 500

    return jsonify({
        'message': 'Playlist file durations updated successfully',
        'updatedCount': len(updated_ids),
        'updatedIds': sorted(updated_ids),
        'skipped': skipped,
        'duration': duration,
    }), 200


@playlists_bp.route('/<int:playlist_id>', methods=['DELETE'])
@login_required
def delete_playlist(playlist_id):
    """
    Delete a playlist.

    Entries embedding it in other playlists are removed and those
    playlists renumbered; players playing it are left unassigned.
    """
    playlist = db.session.get(Playlist, playlist_id)
    if not playlist:
        return jsonify({'error': 'Playlist not found'}), 404

    try:
        PlaylistOrderService.delete_playlist(playlist)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete playlist {playlist_id}: {e}")
        return jsonify({'error': 'Failed to delete playlist'}), 500

    return jsonify({'message': 'Playlist deleted successfully'}), 200


@playlists_bp.route('/bulk-delete', methods=['POST'])
@login_required
def bulk_delete_playlists():
    """
    Delete several playlists.

    Request Body:
        { "playlistIds": [1, 2] }
    """
    data = request.get_json(silent=True) or {}
    playlist_ids = parse_id_list(data.get('playlistIds'))
    if not playlist_ids:
        return jsonify({'error': 'Invalid playlistIds'}), 400

    playlists = Playlist.query.filter(Playlist.id.in_(playlist_ids)).all()
    if not playlists:
        return jsonify({'error': 'No playlists found'}), 404

    try:
        for playlist in playlists:
            PlaylistOrderService.delete_playlist(playlist)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to bulk delete playlists {playlist_ids}: {e}")
        return jsonify({'error': 'Failed to delete playlists'}), 500

    return jsonify({
        'message': 'Playlists deleted successfully',
        'deletedCount': len(playlists),
    }), 200
