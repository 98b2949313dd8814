"""
Signage CMS Player Routes

Blueprint for player device management:
- GET /: List players with session status
- GET /<player_id>: Player detail including its device key
- POST /: Create player
- POST /edit: Update player
- POST /<player_id>/update-playlist: Assign or clear a playlist
- DELETE /<player_id>: Delete player with its sessions and play logs
- GET /get-activity: Online/offline events of all players

All endpoints are prefixed with /api/v1/players when registered with the app.
"""

from flask import Blueprint, request, jsonify, current_app

from signage_cms.models import db, Player, PlayerSession, Playlist, PlayLog, utcnow, isoformat
from signage_cms.services.device_codes import DeviceCodeGenerator, DeviceCodeError
from signage_cms.services.presence import PresenceService, ONLINE, OFFLINE
from signage_cms.utils.auth import login_required
from signage_cms.utils.query import (
    max_datetime,
    paginate,
    parse_sort_order,
    positive_int,
    sort_rows,
)


# Create players blueprint
players_bp = Blueprint('players', __name__)

DEVICE_KEY_MIN_LENGTH = 8
DEVICE_KEY_MAX_LENGTH = 16
NAME_MAX_LENGTH = 200
LOCATION_MAX_LENGTH = 255
ACTIVITY_MAX_LIMIT = 100


def player_row(player, now=None, threshold=None, include_key=False):
    """Serialize a player with the state of its newest session."""
    now = now or utcnow()
    session = player.latest_session()
    last_active = None
    duration = None
    if session is not None:
        last_active = max_datetime([session.last_active_at, session.started_at, session.ended_at])
        duration = session.duration_seconds(now)

    row = {
        'id': player.id,
        'name': player.name,
        'location': player.location,
        'linked': player.linked,
        'deviceCode': player.device_code,
        'playlist': player.playlist.name if player.playlist else None,
        'playlistId': player.playlist_id,
        'sessionStart': isoformat(session.started_at) if session else None,
        'sessionEnd': isoformat(session.ended_at) if session else None,
        'status': PresenceService.session_status(session, now=now, threshold=threshold),
        'lastActive': isoformat(last_active),
        'sessionDurationSec': duration,
    }
    if include_key:
        row['deviceKey'] = player.device_key
    return row


def _clean_text(value, max_length):
    if not isinstance(value, str):
        return None
    value = value.strip()
    if not value or len(value) > max_length:
        return None
    return value


def _validate_device_key(value, exclude_id=None):
    """
    Check an admin-chosen device key.

    Returns:
        Tuple of (key, error_message)
    """
    if not isinstance(value, str):
        return None, 'deviceKey must be a string'
    value = value.strip()
    if not (DEVICE_KEY_MIN_LENGTH <= len(value) <= DEVICE_KEY_MAX_LENGTH):
        return None, f'deviceKey must be {DEVICE_KEY_MIN_LENGTH}-{DEVICE_KEY_MAX_LENGTH} characters'
    query = Player.query.filter(Player.device_key == value)
    if exclude_id is not None:
        query = query.filter(Player.id != exclude_id)
    if query.first() is not None:
        return None, 'deviceKey already in use'
    return value, None


def _resolve_playlist(value):
    """
    Returns:
        Tuple of (playlist_id or None, error response or None)
    """
    if value is None:
        return None, None
    playlist_id = positive_int(value)
    if playlist_id is None:
        return None, (jsonify({'error': 'Invalid playlistId'}), 400)
    if db.session.get(Playlist, playlist_id) is None:
        return None, (jsonify({'error': 'Playlist not found'}), 404)
    return playlist_id, None


@players_bp.route('', methods=['GET'])
@login_required
def list_players():
    """
    List players.

    Stale sessions are closed first so the status column is current.

    Query Parameters:
        status: Online or Offline
        sortBy: status, lastActive, duration, name
        sortOrder: asc or desc (default desc)

    Returns:
        200: { "players": [ player rows ] }
    """
    now = utcnow()
    try:
        PresenceService.reconcile_stale_sessions(now=now)
    except Exception as e:
        current_app.logger.error(f"Failed to reconcile stale sessions: {e}")

    status = request.args.get('status')
    sort_by = request.args.get('sortBy')
    sort_order = parse_sort_order(request.args.get('sortOrder'))

    threshold = PresenceService.threshold()
    players = Player.query.order_by(Player.updated_at.desc()).all()
    rows = [player_row(p, now=now, threshold=threshold) for p in players]

    if status and status.lower() in (ONLINE.lower(), OFFLINE.lower()):
        rows = [r for r in rows if r['status'].lower() == status.lower()]

    sort_keys = {
        'status': lambda r: r['status'],
        'lastActive': lambda r: r['lastActive'],
        'duration': lambda r: r['sessionDurationSec'],
        'name': lambda r: r['name'].lower(),
    }
    if sort_by in sort_keys:
        rows = sort_rows(rows, sort_keys[sort_by], sort_order)

    return jsonify({
        'message': 'Players fetched successfully',
        'players': rows,
    }), 200


@players_bp.route('/<int:player_id>', methods=['GET'])
@login_required
def get_player(player_id):
    player = db.session.get(Player, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    return jsonify({
        'message': 'Player fetched successfully',
        'player': player_row(player, include_key=True),
    }), 200


@players_bp.route('', methods=['POST'])
@login_required
def create_player():
    """
    Create a player.

    A unique device code is always generated; the device key is generated
    too unless the admin supplies one.

    Request Body:
        {
            "name": "Lobby screen" (required),
            "location": "Building A" (required),
            "playlistId": 1 (optional),
            "deviceKey": "lobby123" (optional, 8-16 characters, unique)
        }

    Returns:
        201: { "message": "Player created successfully", "player": {...} }
        400: Validation error
        404: Playlist not found
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    name = _clean_text(data.get('name'), NAME_MAX_LENGTH)
    if not name:
        return jsonify({'error': 'Name is required'}), 400

    location = _clean_text(data.get('location'), LOCATION_MAX_LENGTH)
    if not location:
        return jsonify({'error': 'Location is required'}), 400

    playlist_id, error = _resolve_playlist(data.get('playlistId'))
    if error:
        return error

    device_key = None
    if data.get('deviceKey') not in (None, ''):
        device_key, key_error = _validate_device_key(data.get('deviceKey'))
        if key_error:
            return jsonify({'error': key_error}), 400

    try:
        device_code = DeviceCodeGenerator.generate_unique('device_code')
        if device_key is None:
            device_key = DeviceCodeGenerator.generate_unique('device_key')
    except DeviceCodeError as e:
        current_app.logger.error(f"Device code generation failed: {e}")
        return jsonify({'error': 'Failed to generate device code'}), 500

    player = Player(
        name=name,
        location=location,
        playlist_id=playlist_id,
        device_code=device_code,
        device_key=device_key,
        linked=False,
    )

    try:
        db.session.add(player)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to create player {name}: {e}")
        return jsonify({'error': 'Failed to create player'}), 500

    current_app.logger.info(f"Created player {player.id} ({player.device_code})")
    return jsonify({
        'message': 'Player created successfully',
        'player': player.to_dict(include_key=True),
    }), 201


@players_bp.route('/edit', methods=['POST'])
@login_required
def edit_player():
    """
    Update a player.

    Request Body:
        {
            "playerId": 1 (required),
            "name": "Lobby screen" (required),
            "location": "Building A" (required),
            "playlistId": 2 or null (optional, null clears),
            "deviceKey": "newkey123" (optional)
        }
    """
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'Request body is required'}), 400

    player_id = positive_int(data.get('playerId'))
    if player_id is None:
        return jsonify({'error': 'Invalid playerId'}), 400

    player = db.session.get(Player, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    name = _clean_text(data.get('name'), NAME_MAX_LENGTH)
    if not name:
        return jsonify({'error': 'Name is required'}), 400

    location = _clean_text(data.get('location'), LOCATION_MAX_LENGTH)
    if not location:
        return jsonify({'error': 'Location is required'}), 400

    if 'playlistId' in data:
        playlist_id, error = _resolve_playlist(data.get('playlistId'))
        if error:
            return error
        player.playlist_id = playlist_id

    if data.get('deviceKey') not in (None, ''):
        device_key, key_error = _validate_device_key(data.get('deviceKey'), exclude_id=player.id)
        if key_error:
            return jsonify({'error': key_error}), 400
        player.device_key = device_key

    player.name = name
    player.location = location

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to update player {player_id}: {e}")
        return jsonify({'error': 'Failed to update player'}), 500

    return jsonify({
        'message': 'Player updated successfully',
        'player': player.to_dict(include_key=True),
    }), 200


@players_bp.route('/<int:player_id>/update-playlist', methods=['POST'])
@login_required
def update_player_playlist(player_id):
    """
    Assign a playlist to a player, or clear it with null.

    Request Body:
        { "playlistId": 2 } or { "playlistId": null }
    """
    player = db.session.get(Player, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    data = request.get_json(silent=True)
    if not isinstance(data, dict) or 'playlistId' not in data:
        return jsonify({'error': 'playlistId is required'}), 400

    playlist_id, error = _resolve_playlist(data.get('playlistId'))
    if error:
        return error

    player.playlist_id = playlist_id

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to assign playlist to player {player_id}: {e}")
        return jsonify({'error': 'Failed to update playlist'}), 500

    return jsonify({
        'message': 'Player playlist updated successfully',
        'player': player.to_dict(),
    }), 200


@players_bp.route('/<int:player_id>', methods=['DELETE'])
@login_required
def delete_player(player_id):
    """Delete a player together with its sessions and play logs."""
    player = db.session.get(Player, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    try:
        PlayLog.query.filter(PlayLog.player_id == player.id).delete(synchronize_session=False)
        db.session.delete(player)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to delete player {player_id}: {e}")
        return jsonify({'error': 'Failed to delete player'}), 500

    current_app.logger.info(f"Deleted player {player_id}")
    return jsonify({'message': 'Player deleted successfully'}), 200


@players_bp.route('/get-activity', methods=['GET'])
@login_required
def get_activity():
    """
    Online/offline events derived from player sessions, newest first.

    A session contributes an ONLINE event when it starts and an OFFLINE
    event when it ends.

    Query Parameters:
        offset: Events to skip (default 0)
        limit: Page size (default 20, max 100)

    Returns:
        200: { "activity": [ events ], "pagination": {...} }
    """
    sessions = PlayerSession.query.join(Player).order_by(PlayerSession.started_at.desc()).all()

    events = []
    for session in sessions:
        events.append({
            'id': f'{session.id}-online',
            'type': ONLINE.upper(),
            'playerId': session.player_id,
            'playerName': session.player.name,
            'message': f'{session.player.name} came online',
            'sessionId': session.id,
            '_at': session.started_at,
        })
        if session.ended_at is not None:
            events.append({
                'id': f'{session.id}-offline',
                'type': OFFLINE.upper(),
                'playerId': session.player_id,
                'playerName': session.player.name,
                'message': f'{session.player.name} went offline',
                'sessionId': session.id,
                '_at': session.ended_at,
            })

    events = sort_rows(events, lambda e: (e['_at'], e['sessionId'], e['type'] == OFFLINE.upper()), 'desc')
    page, pagination = paginate(
        events,
        offset=request.args.get('offset'),
        limit=request.args.get('limit'),
        max_limit=ACTIVITY_MAX_LIMIT,
    )
    activity = [
        {**{k: v for k, v in e.items() if k != '_at'}, 'at': isoformat(e['_at'])}
        for e in page
    ]

    return jsonify({
        'message': 'Activity fetched successfully',
        'activity': activity,
        'pagination': pagination,
    }), 200
