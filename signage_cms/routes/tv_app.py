"""
Signage CMS TV App Routes

Device-facing blueprint used by the TV player app. Devices identify
themselves by the device code they received when linking; there is no
admin session on these endpoints.

- POST /player/link: Link the TV app to a player by name and device key
- GET /player/<device_code>/playlist: Assigned playlist with signed URLs
- POST /player/<device_code>/playlogs: Report a playback
- POST /player/<device_code>/session/start: Open (or reuse) a session
- POST /player/<device_code>/session/end: Close the active session(s)
- POST /player/<device_code>/heartbeat: Keep the active session alive

All endpoints are prefixed with /api/v1/tv-app when registered with the app.
"""

from flask import Blueprint, request, jsonify, current_app

from signage_cms.models import (
    db, MediaFile, Player, PlayerSession, Playlist, PlaylistItem, PlayLog, utcnow,
)
from signage_cms.services.playlist_order import PlaylistOrderService
from signage_cms.services.storage import signed_url
from signage_cms.utils.query import parse_bool, positive_int


# Create TV app blueprint
tv_app_bp = Blueprint('tv_app', __name__)


def _get_player(device_code):
    return Player.query.filter_by(device_code=device_code).first()


def _newest_active_session(player_id):
    return PlayerSession.query.filter(
        PlayerSession.player_id == player_id,
        PlayerSession.is_active.is_(True),
        PlayerSession.ended_at.is_(None),
    ).order_by(PlayerSession.started_at.desc(), PlayerSession.id.desc()).first()


def serialize_playlist(playlist, ancestors=None):
    """
    Serialize a playlist for the device, expanding nested playlists.

    Entries pointing at trashed files are dropped. A nested playlist that
    is already being expanded higher up is emitted without its entries.
    """
    ancestors = (ancestors or set()) | {playlist.id}
    entries = []
    for item in PlaylistOrderService.ordered_items(playlist.id):
        entry = {
            'id': item.id,
            'playOrder': item.play_order,
            'duration': item.duration,
            'isSubPlaylist': bool(item.is_sub_playlist),
            'fileId': item.file_id,
            'subPlaylistId': item.sub_playlist_id,
            'file': None,
            'subPlaylist': None,
        }

        if item.file_id is not None:
            media_file = item.file
            if media_file is None or media_file.is_deleted:
                continue
            entry['file'] = media_file.to_dict(url=signed_url(media_file.file_key))
        else:
            sub_playlist = item.sub_playlist
            if sub_playlist is None:
                continue
            if sub_playlist.id in ancestors:
                current_app.logger.warning(
                    f"Playlist {playlist.id} nests playlist {sub_playlist.id} recursively; not expanding"
                )
                entry['subPlaylist'] = {
                    'id': sub_playlist.id,
                    'name': sub_playlist.name,
                    'defaultDuration': sub_playlist.default_duration,
                    'playlistFiles': [],
                }
            else:
                entry['subPlaylist'] = serialize_playlist(sub_playlist, ancestors)

        entries.append(entry)

    return {
        'id': playlist.id,
        'name': playlist.name,
        'defaultDuration': playlist.default_duration,
        'playlistFiles': entries,
    }


@tv_app_bp.route('/player/link', methods=['POST'])
def link_player():
    """
    Link the TV app to a player.

    Request Body:
        {
            "deviceName": "Lobby screen" (required, the player's name),
            "deviceKey": "a1b2c3d4e5f60718" (required)
        }

    Returns:
        200: { "message": "Player linked successfully" | "Player Authenticated Successfully",
               "player": { "id", "deviceCode", "playlistId", "location", "linked" } }
        400: Missing fields
        404: No player with that name and key
    """
    data = request.get_json(silent=True) or {}
    device_name = data.get('deviceName')
    device_key = data.get('deviceKey')
    if not isinstance(device_name, str) or not device_name.strip():
        return jsonify({'error': 'deviceName is required'}), 400
    if not isinstance(device_key, str) or not device_key.strip():
        return jsonify({'error': 'deviceKey is required'}), 400

    player = Player.query.filter_by(name=device_name.strip(), device_key=device_key.strip()).first()
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    first_link = not player.linked
    if first_link:
        player.linked = True
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to link player {player.id}: {e}")
            return jsonify({'error': 'Failed to link player'}), 500
        current_app.logger.info(f"Player {player.id} linked")

    return jsonify({
        'message': 'Player linked successfully' if first_link else 'Player Authenticated Successfully',
        'player': {
            'id': player.id,
            'deviceCode': player.device_code,
            'playlistId': player.playlist_id,
            'location': player.location,
            'linked': True,
        },
    }), 200


@tv_app_bp.route('/player/<device_code>/playlist', methods=['GET'])
def get_device_playlist(device_code):
    """
    Playlist assigned to the device, fully expanded.

    Returns:
        200: { "playlist": null } when nothing is assigned, otherwise
             { "playlist": { "id", "name", "defaultDuration", "playlistFiles": [...] } }
        404: Unknown device code
    """
    player = _get_player(device_code)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    if player.playlist_id is None:
        return jsonify({'playlist': None}), 200

    playlist = db.session.get(Playlist, player.playlist_id)
    if playlist is None:
        return jsonify({'playlist': None}), 200

    return jsonify({'playlist': serialize_playlist(playlist)}), 200


@tv_app_bp.route('/player/<device_code>/playlogs', methods=['POST'])
def create_play_log(device_code):
    """
    Record one playback.

    The playlist must be the one currently assigned to the player. The
    active session's heartbeat is refreshed.

    Request Body:
        {
            "fileId": 5 (required),
            "playlistId": 1 (required),
            "playlistFileId": 7 (optional, must belong to playlistId),
            "subPlaylistId": 2 (optional, only with isSubPlaylist),
            "isSubPlaylist": false (optional)
        }

    Returns:
        201: { "message": "Play log created", "playLogId": 42 }
        400: Invalid or mismatched ids
        404: Unknown device code or no playlist assigned
    """
    data = request.get_json(silent=True) or {}

    file_id = positive_int(data.get('fileId'))
    if file_id is None:
        return jsonify({'error': 'Invalid fileId'}), 400

    player = _get_player(device_code)
    if not player or player.playlist_id is None:
        return jsonify({'error': 'Player not found'}), 404

    playlist_id = positive_int(data.get('playlistId'))
    if playlist_id is None or playlist_id != player.playlist_id:
        return jsonify({'error': 'Playlist not found'}), 400

    is_sub_playlist = parse_bool(data.get('isSubPlaylist', False))
    sub_playlist_id = positive_int(data.get('subPlaylistId')) if is_sub_playlist else None
    playlist_item_id = positive_int(data.get('playlistFileId'))

    if db.session.get(MediaFile, file_id) is None:
        return jsonify({'error': 'File not found'}), 400

    if playlist_item_id is not None:
        item = db.session.get(PlaylistItem, playlist_item_id)
        if item is None or item.playlist_id != playlist_id:
            return jsonify({'error': 'Invalid playlistFileId'}), 400

    if sub_playlist_id is not None and db.session.get(Playlist, sub_playlist_id) is None:
        return jsonify({'error': 'Invalid subPlaylistId'}), 400

    now = utcnow()
    session = _newest_active_session(player.id)
    if session is not None:
        session.touch(now)

    play_log = PlayLog(
        player_id=player.id,
        file_id=file_id,
        playlist_id=playlist_id,
        playlist_item_id=playlist_item_id,
        sub_playlist_id=sub_playlist_id,
        is_sub_playlist=is_sub_playlist,
        created_at=now,
    )

    try:
        db.session.add(play_log)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record play log for player {player.id}: {e}")
        return jsonify({'error': 'Failed to record play log'}), 500

    return jsonify({'message': 'Play log created', 'playLogId': play_log.id}), 201


@tv_app_bp.route('/player/<device_code>/session/start', methods=['POST'])
def start_session(device_code):
    """
    Open a session for the device.

    An already active session is reused and heartbeated, unless
    ``forceNew`` is set; then it is ended and a fresh one opened.

    Request Body:
        { "forceNew": false } (optional)
    """
    player = _get_player(device_code)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    data = request.get_json(silent=True) or {}
    force_new = parse_bool(data.get('forceNew', False))
    now = utcnow()

    active = _newest_active_session(player.id)
    if active is not None and not force_new:
        active.touch(now)
        try:
            db.session.commit()
        except Exception as e:
            db.session.rollback()
            current_app.logger.error(f"Failed to refresh session {active.id}: {e}")
            return jsonify({'error': 'Failed to start session'}), 500
        return jsonify({
            'message': 'Session already active',
            'session': active.to_dict(),
        }), 200

    if active is not None:
        active.end(now)

    session = PlayerSession(player_id=player.id, started_at=now, last_active_at=now, is_active=True)

    try:
        db.session.add(session)
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to start session for player {player.id}: {e}")
        return jsonify({'error': 'Failed to start session'}), 500

    current_app.logger.info(f"Player {player.id} started session {session.id}")
    return jsonify({
        'message': 'Session started',
        'session': session.to_dict(),
    }), 200


@tv_app_bp.route('/player/<device_code>/session/end', methods=['POST'])
def end_session(device_code):
    """
    Close the newest active session, or every active one with ``endAll``.

    Request Body:
        { "endAll": false } (optional)

    Returns:
        200: { "message": ..., "endedCount": 1 }
    """
    player = _get_player(device_code)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    data = request.get_json(silent=True) or {}
    end_all = parse_bool(data.get('endAll', False))
    now = utcnow()

    if end_all:
        sessions = PlayerSession.query.filter(
            PlayerSession.player_id == player.id,
            PlayerSession.is_active.is_(True),
            PlayerSession.ended_at.is_(None),
        ).all()
    else:
        newest = _newest_active_session(player.id)
        sessions = [newest] if newest is not None else []

    if not sessions:
        return jsonify({'message': 'No active session', 'endedCount': 0}), 200

    for session in sessions:
        session.end(now)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to end sessions for player {player.id}: {e}")
        return jsonify({'error': 'Failed to end session'}), 500

    return jsonify({
        'message': 'Sessions ended' if end_all else 'Session ended',
        'endedCount': len(sessions),
    }), 200


@tv_app_bp.route('/player/<device_code>/heartbeat', methods=['POST'])
def heartbeat(device_code):
    """
    Keep the device's session alive.

    Opens a session when none is active, so a device that lost its
    session comes back online with its next heartbeat.
    """
    player = _get_player(device_code)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    now = utcnow()
    session = _newest_active_session(player.id)
    created = session is None
    if created:
        session = PlayerSession(player_id=player.id, started_at=now, is_active=True)
        db.session.add(session)
    session.touch(now)

    try:
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to record heartbeat for player {player.id}: {e}")
        return jsonify({'error': 'Failed to record heartbeat'}), 500

    return jsonify({
        'message': 'Session started' if created else 'Heartbeat recorded',
        'session': session.to_dict(),
    }), 200
