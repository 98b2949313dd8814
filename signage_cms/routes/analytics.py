"""
Signage CMS Analytics Routes

Blueprint for dashboard analytics:
- GET /summary: Folder/player counters (closes stale sessions first)
- GET /top-clients: Top folders by plays on a day
- GET /top-players: Top players by plays on a day
- GET /recent-sessions: Sessions active on a day
- GET /folder-logs, /file-logs, /playlist-logs, /playlist-file-logs:
  Play statistics per entity over a date range
- GET /folders/<folder_id>/player-stats: One folder's plays by player
- GET /player-logs: Run time per player over a date range
- GET /player-logs/<player_id>: Sessions of one player over a date range

Days are ``YYYY-MM-DD`` in UTC; ranges include both end days. Without a
valid ``date`` the leaderboards and recent sessions cover all time; invalid
range bounds fall back to today (player logs) or to the current month
(play log breakdowns).

All endpoints are prefixed with /api/v1/analytics when registered with the app.
"""

from flask import Blueprint, request, jsonify, current_app

from signage_cms.models import db, Folder, Player, isoformat
from signage_cms.services.analytics import AnalyticsService
from signage_cms.utils.auth import login_required
from signage_cms.utils.query import (
    clean_search,
    date_range,
    day_range,
    parse_sort_order,
    positive_int,
)


# Create analytics blueprint
analytics_bp = Blueprint('analytics', __name__)


def _day_window():
    return day_range(request.args.get('date'))


def _range_window(default):
    return date_range(request.args.get('startDate'), request.args.get('endDate'), default=default)


def _window_meta(window):
    if window is None:
        return None
    start, end = window
    return {'from': isoformat(start), 'to': isoformat(end)}


def _log_args():
    return {
        'search': clean_search(request.args.get('search')),
        'sort_by': request.args.get('sortBy', 'lastPlayed'),
        'sort_order': parse_sort_order(request.args.get('sortOrder')),
        'offset': request.args.get('offset'),
        'limit': request.args.get('limit'),
    }


@analytics_bp.route('/summary', methods=['GET'])
@login_required
def summary():
    """
    Dashboard counters.

    Returns:
        200: { "totalFolders", "players", "online", "offline" }
    """
    try:
        counts = AnalyticsService.summary()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Failed to build analytics summary: {e}")
        return jsonify({'error': 'Failed to load summary'}), 500

    return jsonify({'message': 'Summary fetched successfully', **counts}), 200


@analytics_bp.route('/top-clients', methods=['GET'])
@login_required
def top_clients():
    window = _day_window()
    return jsonify({
        'message': 'Top clients fetched successfully',
        'range': _window_meta(window),
        'topClients': AnalyticsService.top_clients(window),
    }), 200


@analytics_bp.route('/top-players', methods=['GET'])
@login_required
def top_players():
    window = _day_window()
    return jsonify({
        'message': 'Top players fetched successfully',
        'range': _window_meta(window),
        'topPlayers': AnalyticsService.top_players(window),
    }), 200


@analytics_bp.route('/recent-sessions', methods=['GET'])
@login_required
def recent_sessions():
    """
    Up to 50 sessions that started, heartbeated or ended on a day.

    Query Parameters:
        date: YYYY-MM-DD (default all time)
        sortBy: lastActive (default), name, status
        sortOrder: asc or desc (default desc)
    """
    window = _day_window()
    sort_by = request.args.get('sortBy', 'lastActive')
    sort_order = parse_sort_order(request.args.get('sortOrder'))
    return jsonify({
        'message': 'Recent sessions fetched successfully',
        'range': _window_meta(window),
        'sessions': AnalyticsService.recent_sessions(window, sort_by=sort_by, sort_order=sort_order),
    }), 200


def _log_response(name, page, pagination, window, args):
    return jsonify({
        'message': f'{name} fetched successfully',
        'range': _window_meta(window),
        'rows': page,
        'pagination': pagination,
        'meta': {
            'search': args['search'],
            'sortBy': args['sort_by'],
            'sortOrder': args['sort_order'],
        },
    }), 200


@analytics_bp.route('/folder-logs', methods=['GET'])
@login_required
def folder_logs():
    """
    Play statistics per folder.

    Query Parameters:
        startDate / endDate: YYYY-MM-DD (default current month)
        search: Folder name filter
        sortBy: lastPlayed (default), totalRunTime, devices, plays, name
        sortOrder: asc or desc (default desc)
        offset / limit: Pagination (limit max 100)
    """
    window = _range_window('month')
    args = _log_args()
    page, pagination = AnalyticsService.folder_logs(window, **args)
    return _log_response('Folder logs', page, pagination, window, args)


@analytics_bp.route('/file-logs', methods=['GET'])
@login_required
def file_logs():
    window = _range_window('month')
    args = _log_args()
    page, pagination = AnalyticsService.file_logs(window, **args)
    return _log_response('File logs', page, pagination, window, args)


@analytics_bp.route('/playlist-logs', methods=['GET'])
@login_required
def playlist_logs():
    window = _range_window('month')
    args = _log_args()
    page, pagination = AnalyticsService.playlist_logs(window, **args)
    return _log_response('Playlist logs', page, pagination, window, args)


@analytics_bp.route('/playlist-file-logs', methods=['GET'])
@login_required
def playlist_file_logs():
    """Play statistics per playlist entry; ``playlistId`` narrows to one playlist."""
    window = _range_window('month')
    args = _log_args()
    page, pagination = AnalyticsService.playlist_file_logs(
        window, playlist_id=positive_int(request.args.get('playlistId')), **args
    )
    return _log_response('Playlist file logs', page, pagination, window, args)


@analytics_bp.route('/folders/<int:folder_id>/player-stats', methods=['GET'])
@login_required
def folder_player_stats(folder_id):
    """
    Plays of one folder's files broken down by player.

    Query Parameters:
        startDate / endDate: YYYY-MM-DD (default current month)
        search: Player name filter
        sortBy: plays (default), totalHours, lastActive, name
        sortOrder, offset, limit
    """
    folder = db.session.get(Folder, folder_id)
    if not folder:
        return jsonify({'error': 'Folder not found'}), 404

    window = _range_window('month')
    args = _log_args()
    args['sort_by'] = request.args.get('sortBy', 'plays')
    page, pagination, totals = AnalyticsService.folder_player_stats(folder.id, window, **args)

    return jsonify({
        'message': 'Folder player stats fetched successfully',
        'folder': {'id': folder.id, 'name': folder.name},
        'range': _window_meta(window),
        'rows': page,
        'pagination': pagination,
        **totals,
    }), 200


@analytics_bp.route('/player-logs', methods=['GET'])
@login_required
def player_logs():
    """
    Newest session, status and run time inside the range for every player.

    Query Parameters:
        startDate / endDate: YYYY-MM-DD (default today)
    """
    window = _range_window('today')
    return jsonify({
        'message': 'Player logs fetched successfully',
        'range': _window_meta(window),
        'players': AnalyticsService.player_logs(window),
    }), 200


@analytics_bp.route('/player-logs/<int:player_id>', methods=['GET'])
@login_required
def player_sessions(player_id):
    player = db.session.get(Player, player_id)
    if not player:
        return jsonify({'error': 'Player not found'}), 404

    window = _range_window('today')
    return jsonify({
        'message': 'Player sessions fetched successfully',
        'player': {'id': player.id, 'name': player.name, 'location': player.location},
        'range': _window_meta(window),
        'sessions': AnalyticsService.player_sessions(player.id, window),
    }), 200
