"""
Analytics Service for Signage CMS.

Aggregates play logs and player sessions for the dashboard:
- Summary counters (folders, players, online/offline)
- Top clients and top players by plays
- Recent sessions
- Per-folder, per-file, per-playlist and per-playlist-entry play logs
- Per-player run time and sessions

Run time of a play is the duration of the playlist entry that was played,
falling back to the file's own duration.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple

from signage_cms.models import (
    db, Folder, MediaFile, Player, PlayerSession, Playlist, PlaylistItem, PlayLog,
    utcnow, isoformat,
)
from signage_cms.services.presence import PresenceService
from signage_cms.services.storage import signed_url
from signage_cms.utils.query import sort_rows, paginate


TOP_LIMIT = 5
RECENT_SESSIONS_LIMIT = 50

LOG_SORT_KEYS = {
    'lastPlayed': 'lastPlayedAt',
    'totalRunTime': 'totalRunTimeSec',
    'devices': 'devices',
    'plays': 'plays',
}


def _play_seconds(media_file: Optional[MediaFile], item: Optional[PlaylistItem]) -> int:
    if item is not None and item.duration:
        return int(item.duration)
    if media_file is not None and media_file.duration:
        return int(media_file.duration)
    return 0


def _overlap_seconds(start: datetime, end: datetime, window_start: datetime, window_end: datetime) -> int:
    lo = max(start, window_start)
    hi = min(end, window_end)
    return max(0, int((hi - lo).total_seconds()))


class AnalyticsService:
    """
    Service class for dashboard analytics.

    All windows are half-open ``[start, end)`` in UTC.
    """

    # ------------------------------------------------------------------
    # Summary and leaderboards
    # ------------------------------------------------------------------

    @classmethod
    def summary(cls, now=None) -> Dict[str, int]:
        """
        Close stale sessions, then count folders and players by status.
        """
        now = now or utcnow()
        PresenceService.reconcile_stale_sessions(now=now)

        total_folders = Folder.query.filter(Folder.is_deleted.is_(False)).count()
        players = Player.query.count()

        threshold = PresenceService.threshold()
        active = PlayerSession.query.filter(PlayerSession.is_active.is_(True)).all()
        online_ids = {
            s.player_id for s in active
            if PresenceService.is_online(s.last_active_at, s.is_active, now=now, threshold=threshold)
        }
        online = len(online_ids)
        return {
            'totalFolders': total_folders,
            'players': players,
            'online': online,
            'offline': max(0, players - online),
        }

    @classmethod
    def _log_filter(cls, query, window: Optional[Tuple[datetime, datetime]]):
        if window is None:
            return query
        start, end = window
        return query.filter(PlayLog.created_at >= start, PlayLog.created_at < end)

    @classmethod
    def top_clients(cls, window=None, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
        """Folders whose files were played most, skipping trashed folders."""
        plays = db.func.count(PlayLog.id)
        query = db.session.query(Folder.id, Folder.name, plays).join(
            MediaFile, MediaFile.folder_id == Folder.id
        ).join(
            PlayLog, PlayLog.file_id == MediaFile.id
        ).filter(Folder.is_deleted.is_(False))
        rows = cls._log_filter(query, window).group_by(Folder.id, Folder.name).order_by(
            plays.desc(), Folder.id
        ).limit(limit).all()
        return [
            {'folderId': folder_id, 'folderName': name, 'adsPlayed': count}
            for folder_id, name, count in rows
        ]

    @classmethod
    def top_players(cls, window=None, limit: int = TOP_LIMIT) -> List[Dict[str, Any]]:
        plays = db.func.count(PlayLog.id)
        query = db.session.query(Player.id, Player.name, plays).join(
            PlayLog, PlayLog.player_id == Player.id
        )
        rows = cls._log_filter(query, window).group_by(Player.id, Player.name).order_by(
            plays.desc(), Player.id
        ).limit(limit).all()
        return [
            {'playerId': player_id, 'playerName': name, 'adsPlayed': count}
            for player_id, name, count in rows
        ]

    @classmethod
    def session_row(cls, session: PlayerSession, now=None, threshold=None) -> Dict[str, Any]:
        end = session.ended_at or session.last_active_at
        duration = 0
        if session.started_at and end:
            duration = max(0, int((end - session.started_at).total_seconds()))
        return {
            'sessionId': session.id,
            'playerId': session.player_id,
            'name': session.player.name if session.player else 'Unknown',
            'sessionStart': isoformat(session.started_at),
            'sessionEnd': isoformat(session.ended_at),
            'status': PresenceService.session_status(session, now=now, threshold=threshold),
            'lastActive': isoformat(session.last_active_at),
            'sessionDurationSec': duration,
        }

    @classmethod
    def recent_sessions(cls, window=None, sort_by: str = 'lastActive', sort_order: str = 'desc',
                        now=None) -> List[Dict[str, Any]]:
        """Newest sessions that started, heartbeated or ended within the window."""
        now = now or utcnow()
        query = PlayerSession.query
        if window is not None:
            start, end = window
            query = query.filter(db.or_(
                db.and_(PlayerSession.started_at >= start, PlayerSession.started_at < end),
                db.and_(PlayerSession.last_active_at >= start, PlayerSession.last_active_at < end),
                db.and_(PlayerSession.ended_at >= start, PlayerSession.ended_at < end),
            ))
        sessions = query.order_by(PlayerSession.started_at.desc(), PlayerSession.id.desc()).limit(
            RECENT_SESSIONS_LIMIT
        ).all()

        threshold = PresenceService.threshold()
        rows = [cls.session_row(s, now=now, threshold=threshold) for s in sessions]
        last_active = {s.id: s.last_active_at for s in sessions}

        if sort_by == 'name':
            return sort_rows(rows, lambda r: r['name'].lower(), sort_order)
        if sort_by == 'status':
            return sort_rows(rows, lambda r: r['status'], sort_order)
        return sort_rows(rows, lambda r: last_active.get(r['sessionId']), sort_order)

    # ------------------------------------------------------------------
    # Play log breakdowns
    # ------------------------------------------------------------------

    @classmethod
    def _log_rows(cls, window, extra_filters=()):
        query = db.session.query(PlayLog, MediaFile, PlaylistItem).join(
            MediaFile, PlayLog.file_id == MediaFile.id
        ).outerjoin(
            PlaylistItem, PlayLog.playlist_item_id == PlaylistItem.id
        )
        for condition in extra_filters:
            query = query.filter(condition)
        return cls._log_filter(query, window).all()

    @classmethod
    def _aggregate(cls, rows, key_of: Callable) -> Dict[Any, Dict[str, Any]]:
        groups: Dict[Any, Dict[str, Any]] = {}
        for log, media_file, item in rows:
            key = key_of(log, media_file, item)
            if key is None:
                continue
            group = groups.setdefault(key, {
                'plays': 0,
                'devices': set(),
                'lastPlayedAt': None,
                'totalRunTimeSec': 0,
            })
            group['plays'] += 1
            group['devices'].add(log.player_id)
            group['totalRunTimeSec'] += _play_seconds(media_file, item)
            if group['lastPlayedAt'] is None or (log.created_at and log.created_at > group['lastPlayedAt']):
                group['lastPlayedAt'] = log.created_at
        return groups

    @classmethod
    def _stats(cls, group: Dict[str, Any]) -> Dict[str, Any]:
        return {
            'lastPlayedAt': isoformat(group['lastPlayedAt']),
            'totalRunTimeSec': group['totalRunTimeSec'],
            'devices': len(group['devices']),
            'plays': group['plays'],
        }

    @classmethod
    def _finish(cls, rows: List[Dict[str, Any]], name_field: str, search: Optional[str],
                sort_by: str, sort_order: str, offset, limit):
        if search:
            needle = search.lower()
            rows = [r for r in rows if needle in (r.get(name_field) or '').lower()]

        if sort_by == 'name':
            rows = sort_rows(rows, lambda r: (r.get(name_field) or '').lower(), sort_order)
        else:
            field = LOG_SORT_KEYS.get(sort_by, 'lastPlayedAt')
            rows = sort_rows(rows, lambda r: r.get(field), sort_order)

        return paginate(rows, offset=offset, limit=limit)

    @classmethod
    def _thumbnail(cls, media_files) -> str:
        for media_file in media_files:
            if media_file.is_image and not media_file.is_deleted:
                return signed_url(media_file.file_key) or ''
        return ''

    @classmethod
    def folder_logs(cls, window, search=None, sort_by='lastPlayed', sort_order='desc', offset=0, limit=20):
        groups = cls._aggregate(cls._log_rows(window), lambda log, f, item: f.folder_id)
        folders = {
            f.id: f for f in Folder.query.filter(
                Folder.id.in_(list(groups.keys())), Folder.is_deleted.is_(False)
            ).all()
        } if groups else {}

        rows = []
        for folder_id, group in groups.items():
            folder = folders.get(folder_id)
            if folder is None:
                continue
            rows.append({
                'folderId': folder.id,
                'folderName': folder.name,
                'thumbnail': cls._thumbnail(folder.files),
                **cls._stats(group),
            })
        return cls._finish(rows, 'folderName', search, sort_by, sort_order, offset, limit)

    @classmethod
    def file_logs(cls, window, search=None, sort_by='lastPlayed', sort_order='desc', offset=0, limit=20):
        rows_raw = cls._log_rows(window)
        groups = cls._aggregate(rows_raw, lambda log, f, item: f.id)
        files = {f.id: f for _, f, _ in rows_raw}

        rows = []
        for file_id, group in groups.items():
            media_file = files[file_id]
            rows.append({
                'fileId': media_file.id,
                'fileName': media_file.name,
                'fileType': media_file.file_type,
                'folderId': media_file.folder_id,
                'folderName': media_file.folder.name if media_file.folder else None,
                'thumbnail': cls._thumbnail([media_file]),
                'isDeleted': media_file.is_deleted,
                **cls._stats(group),
            })
        return cls._finish(rows, 'fileName', search, sort_by, sort_order, offset, limit)

    @classmethod
    def playlist_logs(cls, window, search=None, sort_by='lastPlayed', sort_order='desc', offset=0, limit=20):
        groups = cls._aggregate(cls._log_rows(window), lambda log, f, item: log.playlist_id)
        playlists = {
            p.id: p for p in Playlist.query.filter(Playlist.id.in_(list(groups.keys()))).all()
        } if groups else {}

        rows = []
        for playlist_id, group in groups.items():
            playlist = playlists.get(playlist_id)
            if playlist is None:
                continue
            rows.append({
                'playlistId': playlist.id,
                'playlistName': playlist.name,
                **cls._stats(group),
            })
        return cls._finish(rows, 'playlistName', search, sort_by, sort_order, offset, limit)

    @classmethod
    def playlist_file_logs(cls, window, search=None, sort_by='lastPlayed', sort_order='desc',
                           offset=0, limit=20, playlist_id: Optional[int] = None):
        filters = [PlayLog.playlist_id == playlist_id] if playlist_id else []
        rows_raw = cls._log_rows(window, filters)
        groups = cls._aggregate(rows_raw, lambda log, f, item: item.id if item is not None else None)
        entries = {item.id: (item, f) for _, f, item in rows_raw if item is not None}

        rows = []
        for item_id, group in groups.items():
            item, media_file = entries[item_id]
            rows.append({
                'playlistFileId': item.id,
                'playlistId': item.playlist_id,
                'playlistName': item.playlist.name if item.playlist else None,
                'playOrder': item.play_order,
                'fileId': media_file.id,
                'fileName': media_file.name,
                **cls._stats(group),
            })
        return cls._finish(rows, 'fileName', search, sort_by, sort_order, offset, limit)

    # ------------------------------------------------------------------
    # Players
    # ------------------------------------------------------------------

    @classmethod
    def folder_player_stats(cls, folder_id: int, window, search=None, sort_by='plays', sort_order='desc',
                            offset=0, limit=20, now=None):
        """Plays and run time of one folder's files broken down by player."""
        now = now or utcnow()
        groups: Dict[int, Dict[str, Any]] = {}
        for log, media_file, item in cls._log_rows(window, [MediaFile.folder_id == folder_id]):
            group = groups.setdefault(log.player_id, {'plays': 0, 'seconds': 0})
            group['plays'] += 1
            group['seconds'] += _play_seconds(media_file, item)

        players = {
            p.id: p for p in Player.query.filter(Player.id.in_(list(groups.keys()))).all()
        } if groups else {}

        threshold = PresenceService.threshold()
        rows = []
        for player_id, group in groups.items():
            player = players.get(player_id)
            if player is None:
                continue
            latest = player.latest_session()
            rows.append({
                'playerId': player.id,
                'playerName': player.name,
                'lastActive': isoformat(latest.last_active_at) if latest else None,
                'plays': group['plays'],
                'totalHours': round(group['seconds'] / 3600.0, 2),
                'status': PresenceService.session_status(latest, now=now, threshold=threshold),
            })

        if search:
            needle = search.lower()
            rows = [r for r in rows if needle in r['playerName'].lower()]

        if sort_by == 'name':
            rows = sort_rows(rows, lambda r: r['playerName'].lower(), sort_order)
        elif sort_by == 'totalHours':
            rows = sort_rows(rows, lambda r: r['totalHours'], sort_order)
        elif sort_by == 'lastActive':
            rows = sort_rows(rows, lambda r: r['lastActive'], sort_order)
        else:
            rows = sort_rows(rows, lambda r: r['plays'], sort_order)

        page, pagination = paginate(rows, offset=offset, limit=limit)
        return page, pagination, {'totalPlayers': len(rows)}

    @classmethod
    def _sessions_in_window(cls, window, player_id: Optional[int] = None):
        start, end = window
        query = PlayerSession.query.filter(
            PlayerSession.started_at < end,
            db.or_(PlayerSession.ended_at.is_(None), PlayerSession.ended_at >= start),
        )
        if player_id is not None:
            query = query.filter(PlayerSession.player_id == player_id)
        return query.order_by(PlayerSession.started_at.desc(), PlayerSession.id.desc()).all()

    @classmethod
    def _session_window_seconds(cls, session: PlayerSession, window, now) -> int:
        start, end = window
        session_end = session.ended_at or (now if session.is_active else session.last_active_at) or now
        return _overlap_seconds(session.started_at, session_end, start, end)

    @classmethod
    def player_logs(cls, window, now=None) -> List[Dict[str, Any]]:
        """Per player: status, newest session and up-time inside the window."""
        now = now or utcnow()
        threshold = PresenceService.threshold()
        sessions_by_player: Dict[int, List[PlayerSession]] = {}
        for session in cls._sessions_in_window(window):
            sessions_by_player.setdefault(session.player_id, []).append(session)

        start, end = window
        plays = dict(db.session.query(PlayLog.player_id, db.func.count(PlayLog.id)).filter(
            PlayLog.created_at >= start, PlayLog.created_at < end
        ).group_by(PlayLog.player_id).all())

        rows = []
        for player in Player.query.order_by(Player.name).all():
            latest = player.latest_session()
            sessions = sessions_by_player.get(player.id, [])
            rows.append({
                'playerId': player.id,
                'name': player.name,
                'location': player.location,
                'status': PresenceService.session_status(latest, now=now, threshold=threshold),
                'lastActive': isoformat(latest.last_active_at) if latest else None,
                'sessionStart': isoformat(latest.started_at) if latest else None,
                'sessionEnd': isoformat(latest.ended_at) if latest else None,
                'sessions': len(sessions),
                'plays': plays.get(player.id, 0),
                'totalRunTimeSec': sum(cls._session_window_seconds(s, window, now) for s in sessions),
            })
        return rows

    @classmethod
    def player_sessions(cls, player_id: int, window, now=None) -> List[Dict[str, Any]]:
        now = now or utcnow()
        threshold = PresenceService.threshold()
        rows = []
        for session in cls._sessions_in_window(window, player_id=player_id):
            row = cls.session_row(session, now=now, threshold=threshold)
            row['runTimeInRangeSec'] = cls._session_window_seconds(session, window, now)
            rows.append(row)
        return rows
