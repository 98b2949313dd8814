"""
Presence Service for Signage CMS.

Derives player online/offline status from session heartbeats and closes
sessions whose heartbeat has gone stale.

A player is online only while its newest session is active and its last
heartbeat is no older than the configured threshold
(ONLINE_THRESHOLD_SECONDS, five minutes by default).
"""

import logging
from datetime import timedelta
from typing import List, Optional

from flask import current_app

from signage_cms.models import db, PlayerSession, utcnow


logger = logging.getLogger(__name__)

ONLINE = 'Online'
OFFLINE = 'Offline'


class PresenceService:
    """
    Service class for heartbeat-based presence.

    All methods accept an explicit ``now`` so callers evaluating many rows
    use one consistent clock reading.
    """

    DEFAULT_THRESHOLD_SECONDS = 300

    @classmethod
    def threshold(cls) -> timedelta:
        seconds = current_app.config.get('ONLINE_THRESHOLD_SECONDS', cls.DEFAULT_THRESHOLD_SECONDS)
        return timedelta(seconds=int(seconds))

    @classmethod
    def is_online(cls, last_active_at, is_active, now=None, threshold: Optional[timedelta] = None) -> bool:
        """
        Apply the online rule to one session's fields.

        Args:
            last_active_at: Last heartbeat (aware datetime) or None
            is_active: Whether the session is still open
            now: Reference time (defaults to current UTC time)
            threshold: Maximum heartbeat age (defaults to configured value)

        Returns:
            True when the session is open and the heartbeat is fresh
        """
        if not is_active or last_active_at is None:
            return False
        now = now or utcnow()
        threshold = threshold if threshold is not None else cls.threshold()
        return now - last_active_at <= threshold

    @classmethod
    def session_status(cls, session: Optional[PlayerSession], now=None, threshold=None) -> str:
        """Return 'Online' or 'Offline' for a player's newest session."""
        if session is None:
            return OFFLINE
        if cls.is_online(session.last_active_at, session.is_active, now=now, threshold=threshold):
            return ONLINE
        return OFFLINE

    @classmethod
    def player_status(cls, player, now=None, threshold=None) -> str:
        return cls.session_status(player.latest_session(), now=now, threshold=threshold)

    @classmethod
    def stale_sessions_query(cls, now=None, threshold=None):
        """Active sessions whose heartbeat is missing or older than the threshold."""
        now = now or utcnow()
        threshold = threshold if threshold is not None else cls.threshold()
        cutoff = now - threshold
        return PlayerSession.query.filter(
            PlayerSession.is_active.is_(True),
            db.or_(
                PlayerSession.last_active_at.is_(None),
                PlayerSession.last_active_at < cutoff,
            ),
        )

    @classmethod
    def reconcile_stale_sessions(cls, now=None, threshold=None, commit: bool = True) -> List[int]:
        """
        Close every active session that no longer counts as online.

        A closed session ends at its last heartbeat, or at ``now`` when it
        never sent one.

        Args:
            now: Reference time
            threshold: Maximum heartbeat age
            commit: Commit the change (callers inside a larger
                    transaction pass False)

        Returns:
            List of session ids that were closed
        """
        now = now or utcnow()
        stale = cls.stale_sessions_query(now=now, threshold=threshold).all()
        if not stale:
            return []

        for session in stale:
            session.end(session.last_active_at or now)

        if commit:
            try:
                db.session.commit()
            except Exception:
                db.session.rollback()
                raise

        closed_ids = [s.id for s in stale]
        logger.info(f"Closed {len(closed_ids)} stale player session(s)")
        return closed_ids
