"""
Playlist Ordering Service for Signage CMS.

Keeps ``PlaylistItem.play_order`` contiguous (1..N, no gaps, no
duplicates) under append, move, delete and bulk delete, and guards
nested playlists against cycles.

Methods here only stage changes on ``db.session``; the calling route
owns the transaction and commits or rolls back.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from signage_cms.models import db, Player, Playlist, PlaylistItem, PlayLog, utcnow


logger = logging.getLogger(__name__)


class PlaylistOrderError(Exception):
    """Base exception for playlist ordering errors."""
    pass


class InvalidPlayOrderError(PlaylistOrderError):
    """Raised when a requested play order is below 1."""
    pass


class PlaylistCycleError(PlaylistOrderError):
    """Raised when nesting a playlist would make it contain itself."""
    pass


class PlaylistOrderService:
    """
    Service class for playlist item ordering.

    Every mutation renumbers the affected playlist from its current order,
    so a playlist that somehow has gaps is healed by the next change.
    """

    @classmethod
    def ordered_items(cls, playlist_id: int) -> List[PlaylistItem]:
        return PlaylistItem.query.filter_by(playlist_id=playlist_id).order_by(
            PlaylistItem.play_order, PlaylistItem.id
        ).all()

    @classmethod
    def next_play_order(cls, playlist_id: int) -> int:
        """Play order for an item appended to the end of the playlist."""
        max_order = db.session.query(db.func.max(PlaylistItem.play_order)).filter(
            PlaylistItem.playlist_id == playlist_id
        ).scalar()
        return (max_order or 0) + 1

    @classmethod
    def _renumber(cls, items: List[PlaylistItem]) -> None:
        for position, item in enumerate(items, start=1):
            if item.play_order != position:
                item.play_order = position

    @classmethod
    def compact(cls, playlist_id: int) -> List[PlaylistItem]:
        """
        Renumber a playlist's items to 1..N keeping their relative order.

        Returns:
            The playlist's items in play order
        """
        items = cls.ordered_items(playlist_id)
        cls._renumber(items)
        return items

    @classmethod
    def _touch_playlist(cls, playlist_id: int) -> None:
        playlist = db.session.get(Playlist, playlist_id)
        if playlist is not None:
            playlist.updated_at = utcnow()

    @classmethod
    def append_file(cls, playlist: Playlist, file_id: int, duration: Optional[int]) -> PlaylistItem:
        """Append a media file to the end of a playlist."""
        item = PlaylistItem(
            playlist_id=playlist.id,
            file_id=file_id,
            is_sub_playlist=False,
            duration=duration,
            play_order=cls.next_play_order(playlist.id),
        )
        db.session.add(item)
        playlist.updated_at = utcnow()
        db.session.flush()
        return item

    @classmethod
    def append_sub_playlist(cls, playlist: Playlist, sub_playlist_id: int,
                            duration: Optional[int] = None) -> PlaylistItem:
        """
        Append a nested playlist to the end of a playlist.

        Args:
            playlist: Parent playlist
            sub_playlist_id: Playlist to embed
            duration: Explicit duration; defaults to the sum of the
                      embedded playlist's item durations

        Raises:
            PlaylistCycleError: If the embedding would create a cycle
        """
        if cls.would_create_cycle(playlist.id, sub_playlist_id):
            raise PlaylistCycleError(
                f'Playlist {sub_playlist_id} cannot be nested inside playlist {playlist.id}'
            )

        if duration is None:
            duration = cls.total_duration(sub_playlist_id)

        item = PlaylistItem(
            playlist_id=playlist.id,
            sub_playlist_id=sub_playlist_id,
            is_sub_playlist=True,
            duration=duration,
            play_order=cls.next_play_order(playlist.id),
        )
        db.session.add(item)
        playlist.updated_at = utcnow()
        db.session.flush()
        return item

    @classmethod
    def append_items(cls, playlist: Playlist, entries: Iterable[dict]) -> List[PlaylistItem]:
        """
        Append several entries at contiguous play orders.

        Each entry carries either ``file_id`` or ``sub_playlist_id`` plus a
        ``duration``. Callers validate entries first; nested playlists are
        still checked for cycles here.

        Raises:
            PlaylistCycleError: If a nested entry would create a cycle
        """
        next_order = cls.next_play_order(playlist.id)
        created = []
        for entry in entries:
            sub_playlist_id = entry.get('sub_playlist_id')
            if sub_playlist_id is not None and cls.would_create_cycle(playlist.id, sub_playlist_id):
                raise PlaylistCycleError(
                    f'Playlist {sub_playlist_id} cannot be nested inside playlist {playlist.id}'
                )
            item = PlaylistItem(
                playlist_id=playlist.id,
                file_id=entry.get('file_id'),
                sub_playlist_id=sub_playlist_id,
                is_sub_playlist=sub_playlist_id is not None,
                duration=entry.get('duration'),
                play_order=next_order,
            )
            db.session.add(item)
            created.append(item)
            next_order += 1
        if created:
            playlist.updated_at = utcnow()
            db.session.flush()
        return created

    @classmethod
    def move_item(cls, item: PlaylistItem, new_order) -> int:
        """
        Move an item to a new 1-based position.

        Items between the old and new positions shift by one. Orders past
        the end clamp to the last position.

        Returns:
            The play order the item ended up at

        Raises:
            InvalidPlayOrderError: If new_order is not an integer >= 1
        """
        try:
            new_order = int(new_order)
        except (TypeError, ValueError):
            raise InvalidPlayOrderError('playOrder must be an integer')
        if new_order < 1:
            raise InvalidPlayOrderError('playOrder must be >= 1')

        items = cls.ordered_items(item.playlist_id)
        new_order = min(new_order, len(items))

        current_index = next(i for i, candidate in enumerate(items) if candidate.id == item.id)
        if current_index + 1 == new_order and items[current_index].play_order == new_order:
            return new_order

        items.pop(current_index)
        items.insert(new_order - 1, item)
        cls._renumber(items)
        cls._touch_playlist(item.playlist_id)
        db.session.flush()
        return new_order

    @classmethod
    def remove_items(cls, items: Iterable[PlaylistItem]) -> Dict[int, int]:
        """
        Delete items and compact every playlist they belonged to.

        Returns:
            Mapping of playlist id to number of items removed from it
        """
        items = list(items)
        removed: Dict[int, int] = {}
        if not items:
            return removed

        db.session.flush()
        item_ids = [item.id for item in items]
        PlayLog.query.filter(PlayLog.playlist_item_id.in_(item_ids)).update(
            {PlayLog.playlist_item_id: None}, synchronize_session=False
        )
        for item in items:
            removed[item.playlist_id] = removed.get(item.playlist_id, 0) + 1
            db.session.delete(item)
        db.session.flush()

        for playlist_id in removed:
            cls.compact(playlist_id)
            cls._touch_playlist(playlist_id)
        db.session.flush()
        return removed

    @classmethod
    def remove_file_references(cls, file_ids: Iterable[int]) -> Dict[int, int]:
        """Remove every playlist entry that plays one of the given files."""
        file_ids = list(file_ids)
        if not file_ids:
            return {}
        items = PlaylistItem.query.filter(PlaylistItem.file_id.in_(file_ids)).all()
        return cls.remove_items(items)

    @classmethod
    def remove_playlist_references(cls, playlist_id: int) -> Dict[int, int]:
        """Remove every entry that embeds the given playlist in another one."""
        items = PlaylistItem.query.filter(
            PlaylistItem.sub_playlist_id == playlist_id,
            PlaylistItem.playlist_id != playlist_id,
        ).all()
        return cls.remove_items(items)

    @classmethod
    def total_duration(cls, playlist_id: int) -> int:
        """Sum of the item durations of a playlist."""
        total = db.session.query(db.func.sum(PlaylistItem.duration)).filter(
            PlaylistItem.playlist_id == playlist_id
        ).scalar()
        return int(total or 0)

    @classmethod
    def descendants(cls, playlist_id: int) -> Set[int]:
        """Ids of every playlist nested (directly or transitively) in a playlist."""
        seen: Set[int] = set()
        frontier = {playlist_id}
        while frontier:
            rows = db.session.query(PlaylistItem.sub_playlist_id).filter(
                PlaylistItem.playlist_id.in_(frontier),
                PlaylistItem.sub_playlist_id.isnot(None),
            ).all()
            next_ids = {row[0] for row in rows} - seen
            seen |= next_ids
            frontier = next_ids
        return seen

    @classmethod
    def would_create_cycle(cls, parent_id: int, child_id: int) -> bool:
        """True if nesting child inside parent makes a playlist contain itself."""
        if parent_id == child_id:
            return True
        return parent_id in cls.descendants(child_id)

    @classmethod
    def delete_playlist(cls, playlist: Playlist) -> None:
        """
        Delete a playlist, every entry that embeds it elsewhere and its own
        entries. Players playing it are left without a playlist.
        """
        cls.remove_playlist_references(playlist.id)
        cls.remove_items(cls.ordered_items(playlist.id))

        for player in Player.query.filter(Player.playlist_id == playlist.id).all():
            player.playlist_id = None
        PlayLog.query.filter(PlayLog.playlist_id == playlist.id).update(
            {PlayLog.playlist_id: None}, synchronize_session=False
        )
        PlayLog.query.filter(PlayLog.sub_playlist_id == playlist.id).update(
            {PlayLog.sub_playlist_id: None}, synchronize_session=False
        )

        db.session.expire(playlist, ['items', 'players'])
        db.session.delete(playlist)
        db.session.flush()
        logger.info(f"Deleted playlist {playlist.id}")
