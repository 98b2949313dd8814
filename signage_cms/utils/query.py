"""
Request parsing helpers shared by the dashboard routes.

Query strings arrive as loose text; these helpers turn them into typed
values and quietly treat malformed input as absent.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple


DAY_PATTERN = re.compile(r'^\d{4}-\d{2}-\d{2}$')
BYTES_PER_MB = 1024 * 1024


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an ISO date or datetime string into an aware UTC datetime.

    Naive values are taken as UTC. Returns None for empty or invalid input.
    """
    if not value or not isinstance(value, str):
        return None
    try:
        parsed = datetime.fromisoformat(value.strip().replace('Z', '+00:00'))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_day(value) -> Optional[datetime]:
    """Parse a strict ``YYYY-MM-DD`` value as midnight UTC."""
    if not isinstance(value, str) or not DAY_PATTERN.match(value.strip()):
        return None
    try:
        return datetime.strptime(value.strip(), '%Y-%m-%d').replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def day_range(value) -> Optional[Tuple[datetime, datetime]]:
    """Whole UTC day named by ``YYYY-MM-DD`` as (start, exclusive end)."""
    start = parse_day(value)
    if start is None:
        return None
    return start, start + timedelta(days=1)


def today_range(now=None) -> Tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    return start, start + timedelta(days=1)


def month_range(now=None) -> Tuple[datetime, datetime]:
    now = now or datetime.now(timezone.utc)
    start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def date_range(start_value, end_value, default: str = 'today', now=None) -> Tuple[datetime, datetime]:
    """
    Inclusive ``startDate``/``endDate`` days as (start, exclusive end).

    Both values must be valid ``YYYY-MM-DD`` strings; otherwise the
    default window ('today' or 'month') is returned. A reversed range is
    swapped.
    """
    start = parse_day(start_value)
    end = parse_day(end_value)
    if start is not None and end is not None:
        if end < start:
            start, end = end, start
        return start, end + timedelta(days=1)
    if default == 'month':
        return month_range(now)
    return today_range(now)


def parse_int(value, default: Optional[int] = None, minimum: Optional[int] = None,
              maximum: Optional[int] = None) -> Optional[int]:
    """Parse an integer, clamping to [minimum, maximum]; default on failure."""
    if value is None or value == '':
        return default
    try:
        number = int(value)
    except (TypeError, ValueError):
        return default
    if minimum is not None and number < minimum:
        number = minimum
    if maximum is not None and number > maximum:
        number = maximum
    return number


def positive_int(value) -> Optional[int]:
    """Return value as a positive integer, or None."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    if isinstance(value, float) and value != number:
        return None
    return number if number > 0 else None


def parse_id_list(values) -> List[int]:
    """Deduplicated positive integer ids from a JSON array (order kept)."""
    if not isinstance(values, list):
        return []
    seen = set()
    ids = []
    for value in values:
        number = positive_int(value)
        if number is not None and number not in seen:
            seen.add(number)
            ids.append(number)
    return ids


def parse_bool(value) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ('1', 'true', 'yes', 'on')
    return bool(value)


def parse_sort_order(value, default: str = 'desc') -> str:
    if isinstance(value, str) and value.lower() in ('asc', 'desc'):
        return value.lower()
    return default


def clean_search(value) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def sort_rows(rows: List[Dict[str, Any]], key: Callable[[Dict[str, Any]], Any], order: str = 'asc') -> List[Dict[str, Any]]:
    """
    Stable sort of row dicts; rows whose key is None always sort last.
    """
    present = [r for r in rows if key(r) is not None]
    missing = [r for r in rows if key(r) is None]
    present.sort(key=key, reverse=(order == 'desc'))
    return present + missing


def paginate(rows: List[Any], offset=0, limit=20, max_limit: int = 100) -> Tuple[List[Any], Dict[str, Any]]:
    """Slice rows and build the ``pagination`` block."""
    offset = parse_int(offset, default=0, minimum=0)
    limit = parse_int(limit, default=20, minimum=1, maximum=max_limit)
    total = len(rows)
    page = rows[offset:offset + limit]
    return page, {
        'total': total,
        'offset': offset,
        'limit': limit,
        'hasMore': offset + len(page) < total,
    }


def in_size_bucket(size_bytes, bucket: Optional[str]) -> bool:
    """Match ``0-10``, ``10-100`` and ``100+`` megabyte buckets."""
    if not bucket:
        return True
    megabytes = (size_bytes or 0) / BYTES_PER_MB
    if bucket == '0-10':
        return 0 <= megabytes < 10
    if bucket == '10-100':
        return 10 <= megabytes < 100
    if bucket == '100+':
        return megabytes >= 100
    return True


def in_duration_bucket(seconds, bucket: Optional[str]) -> bool:
    """Match ``0-3``, ``5-10`` and ``10+`` minute buckets."""
    if not bucket:
        return True
    seconds = seconds or 0
    if bucket == '0-3':
        return 0 <= seconds <= 180
    if bucket == '5-10':
        return 300 <= seconds <= 600
    if bucket == '10+':
        return seconds >= 600
    return True


def in_window(value: Optional[datetime], start: Optional[datetime], end: Optional[datetime]) -> bool:
    """True when value lies within [start, end]; open bounds are ignored."""
    if start is None and end is None:
        return True
    if value is None:
        return False
    if start is not None and value < start:
        return False
    if end is not None and value > end:
        return False
    return True


def max_datetime(values: Iterable[Optional[datetime]]) -> Optional[datetime]:
    present = [v for v in values if v is not None]
    return max(present) if present else None


def format_day(value: Optional[datetime]) -> Optional[str]:
    """Format as dd/mm/yyyy."""
    if value is None:
        return None
    return value.strftime('%d/%m/%Y')
