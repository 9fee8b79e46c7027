# vnshelf/utils/date_utils.py

"""Display helpers for play time and last-played timestamps.

    format_play_time(75)            -> "1h 15m"
    format_play_time(45)            -> "45m"
    format_last_played(None)        -> "Never"
    format_last_played(3 days ago)  -> "3 days ago"
    format_last_played(2 years ago) -> "07 Dec 2024"
"""

from __future__ import annotations

from datetime import datetime, timezone

from vnshelf.core.models import parse_timestamp

__all__ = ["format_last_played", "format_play_time"]


def format_play_time(minutes: int) -> str:
    """Formats a play time given in minutes.

    Args:
        minutes: Cumulative play time; negative values count as 0.

    Returns:
        "Xh Ym" from one hour on, "Ym" below.
    """
    minutes = max(0, int(minutes))
    if minutes >= 60:
        return f"{minutes // 60}h {minutes % 60}m"
    return f"{minutes}m"


def format_last_played(value: datetime | str | None, now: datetime | None = None) -> str:
    """Formats a last-played timestamp relative to ``now``.

    Args:
        value: A datetime, an ISO string or None.
        now: Reference time (default: current UTC time).

    Returns:
        "Never", "Today", "Yesterday", "N days ago", "N weeks ago",
        "N months ago", or the date itself after a year.
    """
    moment = parse_timestamp(value)
    if moment is None:
        return "Never"

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    if now is None:
        now = datetime.now(timezone.utc)
    elif now.tzinfo is None:
        now = now.replace(tzinfo=timezone.utc)

    days = max(0, (now - moment).days)
    if days == 0:
        return "Today"
    if days == 1:
        return "Yesterday"
    if days < 7:
        return f"{days} days ago"
    if days < 30:
        return f"{days // 7} weeks ago"
    if days < 365:
        return f"{days // 30} months ago"
    return moment.strftime("%d %b %Y")
