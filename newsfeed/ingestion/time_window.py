"""Recency filtering by time-window keyword."""

from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from enum import Enum
from typing import Iterable, List, Optional

import structlog

from .interfaces import RawFeedEntry

logger = structlog.get_logger()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class TimeWindow(Enum):
    """Recognized window keywords."""
    SHORT = "2h"
    DEFAULT = "24h"
    LONG = "7d"

    @property
    def duration(self) -> timedelta:
        return _DURATIONS[self]

    @classmethod
    def from_keyword(cls, keyword: Optional[str]) -> "TimeWindow":
        """Map a keyword to a window; unknown or missing keywords get 24h."""
        try:
            return cls(keyword)
        except ValueError:
            if keyword is not None:
                logger.info("time_filter_unrecognized", time_filter=keyword, fallback=cls.DEFAULT.value)
            return cls.DEFAULT


_DURATIONS = {
    TimeWindow.SHORT: timedelta(hours=2),
    TimeWindow.DEFAULT: timedelta(hours=24),
    TimeWindow.LONG: timedelta(days=7),
}


def parse_published(value: str) -> Optional[datetime]:
    """Parse a feed date (RFC 822 or ISO 8601) into an aware UTC datetime.

    Returns None if the string is not a recognizable date.
    """
    if not value:
        return None
    value = value.strip()

    parsed = None
    try:
        parsed = parsedate_to_datetime(value)
    except (TypeError, ValueError, IndexError, OverflowError):
        pass

    if parsed is None:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except (OverflowError, ValueError):
        # Offset pushes the instant outside the datetime range
        return None


class TimeWindowFilter:
    """Keeps entries published at or after now minus the window duration."""

    def __init__(self, window: TimeWindow = TimeWindow.DEFAULT, now: datetime = None):
        self.window = window
        now = now or datetime.now(timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        self.now = now
        self.cutoff = self.now - window.duration

    @classmethod
    def for_keyword(cls, keyword: Optional[str], now: datetime = None) -> "TimeWindowFilter":
        return cls(TimeWindow.from_keyword(keyword), now=now)

    def published_instant(self, entry: RawFeedEntry) -> datetime:
        """Parsed publish time; unparseable dates count as the epoch."""
        parsed = parse_published(entry.pub_date)
        if parsed is None:
            logger.debug("pub_date_unparseable", pub_date=entry.pub_date, link=entry.link)
            return EPOCH
        return parsed

    def keep(self, entry: RawFeedEntry) -> bool:
        # Boundary is inclusive
        return self.published_instant(entry) >= self.cutoff

    def apply(self, entries: Iterable[RawFeedEntry]) -> List[RawFeedEntry]:
        return [e for e in entries if self.keep(e)]
