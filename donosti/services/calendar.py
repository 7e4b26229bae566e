# services/calendar.py
"""Calendar view over events and trip posts.

Days are plain ``YYYY-MM-DD`` keys exactly as the author entered them; no
timezone conversion happens here.
"""
from __future__ import annotations

import calendar
from collections import defaultdict
from datetime import date
from typing import Dict, Iterable, List, Optional

from donosti.schemas import CalendarEntry, Event, Post


def entries_from_event(event: Event) -> List[CalendarEntry]:
    return [
        CalendarEntry(
            id=event.id,
            source_id=event.id,
            kind="event",
            title=event.title,
            date=event.date,
            info=event.info,
            author_id=event.author_id,
            author_name=event.author_name,
            verified=event.verified,
        )
    ]


def entries_from_trip(post: Post) -> List[CalendarEntry]:
    """One entry per selected trip date (duplicates collapsed)."""
    out = []
    for day in sorted(set(getattr(post, "trip_dates", None) or [])):
        out.append(
            CalendarEntry(
                id=f"{post.id}:{day.isoformat()}",
                source_id=post.id,
                kind="trip",
                title=post.title,
                date=day,
                info=post.content,
                author_id=post.author_id,
                author_name=post.author_name,
                verified=post.verified,
            )
        )
    return out


class CalendarProjection:
    def __init__(self, entries: Iterable[CalendarEntry]):
        self.entries = sorted(entries, key=lambda e: (e.date, e.title, e.id))
        self._by_day: Dict[str, List[CalendarEntry]] = defaultdict(list)
        for e in self.entries:
            self._by_day[e.date.isoformat()].append(e)

    @classmethod
    def build(cls, events: Iterable[Event] = (), posts: Iterable[Post] = ()) -> "CalendarProjection":
        entries: List[CalendarEntry] = []
        for event in events:
            entries.extend(entries_from_event(event))
        for post in posts:
            if post.category == "trips":
                entries.extend(entries_from_trip(post))
        return cls(entries)

    def on(self, day: date | str) -> List[CalendarEntry]:
        key = day if isinstance(day, str) else day.isoformat()
        return list(self._by_day.get(key, []))

    def days_with_events(self, year: int, month: int) -> List[str]:
        """Sorted day keys of the given month that have at least one entry."""
        last = calendar.monthrange(year, month)[1]
        first_key, last_key = date(year, month, 1).isoformat(), date(year, month, last).isoformat()
        return sorted(k for k in self._by_day if first_key <= k <= last_key)

    def upcoming(self, today: Optional[date] = None, limit: int = 5) -> List[CalendarEntry]:
        today = today or date.today()
        return [e for e in self.entries if e.date >= today][:limit]
