from datetime import date, datetime, timezone

from donosti.schemas import Event, post_adapter
from donosti.services.calendar import CalendarProjection

NOW = datetime(2025, 3, 1, tzinfo=timezone.utc)


def _trip(post_id, dates, title="Bilbao day trip"):
    return post_adapter.validate_python(
        {
            "id": post_id,
            "category": "trips",
            "title": title,
            "content": "Guggenheim + pintxos",
            "authorId": "alice",
            "timestamp": NOW,
            "tripDates": dates,
        }
    )


def _event(event_id, day, title="Tamborrada"):
    return Event(id=event_id, title=title, date=day, info="Parte Vieja", author_id="bob", timestamp=NOW)


def test_trip_projects_one_entry_per_date():
    cal = CalendarProjection.build(posts=[_trip("post-1", ["2025-03-10", "2025-03-12"])])

    assert len(cal.entries) == 2
    assert [e.id for e in cal.entries] == ["post-1:2025-03-10", "post-1:2025-03-12"]
    assert {(e.title, e.info, e.kind, e.source_id) for e in cal.entries} == {
        ("Bilbao day trip", "Guggenheim + pintxos", "trip", "post-1")
    }


def test_datetime_strings_and_junk_dates():
    trip = _trip("post-2", ["2025-03-10T18:30:00Z", "someday", "2025-03-10"])
    cal = CalendarProjection.build(posts=[trip])
    assert [e.date for e in cal.entries] == [date(2025, 3, 10)]


def test_non_trip_posts_are_ignored():
    food = post_adapter.validate_python(
        {"id": "post-3", "category": "food", "title": "x", "authorId": "a", "timestamp": NOW}
    )
    assert CalendarProjection.build(posts=[food]).entries == []


def test_on_and_days_with_events():
    cal = CalendarProjection.build(
        events=[_event("event-1", date(2025, 1, 20)), _event("event-2", date(2025, 3, 12), "Concert")],
        posts=[_trip("post-1", ["2025-03-10", "2025-03-12"])],
    )
    assert [e.title for e in cal.on(date(2025, 3, 12))] == ["Bilbao day trip", "Concert"]
    assert cal.on("2025-03-11") == []
    assert cal.days_with_events(2025, 3) == ["2025-03-10", "2025-03-12"]
    assert cal.days_with_events(2025, 1) == ["2025-01-20"]
    assert cal.days_with_events(2025, 2) == []


def test_upcoming_starts_today_inclusive():
    cal = CalendarProjection.build(
        events=[
            _event("event-1", date(2025, 3, 1), "past"),
            _event("event-2", date(2025, 3, 5), "today"),
            _event("event-3", date(2025, 4, 1), "later"),
            _event("event-4", date(2025, 3, 20), "soon"),
        ]
    )
    assert [e.title for e in cal.upcoming(date(2025, 3, 5), limit=5)] == ["today", "soon", "later"]
    assert [e.title for e in cal.upcoming(date(2025, 3, 5), limit=1)] == ["today"]
