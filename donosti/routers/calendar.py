from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query

from donosti.errors import ValidationFailed
from donosti.schemas import EventCreate
from donosti.services.calendar import CalendarProjection
from donosti.services.content import ContentStore
from donosti.services.identity import Actor
from donosti.utils import get_content_store, get_current_actor

router = APIRouter(tags=["calendar"])


# ---------------------------
# Events
# ---------------------------
@router.post("/events")
async def create_event(
    payload: EventCreate,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    event = await content.create_event(actor, payload)
    return {"success": True, "event": event.dump()}


@router.get("/events")
async def list_events(content: ContentStore = Depends(get_content_store)):
    events = await content.list_events()
    return {"events": [e.dump() for e in events]}


@router.delete("/events/{event_id}")
async def delete_event(
    event_id: str,
    actor: Actor = Depends(get_current_actor),
    content: ContentStore = Depends(get_content_store),
):
    await content.delete_event(event_id, actor)
    return {"success": True}


# ---------------------------
# Calendar view
# ---------------------------
def _parse_month(month: Optional[str], today: date) -> tuple[int, int]:
    if not month:
        return today.year, today.month
    try:
        year, mon = (int(part) for part in month.split("-", 1))
    except ValueError:
        raise ValidationFailed("month must be YYYY-MM")
    if not 1 <= mon <= 12:
        raise ValidationFailed("month must be YYYY-MM")
    return year, mon


@router.get("/calendar")
async def calendar_view(
    month: Optional[str] = None,
    day: Optional[date] = None,
    today: Optional[date] = None,
    limit: int = Query(5, ge=1, le=100),
    content: ContentStore = Depends(get_content_store),
):
    today = today or date.today()
    year, mon = _parse_month(month, today)
    projection = CalendarProjection.build(
        events=await content.list_events(),
        posts=await content.list_posts("trips"),
    )
    return {
        "days": projection.days_with_events(year, mon),
        "entries": [e.dump() for e in projection.on(day)] if day else [],
        "upcoming": [e.dump() for e in projection.upcoming(today, limit)],
    }
