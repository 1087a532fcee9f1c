"""Event API routes: delegates to event_service for authorization and fan-out hand-off."""
import logging
from fastapi import APIRouter, Depends, Query, status

from eventpulse.container import Services, get_services
from eventpulse.schemas.event import EventCreate, EventDraft, EventRecord

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=EventRecord, status_code=status.HTTP_201_CREATED)
async def create_event(payload: EventCreate, services: Services = Depends(get_services)):
    """Create an event and queue notifications to every user.

    Returns as soon as the event is stored; delivery happens in the background.
    """
    draft = EventDraft(
        name=payload.name,
        description=payload.description,
        date=payload.date,
        venue=payload.venue,
    )
    return await services.events.create_event_and_notify(draft, payload.admin_id)


@router.get("/", response_model=list[EventRecord])
async def list_events(services: Services = Depends(get_services)):
    """List events, newest first."""
    return await services.events.list_events()


@router.get("/search", response_model=list[EventRecord])
async def search_events(q: str = Query(..., min_length=1), services: Services = Depends(get_services)):
    """Case-insensitive search on event names."""
    return await services.events.search_events(q)


@router.get("/{event_id}", response_model=EventRecord)
async def get_event(event_id: str, services: Services = Depends(get_services)):
    """Fetch a single event by ID."""
    return await services.events.get_event(event_id)
