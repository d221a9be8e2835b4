"""Event and booking operations.

Every write goes through the matching step in validation.py first, so a
record that fails normalization or the reference check is never written.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, update_document
from errors import DuplicateSlugError, RecordNotFoundError
from schemas import BOOKING_COLLECTION, EVENT_COLLECTION, Booking, Event, EventUpdate
from validation import prepare_booking, prepare_event

logger = logging.getLogger(__name__)

EVENT_FIELDS = tuple(Event.model_fields) + ("slug",)


def _object_id(value: str, kind: str) -> ObjectId:
    if not ObjectId.is_valid(value):
        raise RecordNotFoundError(f"{kind} not found")
    return ObjectId(value)


# Events

async def create_event(db, event: Event) -> Dict[str, Any]:
    data = prepare_event(event.model_dump())
    try:
        inserted_id = await create_document(db, EVENT_COLLECTION, data)
    except DuplicateKeyError:
        raise DuplicateSlugError(data["slug"]) from None
    logger.info("Created event %s with slug %s", inserted_id, data["slug"])
    return await get_event(db, inserted_id)


async def get_event(db, event_id: str) -> Dict[str, Any]:
    doc = await db[EVENT_COLLECTION].find_one({"_id": _object_id(event_id, "Event")})
    if not doc:
        raise RecordNotFoundError("Event not found")
    return doc


async def get_event_by_slug(db, slug: str) -> Dict[str, Any]:
    doc = await db[EVENT_COLLECTION].find_one({"slug": slug})
    if not doc:
        raise RecordNotFoundError("Event not found")
    return doc


async def update_event(db, event_id: str, changes: EventUpdate) -> Dict[str, Any]:
    """Apply a partial update, re-deriving slug/date/time only if they changed."""
    original = await get_event(db, event_id)
    current = {k: original[k] for k in EVENT_FIELDS if k in original}
    merged = {**current, **changes.model_dump(exclude_unset=True, exclude_none=True)}

    prepared = prepare_event(merged, original=original)
    diff = {k: v for k, v in prepared.items() if original.get(k) != v}
    if not diff:
        return original

    try:
        await update_document(db, EVENT_COLLECTION, original["_id"], diff)
    except DuplicateKeyError:
        raise DuplicateSlugError(prepared["slug"]) from None
    logger.info("Updated event %s fields %s", event_id, sorted(diff))
    return await get_event(db, event_id)


async def list_events(db, tag: Optional[str] = None, limit: int = 50) -> List[Dict[str, Any]]:
    filter_q = {}
    if tag:
        filter_q["tags"] = tag
    return await get_documents(
        db, EVENT_COLLECTION, filter_q, limit=limit, sort=[("created_at", DESCENDING)]
    )


# Bookings

async def create_booking(db, booking: Booking) -> Dict[str, Any]:
    data = booking.model_dump()
    data["event_id"] = ObjectId(data["event_id"])
    data = await prepare_booking(db, data)
    inserted_id = await create_document(db, BOOKING_COLLECTION, data)
    logger.info("Created booking %s for event %s", inserted_id, data["event_id"])
    return await db[BOOKING_COLLECTION].find_one({"_id": ObjectId(inserted_id)})


async def list_bookings(
    db,
    event_id: Optional[str] = None,
    email: Optional[str] = None,
    limit: int = 100,
) -> List[Dict[str, Any]]:
    filter_q: Dict[str, Any] = {}
    if event_id:
        filter_q["event_id"] = _object_id(event_id, "Event")
    if email:
        filter_q["email"] = email.strip().lower()
    return await get_documents(
        db, BOOKING_COLLECTION, filter_q, limit=limit, sort=[("created_at", DESCENDING)]
    )


async def count_bookings(db, event_id: str) -> int:
    return await db[BOOKING_COLLECTION].count_documents(
        {"event_id": _object_id(event_id, "Event")}
    )
