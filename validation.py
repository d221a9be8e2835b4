"""Pre-persistence steps for events and bookings.

Services call these explicitly right before writing. Each takes the record
about to be written and, for updates, the last persisted state, and either
returns the record in its stored form or raises without touching the
database.
"""
import logging
from typing import Any, Dict, Optional

from errors import ReferentialIntegrityError, SlugGenerationError
from normalization import normalize_date, normalize_time, slugify
from schemas import EVENT_COLLECTION

logger = logging.getLogger(__name__)


def _changed(field: str, data: Dict[str, Any], original: Optional[Dict[str, Any]]) -> bool:
    return original is None or data.get(field) != original.get(field)


def prepare_event(data: Dict[str, Any], original: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Derive the slug and normalize date/time for an event.

    The slug is rebuilt when the event is new or its title changed; date
    and time are normalized when new or changed. Returns a new dict.

    Raises:
        SlugGenerationError: If the title yields an empty slug.
        InvalidDateError: If the date cannot be parsed.
        InvalidTimeFormatError: If the time is not H:MM / HH:MM.
        InvalidTimeValueError: If the time is out of range.
    """
    prepared = dict(data)

    if _changed("title", prepared, original):
        slug = slugify(prepared["title"])
        if not slug:
            raise SlugGenerationError("Unable to generate slug from title")
        prepared["slug"] = slug

    if _changed("date", prepared, original):
        prepared["date"] = normalize_date(prepared["date"])

    if _changed("time", prepared, original):
        prepared["time"] = normalize_time(prepared["time"])

    return prepared


async def prepare_booking(db, data: Dict[str, Any], original: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    """Check that the booked event exists when the reference is new or changed.

    An unchanged ``event_id`` is not looked up again.

    Raises:
        ReferentialIntegrityError: If no event has the referenced ``_id``.
    """
    prepared = dict(data)
    prepared["email"] = prepared["email"].strip().lower()

    if not _changed("event_id", prepared, original):
        return prepared

    exists = await db[EVENT_COLLECTION].find_one(
        {"_id": prepared["event_id"]}, projection={"_id": 1}
    )
    if exists is None:
        logger.warning("Booking rejected: event %s does not exist", prepared["event_id"])
        raise ReferentialIntegrityError(
            "Cannot create booking: referenced event does not exist."
        )
    return prepared
