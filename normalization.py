"""Field normalizers applied to events before they are stored.

All functions here are pure: they take a raw value and return its stored
form, or raise a :class:`errors.RecordValidationError` subclass.
"""
import re
from datetime import date, datetime, timezone
from typing import Union

from pydantic import TypeAdapter, ValidationError

from errors import InvalidDateError, InvalidTimeFormatError, InvalidTimeValueError

_NON_ALNUM = re.compile(r"[^a-z0-9]+")
_EDGE_HYPHENS = re.compile(r"^-+|-+$")
_TIME_PATTERN = re.compile(r"^([0-9]{1,2}):([0-9]{2})$")
# Numeric strings are never read as unix timestamps
_DIGITS_ONLY = re.compile(r"^[+-]?[0-9]+(\.[0-9]*)?$")

_datetime_adapter = TypeAdapter(datetime)
_date_adapter = TypeAdapter(date)


def slugify(title: str) -> str:
    """Lowercase the title and join its alphanumeric runs with single hyphens.

    Returns an empty string when the title has nothing to build a slug from.
    """
    slug = _NON_ALNUM.sub("-", title.lower().strip())
    return _EDGE_HYPHENS.sub("", slug)


def _parse_date(value: Union[str, date, datetime]) -> date:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, date):
        return value
    else:
        text = value.strip()
        if _DIGITS_ONLY.match(text):
            # A bare year means January 1st; other numbers are not dates
            if len(text) == 4 and text.isdigit() and text != "0000":
                return date(int(text), 1, 1)
            raise InvalidDateError("Invalid event date")
        try:
            parsed = _datetime_adapter.validate_python(text)
        except ValidationError:
            try:
                return _date_adapter.validate_python(text)
            except ValidationError:
                raise InvalidDateError("Invalid event date") from None

    # Aware values are read in UTC so the same instant always gives the same day
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.date()


def normalize_date(value: Union[str, date, datetime]) -> str:
    """Normalize a date-like value to ``YYYY-MM-DD``.

    Raises:
        InvalidDateError: If the value cannot be parsed as a date.
    """
    if isinstance(value, str) and not value.strip():
        raise InvalidDateError("Invalid event date")
    return _parse_date(value).isoformat()


def normalize_time(value: str) -> str:
    """Normalize ``H:MM`` / ``HH:MM`` to zero-padded 24-hour ``HH:MM``.

    Raises:
        InvalidTimeFormatError: If the value does not match the pattern.
        InvalidTimeValueError: If hour > 23 or minute > 59.
    """
    match = _TIME_PATTERN.match(value.strip())
    if not match:
        raise InvalidTimeFormatError("Invalid event time format. Expected HH:MM")

    hours = int(match.group(1))
    minutes = int(match.group(2))
    if hours > 23 or minutes > 59:
        raise InvalidTimeValueError("Invalid event time value")

    return f"{hours:02d}:{minutes:02d}"
