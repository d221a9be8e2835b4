"""
Database Schemas for the events app

Each Pydantic model represents a collection in MongoDB. The collection name is
the lowercase of the class name.

- Event -> "event"
- Booking -> "booking"

Slug, date and time are derived or normalized in validation.py before an
event is written; the models here only check shape.
"""
import re
from typing import List, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, field_validator

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EVENT_COLLECTION = "event"
BOOKING_COLLECTION = "booking"


class Event(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: str = Field(..., min_length=1, description="Event title, source of the slug")
    description: str = Field(..., min_length=1, description="Full description")
    overview: str = Field(..., min_length=1, description="Short summary")
    image: str = Field(..., min_length=1, description="Cover image URL or path")
    venue: str = Field(..., min_length=1, description="Venue name")
    location: str = Field(..., min_length=1, description="City or address")
    date: str = Field(..., min_length=1, description="Event date, stored as YYYY-MM-DD")
    time: str = Field(..., min_length=1, description="Start time, stored as 24h HH:MM")
    mode: str = Field(..., min_length=1, description="online, offline or hybrid")
    audience: str = Field(..., min_length=1, description="Intended audience")
    agenda: List[str] = Field(..., min_length=1, description="Ordered agenda items")
    organizer: str = Field(..., min_length=1, description="Organizer name")
    tags: List[str] = Field(..., min_length=1, description="Ordered tags")


class EventUpdate(BaseModel):
    """Partial update; only the fields that are set are applied."""

    model_config = ConfigDict(str_strip_whitespace=True, extra="forbid")

    title: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    overview: Optional[str] = Field(None, min_length=1)
    image: Optional[str] = Field(None, min_length=1)
    venue: Optional[str] = Field(None, min_length=1)
    location: Optional[str] = Field(None, min_length=1)
    date: Optional[str] = Field(None, min_length=1)
    time: Optional[str] = Field(None, min_length=1)
    mode: Optional[str] = Field(None, min_length=1)
    audience: Optional[str] = Field(None, min_length=1)
    agenda: Optional[List[str]] = Field(None, min_length=1)
    organizer: Optional[str] = Field(None, min_length=1)
    tags: Optional[List[str]] = Field(None, min_length=1)


class Booking(BaseModel):
    model_config = ConfigDict(extra="forbid")

    event_id: str = Field(..., description="Referenced event _id as string")
    email: str = Field(..., description="Attendee email, stored lowercase")

    @field_validator("event_id")
    @classmethod
    def check_object_id(cls, v: str) -> str:
        if not ObjectId.is_valid(v):
            raise ValueError("Invalid objectid")
        return v

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        v = v.strip().lower()
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email address.")
        return v
