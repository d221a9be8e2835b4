"""Shared fixtures for the events API test suite.

``DATABASE_URL`` must be set before ``database`` is imported, so it is set
here at collection time. Tests never talk to a real server: ``fake_db``
is an in-memory stand-in for the async database handle.
"""

import copy
import os
from types import SimpleNamespace

os.environ.setdefault("DATABASE_URL", "mongodb://localhost:27017/events_test")

import pytest  # noqa: E402
from bson import ObjectId  # noqa: E402
from pymongo.errors import DuplicateKeyError  # noqa: E402

from schemas import Booking, Event  # noqa: E402


# ---------------------------------------------------------------------------
# In-memory database
# ---------------------------------------------------------------------------

def _matches(doc: dict, filter_dict: dict) -> bool:
    for key, expected in filter_dict.items():
        value = doc.get(key)
        if isinstance(value, list) and not isinstance(expected, list):
            if expected not in value:
                return False
        elif value != expected:
            return False
    return True


class FakeCursor:
    def __init__(self, docs: list) -> None:
        self._docs = docs

    def sort(self, keys):
        for key, direction in reversed(keys):
            self._docs.sort(key=lambda d: d.get(key), reverse=direction < 0)
        return self

    def limit(self, n: int):
        self._docs = self._docs[:n]
        return self

    async def to_list(self, length=None):
        return [copy.deepcopy(d) for d in self._docs[:length]]


class FakeCollection:
    def __init__(self, name: str) -> None:
        self.name = name
        self.docs: list[dict] = []
        self.indexes: dict[str, dict] = {}
        self.find_one_calls: list[dict] = []

    def _check_unique(self, doc: dict, exclude_id=None) -> None:
        for index in self.indexes.values():
            if not index["unique"]:
                continue
            for field in index["fields"]:
                for other in self.docs:
                    if other["_id"] != exclude_id and other.get(field) == doc.get(field):
                        raise DuplicateKeyError(f"E11000 duplicate key error: {field}")

    async def create_index(self, keys, unique=False, name=None):
        name = name or "_".join(k for k, _ in keys)
        self.indexes[name] = {"fields": [k for k, _ in keys], "unique": unique}
        return name

    async def insert_one(self, doc: dict):
        doc = copy.deepcopy(doc)
        doc.setdefault("_id", ObjectId())
        self._check_unique(doc)
        self.docs.append(doc)
        return SimpleNamespace(inserted_id=doc["_id"])

    async def update_one(self, filter_dict: dict, update: dict):
        for doc in self.docs:
            if _matches(doc, filter_dict):
                updated = {**doc, **copy.deepcopy(update["$set"])}
                self._check_unique(updated, exclude_id=doc["_id"])
                doc.update(updated)
                return SimpleNamespace(matched_count=1, modified_count=1)
        return SimpleNamespace(matched_count=0, modified_count=0)

    async def find_one(self, filter_dict: dict, projection=None):
        self.find_one_calls.append(filter_dict)
        for doc in self.docs:
            if _matches(doc, filter_dict):
                if projection:
                    return {k: doc[k] for k in projection if k in doc}
                return copy.deepcopy(doc)
        return None

    def find(self, filter_dict=None):
        return FakeCursor([d for d in self.docs if _matches(d, filter_dict or {})])

    async def count_documents(self, filter_dict: dict) -> int:
        return sum(1 for d in self.docs if _matches(d, filter_dict))


class FakeDatabase:
    name = "events_test"

    def __init__(self) -> None:
        self.collections: dict[str, FakeCollection] = {}

    def __getitem__(self, name: str) -> FakeCollection:
        if name not in self.collections:
            self.collections[name] = FakeCollection(name)
        return self.collections[name]

    async def list_collection_names(self):
        return list(self.collections)


@pytest.fixture
def fake_db() -> FakeDatabase:
    """Return an empty in-memory database with the app's indexes."""
    db = FakeDatabase()
    db["event"].indexes["slug_unique"] = {"fields": ["slug"], "unique": True}
    db["booking"].indexes["event_id"] = {"fields": ["event_id"], "unique": False}
    return db


# ---------------------------------------------------------------------------
# Payload factories
# ---------------------------------------------------------------------------

@pytest.fixture
def event_payload():
    """Return a function building a valid Event payload dict.

    Example:
        payload = event_payload(title="PyCon Lisbon", time="9:30")
    """

    def _event_payload(**overrides) -> dict:
        payload = {
            "title": "Cloud Native Summit 2025",
            "description": "Two days of talks on running services in the cloud.",
            "overview": "Talks and workshops on cloud infrastructure.",
            "image": "/images/cloud-summit.png",
            "venue": "Moscone Center",
            "location": "San Francisco, CA",
            "date": "2025-01-31",
            "time": "09:00",
            "mode": "offline",
            "audience": "Developers",
            "agenda": ["Registration", "Keynote", "Workshops"],
            "organizer": "CNCF",
            "tags": ["cloud", "kubernetes"],
        }
        payload.update(overrides)
        return payload

    return _event_payload


@pytest.fixture
def make_event(event_payload):
    def _make_event(**overrides) -> Event:
        return Event(**event_payload(**overrides))

    return _make_event


@pytest.fixture
def make_booking():
    def _make_booking(event_id, email="attendee@example.com") -> Booking:
        return Booking(event_id=str(event_id), email=email)

    return _make_booking
