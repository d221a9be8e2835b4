"""
MongoDB connection management and document helpers.

The process keeps one cached client. Callers use ``connect_to_database()``,
which returns the cached client immediately once it exists and otherwise
joins the connection attempt already in flight, so concurrent callers never
open a second connection.

Configuration (environment):

    DATABASE_URL         required, e.g. mongodb://localhost:27017/events
    DATABASE_NAME        database used when the URL does not name one
    DATABASE_TIMEOUT_MS  server selection timeout in milliseconds
"""
import asyncio
import logging
import os
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, AsyncMongoClient

from errors import ConfigurationError, DatabaseNotConnectedError
from schemas import BOOKING_COLLECTION, EVENT_COLLECTION

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME", "app")
DATABASE_TIMEOUT_MS = int(os.getenv("DATABASE_TIMEOUT_MS", "5000"))

if not DATABASE_URL:
    # Fail at startup, not on the first request
    raise ConfigurationError("Please define the DATABASE_URL environment variable.")


def _redact(url: str) -> str:
    return url.split("@")[-1]


async def open_client(url: str) -> AsyncMongoClient:
    """Create a client and wait until the server answers a ping."""
    client = AsyncMongoClient(
        url,
        serverSelectionTimeoutMS=DATABASE_TIMEOUT_MS,
        tz_aware=True,
    )
    try:
        await client.admin.command("ping")
    except (Exception, asyncio.CancelledError):
        await client.close()
        raise
    logger.info("Connected to MongoDB at %s", _redact(url))
    return client


class ConnectionCache:
    """Holds the resolved client and the in-flight connection attempt.

    At most one attempt runs at a time. If it fails, every caller waiting on
    it gets the error and the next call starts a fresh attempt.
    """

    def __init__(
        self,
        url: str,
        connect: Callable[[str], Awaitable[Any]] = open_client,
    ) -> None:
        self.url = url
        self._connect = connect
        self.client: Optional[Any] = None
        self.pending: Optional[asyncio.Task] = None

    async def connect(self) -> Any:
        if self.client is not None:
            return self.client

        if self.pending is None:
            self.pending = asyncio.ensure_future(self._attempt())

        # Shielded so one cancelled caller does not abort the shared attempt
        return await asyncio.shield(self.pending)

    async def _attempt(self) -> Any:
        task = asyncio.current_task()
        try:
            client = await self._connect(self.url)
        except Exception:
            logger.error("Connection to %s failed", _redact(self.url))
            # A superseded attempt must not clear a newer one
            if self.pending is task:
                self.pending = None
            raise

        if self.pending is not task:
            await client.close()
            raise DatabaseNotConnectedError("Connection cache was closed while connecting.")
        self.client = client
        return client

    async def close(self) -> None:
        """Drop the cached client and stop any attempt still in flight."""
        client = self.client
        pending = self.pending
        self.client = None
        self.pending = None

        if pending is not None and not pending.done():
            pending.cancel()
            await asyncio.gather(pending, return_exceptions=True)

        if client is not None:
            await client.close()
            logger.info("MongoDB connection closed")


_cache = ConnectionCache(DATABASE_URL)


async def connect_to_database() -> AsyncMongoClient:
    """Return the process-wide client, connecting on first use."""
    return await _cache.connect()


async def close_database() -> None:
    await _cache.close()


def get_database(cache: Optional[ConnectionCache] = None):
    """Return the default database of an established connection.

    Never connects implicitly: operations before the connection is ready
    fail immediately instead of being queued.
    """
    cache = cache or _cache
    if cache.client is None:
        raise DatabaseNotConnectedError(
            "Database is not connected. Call connect_to_database() first."
        )
    return cache.client.get_default_database(default=DATABASE_NAME)


async def ensure_indexes(db) -> None:
    await db[EVENT_COLLECTION].create_index(
        [("slug", ASCENDING)], unique=True, name="slug_unique"
    )
    await db[BOOKING_COLLECTION].create_index(
        [("event_id", ASCENDING)], name="event_id"
    )
    logger.info("Indexes ensured on %s and %s", EVENT_COLLECTION, BOOKING_COLLECTION)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def create_document(db, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    """Insert a document with created_at/updated_at set and return its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = _utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = await db[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


async def update_document(db, collection_name: str, document_id: ObjectId, changes: Dict[str, Any]) -> None:
    changes = dict(changes)
    changes["updated_at"] = _utcnow()
    await db[collection_name].update_one({"_id": document_id}, {"$set": changes})


async def get_documents(
    db,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return await cursor.to_list(length=None)
