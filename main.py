import logging
import os
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

import services
from database import (
    DATABASE_NAME,
    close_database,
    connect_to_database,
    ensure_indexes,
    get_database,
)
from errors import (
    AppError,
    DatabaseNotConnectedError,
    DuplicateSlugError,
    RecordNotFoundError,
    RecordValidationError,
    ReferentialIntegrityError,
)
from schemas import Booking as BookingSchema, Event as EventSchema, EventUpdate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    await connect_to_database()
    await ensure_indexes(get_database())
    yield
    await close_database()


app = FastAPI(title="Events API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Utils
def get_db():
    try:
        return get_database()
    except DatabaseNotConnectedError as e:
        raise HTTPException(status_code=503, detail=str(e))


def serialize_doc(doc):
    if not doc:
        return doc
    d = dict(doc)
    for k, v in list(d.items()):
        if isinstance(v, ObjectId):
            d[k] = str(v)
        elif isinstance(v, datetime):
            d[k] = v.isoformat()
    return d


def to_http_error(e: AppError) -> HTTPException:
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, DuplicateSlugError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, (RecordValidationError, ReferentialIntegrityError)):
        return HTTPException(status_code=400, detail=str(e))
    logger.error("Unhandled application error: %s", e)
    return HTTPException(status_code=500, detail="Internal error")


@app.get("/")
def read_root():
    return {"message": "Events API is running"}


@app.get("/test")
async def test_database():
    response = {
        "backend": "Running",
        "database": "Not Available",
        "database_url": "Set" if os.getenv("DATABASE_URL") else "Not Set",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
    }
    try:
        db = get_database()
    except DatabaseNotConnectedError:
        return response
    response["database_name"] = getattr(db, "name", DATABASE_NAME)
    response["connection_status"] = "Connected"
    try:
        collections = await db.list_collection_names()
        response["collections"] = collections[:10]
        response["database"] = "Connected & Working"
    except Exception as e:
        logger.warning("Database health check failed: %s", e)
        response["database"] = f"Connected but Error: {str(e)[:50]}"
    return response


# Event Endpoints
@app.post("/api/events", status_code=201)
async def create_event(event: EventSchema, db=Depends(get_db)):
    try:
        doc = await services.create_event(db, event)
    except AppError as e:
        raise to_http_error(e)
    return serialize_doc(doc)


@app.get("/api/events")
async def list_events(tag: Optional[str] = None, limit: int = Query(50, ge=1, le=200), db=Depends(get_db)):
    docs = await services.list_events(db, tag=tag, limit=limit)
    return [serialize_doc(d) for d in docs]


@app.get("/api/events/{slug}")
async def get_event(slug: str, db=Depends(get_db)):
    try:
        doc = await services.get_event_by_slug(db, slug)
        bookings = await services.count_bookings(db, str(doc["_id"]))
    except AppError as e:
        raise to_http_error(e)
    body = serialize_doc(doc)
    body["bookings"] = bookings
    return body


@app.patch("/api/events/{event_id}")
async def update_event(event_id: str, changes: EventUpdate, db=Depends(get_db)):
    try:
        doc = await services.update_event(db, event_id, changes)
    except AppError as e:
        raise to_http_error(e)
    return serialize_doc(doc)


# Booking Endpoints
@app.post("/api/bookings", status_code=201)
async def create_booking(booking: BookingSchema, db=Depends(get_db)):
    try:
        doc = await services.create_booking(db, booking)
    except AppError as e:
        raise to_http_error(e)
    return serialize_doc(doc)


@app.get("/api/bookings")
async def list_bookings(
    event_id: Optional[str] = None,
    email: Optional[str] = None,
    limit: int = Query(100, ge=1, le=300),
    db=Depends(get_db),
):
    try:
        docs = await services.list_bookings(db, event_id=event_id, email=email, limit=limit)
    except AppError as e:
        raise to_http_error(e)
    return [serialize_doc(d) for d in docs]


if __name__ == "__main__":
    import uvicorn

    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
