import logging
import os
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlmodel import Session

from allocator import SlotAllocator
from dashboard import build_dashboard
from db import create_db_and_tables, engine, get_session
from errors import ConflictError, StorageError, ValidationError
from schemas import (
    AvailabilityResponse,
    ClientNameUpdate,
    ClientNameUpdateResponse,
    DashboardResponse,
    ReleaseResponse,
    ReserveRequest,
    ScheduleEntryResponse,
)
from slot_store import SqlSlotStore
from validation import VALID_SLOTS, normalize_date

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

def log_schedule_change(entries):
    logger.info(f"Schedule changed, {len(entries)} active reservations")

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Initialize database and the scheduling core on startup."""
    create_db_and_tables()

    store = SqlSlotStore(engine)
    unsubscribe = store.subscribe(log_schedule_change)
    app.state.slot_store = store
    app.state.allocator = SlotAllocator(store)

    logger.info("Database initialized")
    yield
    unsubscribe()

# Create FastAPI app
app = FastAPI(title="Meeting Slot Scheduler API", version="1.0.0", lifespan=lifespan)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def get_allocator(request: Request) -> SlotAllocator:
    """Get the allocator built at startup."""
    return request.app.state.allocator

def to_response(entry) -> ScheduleEntryResponse:
    return ScheduleEntryResponse(
        id=entry.id,
        user_id=entry.user_id,
        client_name=entry.client_name,
        date=entry.date,
        slot=entry.slot,
        created_at=entry.created_at,
        updated_at=entry.updated_at,
    )

def parse_date_param(value: str) -> str:
    try:
        return normalize_date(value)
    except ValidationError as e:
        logger.error(f"Invalid date format: {value}")
        raise HTTPException(status_code=400, detail=e.message) from e

@app.get("/schedules", response_model=list[ScheduleEntryResponse])
def list_schedules(allocator: SlotAllocator = Depends(get_allocator)):
    """Get every reservation, ordered by date and slot."""
    logger.info("All schedules request")

    try:
        entries = sorted(allocator.store.list_all(), key=lambda e: (e.date, e.slot))
        return [to_response(e) for e in entries]

    except Exception as e:
        logger.error(f"Error listing schedules: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.get("/schedules/by-date", response_model=list[ScheduleEntryResponse])
def list_schedules_by_date(
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    allocator: SlotAllocator = Depends(get_allocator),
):
    """Get reservations on a single date."""
    key = parse_date_param(date)
    logger.info(f"Schedules request for date: {key}")

    try:
        entries = sorted(allocator.store.list_by_date(key), key=lambda e: e.slot)
        return [to_response(e) for e in entries]

    except Exception as e:
        logger.error(f"Error listing schedules for {key}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.get("/schedules/availability", response_model=AvailabilityResponse)
def get_availability(
    date: str = Query(..., description="Date in YYYY-MM-DD format"),
    user_id: str | None = Query(None, description="Caller, whose own slot is not counted as taken"),
    allocator: SlotAllocator = Depends(get_allocator),
):
    """Get the status of every slot on a date for the booking widget."""
    key = parse_date_param(date)
    logger.info(f"Availability request for {key} (user: {user_id})")

    try:
        return allocator.availability(key, user_id=user_id)

    except Exception as e:
        logger.error(f"Error getting availability for {key}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.get("/schedules/dashboard", response_model=DashboardResponse)
def get_dashboard(allocator: SlotAllocator = Depends(get_allocator)):
    """Get booked dates with all slots marked occupied or available."""
    logger.info("Dashboard request")

    try:
        return {"days": build_dashboard(allocator.store.list_all())}

    except Exception as e:
        logger.error(f"Error building dashboard: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.get("/schedules/slots")
def get_slots():
    """Get the fixed list of bookable times."""
    return {"slots": list(VALID_SLOTS)}

@app.get("/schedules/user/{user_id}", response_model=ScheduleEntryResponse)
def get_user_schedule(user_id: str, allocator: SlotAllocator = Depends(get_allocator)):
    """Get the caller's reservation."""
    try:
        entry = allocator.store.find_by_user(user_id)
        if not entry:
            raise HTTPException(status_code=404, detail="No reservation found")
        return to_response(entry)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting schedule for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.post("/schedules/reserve", response_model=ScheduleEntryResponse)
def reserve_slot(request: ReserveRequest, allocator: SlotAllocator = Depends(get_allocator)):
    """Reserve a slot, moving the caller's existing reservation if there is one."""
    logger.info(f"Reserve request for user: {request.user_id} on {request.date} at {request.slot}")

    try:
        result = allocator.reserve(request.user_id, request.client_name, request.date, request.slot)
    except Exception as e:
        logger.error(f"Error reserving slot for user {request.user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

    if result.success:
        return to_response(result.entry)

    if isinstance(result.error, ValidationError):
        raise HTTPException(status_code=422, detail=result.message)
    if isinstance(result.error, ConflictError):
        raise HTTPException(status_code=409, detail=result.message)
    if isinstance(result.error, StorageError):
        raise HTTPException(status_code=503, detail=result.message)
    raise HTTPException(status_code=500, detail=result.message or "Could not reserve the slot")

@app.delete("/schedules/user/{user_id}", response_model=ReleaseResponse)
def release_slot(user_id: str, allocator: SlotAllocator = Depends(get_allocator)):
    """Release the caller's reservation. Releasing nothing is not an error."""
    logger.info(f"Release request for user: {user_id}")

    try:
        released = allocator.release(user_id)
        return ReleaseResponse(ok=True, released=released)

    except StorageError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except Exception as e:
        logger.error(f"Error releasing slot for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.patch("/schedules/user/{user_id}/client-name", response_model=ClientNameUpdateResponse)
def update_client_name(
    user_id: str, request: ClientNameUpdate, allocator: SlotAllocator = Depends(get_allocator)
):
    """Keep the reservation's display name in sync with the onboarding record."""
    logger.info(f"Client name update for user: {user_id}")

    try:
        entry = allocator.update_client_name(user_id, request.client_name)
        if entry is None:
            return ClientNameUpdateResponse(ok=True, updated=False)
        return ClientNameUpdateResponse(ok=True, updated=True, entry=to_response(entry))

    except ConflictError as e:
        raise HTTPException(status_code=409, detail=e.message) from e
    except StorageError as e:
        raise HTTPException(status_code=503, detail=e.message) from e
    except Exception as e:
        logger.error(f"Error renaming reservation for user {user_id}: {str(e)}")
        raise HTTPException(status_code=500, detail=str(e)) from e

@app.get("/health")
def health(session: Session = Depends(get_session)):
    """Check database connectivity."""
    try:
        session.execute(text("SELECT 1"))
        return {"ok": True, "database": "up"}
    except Exception as e:
        logger.error(f"Connection test failed: {str(e)}")
        raise HTTPException(status_code=503, detail="Database unavailable") from e

@app.get("/")
def root():
    """Root endpoint."""
    return {"message": "Meeting Slot Scheduler API", "docs": "/docs"}
