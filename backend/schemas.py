from datetime import datetime

from pydantic import BaseModel, field_validator
from sqlmodel import SQLModel


class ReserveRequest(BaseModel):
    user_id: str
    client_name: str
    date: str  # YYYY-MM-DD format
    slot: str  # HH:MM, one of the valid slots

    @field_validator("user_id", "client_name")
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v


class ClientNameUpdate(BaseModel):
    client_name: str

    @field_validator("client_name")
    @classmethod
    def not_blank(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v


class ScheduleEntryResponse(SQLModel):
    id: str
    user_id: str
    client_name: str
    date: str
    slot: str
    created_at: datetime
    updated_at: datetime


class ReleaseResponse(BaseModel):
    ok: bool
    released: bool


class ClientNameUpdateResponse(BaseModel):
    ok: bool
    updated: bool
    entry: ScheduleEntryResponse | None = None


class SlotStatus(BaseModel):
    slot: str
    status: str  # 'available', 'taken' or 'yours'


class AvailabilityResponse(BaseModel):
    date: str
    bookable: bool
    day_full: bool
    slots: list[SlotStatus]


class DashboardSlot(BaseModel):
    slot: str
    status: str  # 'occupied' or 'available'
    client_name: str | None = None


class DashboardDay(BaseModel):
    date: str
    slots: list[DashboardSlot]


class DashboardResponse(BaseModel):
    days: list[DashboardDay]
