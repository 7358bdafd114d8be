import uuid
from datetime import UTC, datetime

from sqlmodel import Field, SQLModel, UniqueConstraint


def new_entry_id() -> str:
    return uuid.uuid4().hex


class ScheduleEntry(SQLModel, table=True):
    __table_args__ = (
        UniqueConstraint("date", "slot", name="uniq_schedule_date_slot"),
        UniqueConstraint("user_id", name="uniq_schedule_user"),
    )

    id: str = Field(default_factory=new_entry_id, primary_key=True)
    user_id: str = Field(index=True)
    client_name: str  # Display label, follows the onboarding company name
    date: str = Field(index=True)  # YYYY-MM-DD format
    slot: str  # One of validation.VALID_SLOTS
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
