from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import JSON, Column
from sqlmodel import Field, SQLModel

from app.models.slot import SlotPublic


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class AppointmentStatus(str, Enum):
    PENDING = "pending"
    DONE = "done"


class AppointmentKind(str, Enum):
    """Listing filter: relative to now, by the slot's start time."""

    PAST = "past"
    FUTURE = "future"


class Appointment(SQLModel, table=True):
    __tablename__ = "appointments"
    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    slot_id: int = Field(foreign_key="slots.id", index=True)
    name: str
    email: str
    phone: str | None = None
    guests: list[str] = Field(default_factory=list, sa_column=Column(JSON, nullable=False))
    reason: str | None = Field(default=None, max_length=500)
    status: AppointmentStatus = Field(default=AppointmentStatus.PENDING)
    is_deleted: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class AppointmentCreate(SQLModel):
    slot_id: int
    name: str
    email: str
    phone: str | None = None
    guests: list[str] = []
    reason: str | None = None


class AppointmentUpdate(SQLModel):
    new_slot_id: int | None = None
    name: str | None = None
    email: str | None = None
    phone: str | None = None
    guests: list[str] | None = None
    reason: str | None = None


class AppointmentPublic(SQLModel):
    id: int
    user_id: int
    slot_id: int
    name: str
    email: str
    phone: str | None = None
    guests: list[str]
    reason: str | None = None
    status: AppointmentStatus
    is_deleted: bool
    slot: SlotPublic
    created_at: datetime
    updated_at: datetime
