from datetime import UTC, datetime

from sqlalchemy import UniqueConstraint
from sqlmodel import Field, SQLModel


def _utc_naive_now() -> datetime:
    """Naive UTC for TIMESTAMP WITHOUT TIME ZONE columns."""
    return datetime.now(UTC).replace(tzinfo=None)


class Slot(SQLModel, table=True):
    __tablename__ = "slots"
    # One slot per provider per start instant; concurrent generation runs collide here
    __table_args__ = (UniqueConstraint("user_id", "start_time", name="uq_slots_user_start"),)

    id: int | None = Field(default=None, primary_key=True)
    user_id: int = Field(foreign_key="users.id", index=True)
    start_time: datetime = Field(index=True)
    end_time: datetime = Field(index=True)
    # Midnight of the nominal (local) workday the slot was generated for
    date: datetime = Field(index=True)
    is_booked: bool = Field(default=False, index=True)
    created_at: datetime = Field(default_factory=_utc_naive_now)
    updated_at: datetime = Field(default_factory=_utc_naive_now)


class SlotPublic(SQLModel):
    id: int
    start_time: datetime
    end_time: datetime
    date: datetime
    is_booked: bool
