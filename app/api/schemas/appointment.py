from pydantic import BaseModel, EmailStr, Field

from app.models.appointment import AppointmentPublic
from app.models.slot import SlotPublic


class DaySlots(BaseModel):
    day_id: int  # 0 = Sunday ... 6 = Saturday (UTC)
    slots: list[SlotPublic]


class BookAppointmentRequest(BaseModel):
    sharable_id: str = Field(min_length=1)
    slot_id: int
    name: str = Field(min_length=1)
    email: EmailStr
    phone: str | None = None
    guests: list[str] = []
    reason: str | None = Field(default=None, max_length=500)


class EditAppointmentRequest(BaseModel):
    new_slot_id: int | None = None
    name: str | None = Field(default=None, min_length=1)
    email: EmailStr | None = None
    phone: str | None = None
    guests: list[str] | None = None
    reason: str | None = Field(default=None, max_length=500)


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int
    has_next_page: bool
    has_prev_page: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        total_pages = -(-total // limit) if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            total_pages=total_pages,
            has_next_page=page < total_pages,
            has_prev_page=page > 1,
        )


class AppointmentListResponse(BaseModel):
    appointments: list[AppointmentPublic]
    pagination: Pagination


class AppointmentActionResponse(BaseModel):
    message: str
    appointment: AppointmentPublic
