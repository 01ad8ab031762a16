from app.models.user import User, UserCreate, UserPublic
from app.models.slot import Slot, SlotPublic
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentKind,
    AppointmentPublic,
    AppointmentStatus,
    AppointmentUpdate,
)

__all__ = [
    "User",
    "UserCreate",
    "UserPublic",
    "Slot",
    "SlotPublic",
    "Appointment",
    "AppointmentCreate",
    "AppointmentKind",
    "AppointmentPublic",
    "AppointmentStatus",
    "AppointmentUpdate",
]
