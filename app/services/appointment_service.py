import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.exceptions import ConflictError, ForbiddenError, NotFoundError, ValidationError
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentKind,
    AppointmentStatus,
    AppointmentUpdate,
)
from app.models.slot import Slot
from app.models.user import User
from app.services.auth_service import get_user_by_id, get_user_by_sharable_id
from app.services.dates import to_naive_utc, utc_naive_now
from app.services.email_service import AppointmentEmailData
from app.services.slot_service import claim_slot, get_slot, release_slot

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("name", "email", "phone", "guests", "reason")


@dataclass
class BookingResult:
    appointment: Appointment
    slot: Slot
    owner: User
    # Set only when an edit moved the appointment to another slot
    previous_slot: Slot | None = None

    @property
    def rescheduled(self) -> bool:
        return self.previous_slot is not None

    def email_data(self) -> AppointmentEmailData:
        a = self.appointment
        return AppointmentEmailData(
            appointment_id=a.id,
            owner_name=self.owner.name,
            owner_email=self.owner.email,
            guest_name=a.name,
            guest_email=a.email,
            start_time=self.slot.start_time,
            end_time=self.slot.end_time,
            reason=a.reason,
            guests=list(a.guests or []),
            old_start_time=self.previous_slot.start_time if self.previous_slot else None,
            old_end_time=self.previous_slot.end_time if self.previous_slot else None,
        )


def _validate_reason(reason: str | None) -> None:
    if reason is not None and len(reason) > settings.reason_max_length:
        raise ValidationError(f"Reason must be at most {settings.reason_max_length} characters")


async def _load_owned_appointment(
    session: AsyncSession, appointment_id: int, acting_user_id: int, now: datetime, action: str
) -> tuple[Appointment, Slot, User]:
    """Shared guards for cancel and edit: exists, owned, live, not in the past."""
    appointment = await session.get(Appointment, appointment_id)
    if appointment is None:
        raise NotFoundError("Appointment not found")
    if appointment.user_id != acting_user_id:
        raise ForbiddenError("Forbidden")
    if appointment.is_deleted:
        raise ConflictError(f"Cannot {action} a deleted appointment")
    slot = await get_slot(session, appointment.slot_id)
    if slot is None:
        raise NotFoundError("Slot not found")
    if slot.start_time < now:
        raise ConflictError(f"Cannot {action} a past appointment")
    owner = await get_user_by_id(session, acting_user_id)
    if owner is None:
        raise NotFoundError("User not found")
    return appointment, slot, owner


async def _repoint_appointment(
    session: AsyncSession, appointment: Appointment, expected_slot_id: int, **values
) -> None:
    """Conditional write on the appointment row; loses to any concurrent edit or cancel."""
    result = await session.execute(
        update(Appointment)
        .where(
            Appointment.id == appointment.id,
            Appointment.slot_id == expected_slot_id,
            Appointment.is_deleted == False,  # noqa: E712
        )
        .values(updated_at=utc_naive_now(), **values)
    )
    if result.rowcount != 1:
        raise ConflictError("Appointment was modified by another request")


async def create_appointment(
    session: AsyncSession, sharable_id: str, data: AppointmentCreate, now: datetime | None = None
) -> BookingResult:
    now = to_naive_utc(now) if now else utc_naive_now()
    owner = await get_user_by_sharable_id(session, sharable_id)
    if owner is None:
        raise NotFoundError("User not found")
    slot = await get_slot(session, data.slot_id)
    if slot is None:
        raise NotFoundError("Slot not found")
    if slot.user_id != owner.id:
        raise ConflictError("Slot does not belong to this user")
    if slot.is_booked:
        raise ConflictError("Slot is already booked")
    if slot.start_time < now:
        raise ConflictError("Cannot book a past slot")
    _validate_reason(data.reason)

    if not await claim_slot(session, slot.id):
        raise ConflictError("Slot is already booked")

    appointment = Appointment(
        user_id=owner.id,
        slot_id=slot.id,
        name=data.name,
        email=data.email.lower(),
        phone=data.phone,
        guests=list(data.guests or []),
        reason=data.reason,
        status=AppointmentStatus.PENDING,
    )
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    await session.refresh(slot)
    logger.info("Appointment created: %s for user %s", appointment.id, owner.id)
    return BookingResult(appointment, slot, owner)


async def cancel_appointment(
    session: AsyncSession, appointment_id: int, acting_user_id: int, now: datetime | None = None
) -> BookingResult:
    """Soft delete the appointment and free its slot. Irreversible."""
    now = to_naive_utc(now) if now else utc_naive_now()
    appointment, slot, owner = await _load_owned_appointment(
        session, appointment_id, acting_user_id, now, "delete"
    )
    await _repoint_appointment(session, appointment, slot.id, is_deleted=True)
    if not await release_slot(session, slot.id):
        logger.warning("Slot %s was not marked booked while cancelling appointment %s", slot.id, appointment.id)
    await session.flush()
    await session.refresh(appointment)
    await session.refresh(slot)
    logger.info("Appointment deleted: %s", appointment.id)
    return BookingResult(appointment, slot, owner)


async def edit_appointment(
    session: AsyncSession,
    appointment_id: int,
    acting_user_id: int,
    data: AppointmentUpdate,
    now: datetime | None = None,
) -> BookingResult:
    """Update guest fields and/or move the appointment to another slot of the same provider."""
    now = to_naive_utc(now) if now else utc_naive_now()
    supplied = {k: v for k, v in data.model_dump(exclude_unset=True).items() if v is not None}
    if not supplied:
        raise ValidationError("At least one field must be provided to update")
    _validate_reason(supplied.get("reason"))

    appointment, old_slot, owner = await _load_owned_appointment(
        session, appointment_id, acting_user_id, now, "edit"
    )

    new_slot: Slot | None = None
    new_slot_id = supplied.get("new_slot_id")
    if new_slot_id is not None:
        new_slot = await get_slot(session, new_slot_id)
        if new_slot is None:
            raise NotFoundError("New slot not found")
        if new_slot.user_id != acting_user_id:
            raise ConflictError("New slot does not belong to this user")
        if new_slot.id == old_slot.id:
            raise ConflictError("New slot must be different from current slot")
        if new_slot.is_booked:
            raise ConflictError("New slot is already booked")
        if new_slot.start_time < now:
            raise ConflictError("Cannot book a past slot")

    for name in _EDITABLE_FIELDS:
        if name in supplied:
            value = supplied[name]
            setattr(appointment, name, value.lower() if name == "email" else value)

    if new_slot is not None:
        # Free the old slot before claiming the new one; both happen in this transaction
        await release_slot(session, old_slot.id)
        if not await claim_slot(session, new_slot.id):
            raise ConflictError("New slot is already booked")
        await _repoint_appointment(session, appointment, old_slot.id, slot_id=new_slot.id)
        await session.refresh(old_slot)
        await session.refresh(new_slot)

    appointment.updated_at = utc_naive_now()
    session.add(appointment)
    await session.flush()
    await session.refresh(appointment)
    logger.info("Appointment updated: %s, slot changed: %s", appointment.id, new_slot is not None)
    if new_slot is not None:
        return BookingResult(appointment, new_slot, owner, previous_slot=old_slot)
    return BookingResult(appointment, old_slot, owner)


def normalize_pagination(page: int | None, limit: int | None) -> tuple[int, int, int]:
    """Clamp page/limit to sane bounds. Returns (page, limit, offset)."""
    page = max(1, page or settings.default_page)
    limit = min(settings.max_limit, max(1, limit or settings.default_limit))
    return page, limit, (page - 1) * limit


async def list_appointments(
    session: AsyncSession,
    sharable_id: str,
    kind: AppointmentKind,
    page: int | None = None,
    limit: int | None = None,
    now: datetime | None = None,
) -> tuple[list[tuple[Appointment, Slot]], int, int, int]:
    """Live appointments of a provider, past (newest first) or future (soonest first).

    Returns (rows, total, page, limit).
    """
    now = to_naive_utc(now) if now else utc_naive_now()
    owner = await get_user_by_sharable_id(session, sharable_id)
    if owner is None:
        raise NotFoundError("User not found")
    page, limit, offset = normalize_pagination(page, limit)

    q = (
        select(Appointment, Slot)
        .join(Slot, Slot.id == Appointment.slot_id)
        .where(Appointment.user_id == owner.id, Appointment.is_deleted == False)  # noqa: E712
    )
    if kind is AppointmentKind.PAST:
        q = q.where(Slot.start_time < now)
        order = Slot.start_time.desc()
    else:
        q = q.where(Slot.start_time >= now)
        order = Slot.start_time.asc()

    total_result = await session.execute(select(func.count()).select_from(q.subquery()))
    total = total_result.scalar_one()
    result = await session.execute(q.order_by(order).offset(offset).limit(limit))
    rows = [(a, s) for a, s in result.all()]
    return rows, total, page, limit
