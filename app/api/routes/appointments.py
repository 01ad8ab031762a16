import logging

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_current_user
from app.api.schemas.appointment import (
    AppointmentActionResponse,
    AppointmentListResponse,
    BookAppointmentRequest,
    EditAppointmentRequest,
    Pagination,
)
from app.core.db import get_session
from app.models.appointment import (
    Appointment,
    AppointmentCreate,
    AppointmentKind,
    AppointmentPublic,
    AppointmentUpdate,
)
from app.models.slot import Slot, SlotPublic
from app.models.user import User
from app.services.appointment_service import (
    cancel_appointment,
    create_appointment,
    edit_appointment,
    list_appointments,
)
from app.services.email_service import (
    send_appointment_booked_email,
    send_appointment_cancelled_email,
    send_appointment_rescheduled_email,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/appointments", tags=["appointments"])


def _to_public(a: Appointment, slot: Slot) -> AppointmentPublic:
    return AppointmentPublic(
        id=a.id,
        user_id=a.user_id,
        slot_id=a.slot_id,
        name=a.name,
        email=a.email,
        phone=a.phone,
        guests=list(a.guests or []),
        reason=a.reason,
        status=a.status,
        is_deleted=a.is_deleted,
        slot=SlotPublic.model_validate(slot, from_attributes=True),
        created_at=a.created_at,
        updated_at=a.updated_at,
    )


@router.get("", response_model=AppointmentListResponse)
async def get_appointments(
    sharable_id: str = Query(..., min_length=1),
    kind: AppointmentKind = Query(..., alias="type"),
    page: int = Query(1),
    limit: int = Query(10),
    session: AsyncSession = Depends(get_session),
) -> AppointmentListResponse:
    rows, total, page, limit = await list_appointments(session, sharable_id, kind, page, limit)
    return AppointmentListResponse(
        appointments=[_to_public(a, s) for a, s in rows],
        pagination=Pagination.build(page, limit, total),
    )


@router.post("", response_model=AppointmentPublic, status_code=status.HTTP_201_CREATED)
async def book_appointment(
    body: BookAppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
) -> AppointmentPublic:
    """Public: a guest books a free future slot of the provider behind sharable_id."""
    data = AppointmentCreate(
        slot_id=body.slot_id,
        name=body.name,
        email=body.email,
        phone=body.phone,
        guests=body.guests,
        reason=body.reason,
    )
    result = await create_appointment(session, body.sharable_id, data)
    # Commit before queuing: background tasks run ahead of the dependency teardown
    await session.commit()
    background_tasks.add_task(send_appointment_booked_email, result.email_data())
    return _to_public(result.appointment, result.slot)


@router.patch("/{appointment_id}", response_model=AppointmentActionResponse)
async def update_appointment(
    appointment_id: int,
    body: EditAppointmentRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentActionResponse:
    data = AppointmentUpdate(**body.model_dump(exclude_unset=True))
    result = await edit_appointment(session, appointment_id, current_user.id, data)
    await session.commit()
    if result.rescheduled:
        background_tasks.add_task(send_appointment_rescheduled_email, result.email_data())
    return AppointmentActionResponse(
        message="Appointment rescheduled successfully" if result.rescheduled else "Appointment updated successfully",
        appointment=_to_public(result.appointment, result.slot),
    )


@router.delete("/{appointment_id}", response_model=AppointmentActionResponse)
async def delete_appointment(
    appointment_id: int,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    current_user: User = Depends(get_current_user),
) -> AppointmentActionResponse:
    result = await cancel_appointment(session, appointment_id, current_user.id)
    await session.commit()
    background_tasks.add_task(send_appointment_cancelled_email, result.email_data())
    return AppointmentActionResponse(
        message="Appointment deleted successfully",
        appointment=_to_public(result.appointment, result.slot),
    )
