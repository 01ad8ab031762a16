from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.schemas.appointment import DaySlots
from app.core.db import get_session
from app.core.exceptions import NotFoundError
from app.models.slot import SlotPublic
from app.services.auth_service import get_user_by_sharable_id
from app.services.slot_service import get_slots_for_week

router = APIRouter(prefix="/slots", tags=["slots"])


@router.get("/available", response_model=list[DaySlots])
async def available_slots(
    sharable_id: str = Query(..., min_length=1),
    week_offset: int = Query(0),
    session: AsyncSession = Depends(get_session),
) -> list[DaySlots]:
    """Future slots (booked and free) of one week, grouped by UTC weekday. week_offset=0 is the current week."""
    user = await get_user_by_sharable_id(session, sharable_id)
    if user is None:
        raise NotFoundError("User not found")
    grouped = await get_slots_for_week(session, user.id, week_offset)
    return [
        DaySlots(day_id=day_id, slots=[SlotPublic.model_validate(s, from_attributes=True) for s in slots])
        for day_id, slots in grouped
    ]
