from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...services.time_slot_service import TimeSlotService
from ...schemas.time_slot import TimeSlotResponse

router = APIRouter(prefix="/time-slots", tags=["Time Slots"])

@router.get("", response_model=List[TimeSlotResponse])
def list_available_time_slots(
    slot_date: date = Query(..., alias="date", description="YYYY-MM-DD"),
    db: Session = Depends(get_db)
):
    """Available time slots for a given date."""
    return TimeSlotService(db).list_available(slot_date)
