from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_admin_user
from ...services.appointment_service import AppointmentService
from ...services.reservation_service import Requester
from ...services.time_slot_service import TimeSlotService
from ...schemas.appointment import AdminAppointmentUpdate, AppointmentResponse
from ...schemas.time_slot import TimeSlotCreate, TimeSlotResponse, TimeSlotUpdate
from ...models.appointment import AppointmentStatus
from ...models.user import User

router = APIRouter(prefix="/admin", tags=["Admin"])

# Time slots
@router.get("/time-slots", response_model=List[TimeSlotResponse])
def list_admin_time_slots(
    slot_date: Optional[date] = Query(None, alias="date"),
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Time slots owned by the current admin, optionally for one date."""
    return TimeSlotService(db).list_for_admin(admin, slot_date)

@router.post("/time-slots", response_model=TimeSlotResponse, status_code=status.HTTP_201_CREATED)
def create_time_slot(
    slot_data: TimeSlotCreate,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return TimeSlotService(db).create_slot(admin, slot_data)

@router.put("/time-slots/{time_slot_uid}", response_model=TimeSlotResponse)
def update_time_slot(
    time_slot_uid: str,
    slot_data: TimeSlotUpdate,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return TimeSlotService(db).update_slot(admin, time_slot_uid, slot_data)

@router.delete("/time-slots/{time_slot_uid}")
def delete_time_slot(
    time_slot_uid: str,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Delete a time slot; only available slots can be removed."""
    TimeSlotService(db).delete_slot(admin, time_slot_uid)
    return {"message": "Time slot deleted successfully"}

# Appointments
@router.get("/appointments", response_model=List[AppointmentResponse])
def list_admin_appointments(
    appointment_status: Optional[AppointmentStatus] = Query(None, alias="status"),
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Appointments on the current admin's time slots."""
    return AppointmentService(db).list_for_admin(admin, appointment_status)

@router.get("/appointments/{appointment_uid}", response_model=AppointmentResponse)
def get_admin_appointment(
    appointment_uid: str,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).get_appointment(appointment_uid, Requester.from_user(admin))

@router.put("/appointments/{appointment_uid}", response_model=AppointmentResponse)
def update_admin_appointment(
    appointment_uid: str,
    update: AdminAppointmentUpdate,
    admin: User = Depends(get_admin_user),
    db: Session = Depends(get_db)
):
    """Cancel, move or annotate an appointment on behalf of the customer."""
    return AppointmentService(db).admin_update(appointment_uid, update, admin)
