from typing import List, Optional

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...api.deps import get_current_user, get_current_user_optional, get_requester
from ...services import reservation_service
from ...services.appointment_service import AppointmentService
from ...services.reservation_service import Requester
from ...schemas.appointment import AppointmentResponse, BookingCreate, RescheduleRequest
from ...models.user import User

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    booking: BookingCreate,
    db: Session = Depends(get_db),
    current_user: Optional[User] = Depends(get_current_user_optional)
):
    """Book a time slot, as a signed-in user or as a guest."""
    # Ownership comes from the token, never from the request body
    booking = booking.model_copy(
        update={"user_uid": current_user.user_uid if current_user else None}
    )
    return reservation_service.book(db, booking)

@router.get("", response_model=List[AppointmentResponse])
def list_my_appointments(
    current_user: User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Appointments owned by the current user."""
    return AppointmentService(db).list_for_user(current_user)

@router.get("/{appointment_uid}", response_model=AppointmentResponse)
def get_appointment(
    appointment_uid: str,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db)
):
    return AppointmentService(db).get_appointment(appointment_uid, requester)

@router.put("/{appointment_uid}/reschedule", response_model=AppointmentResponse)
def reschedule_appointment(
    appointment_uid: str,
    request: RescheduleRequest,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db)
):
    """Move an appointment to another available time slot."""
    return reservation_service.reschedule(db, appointment_uid, request, requester)

@router.delete("/{appointment_uid}", response_model=AppointmentResponse)
def cancel_appointment(
    appointment_uid: str,
    requester: Requester = Depends(get_requester),
    db: Session = Depends(get_db)
):
    """Cancel an appointment and release its time slot."""
    return reservation_service.cancel(db, appointment_uid, requester)
