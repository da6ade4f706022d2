from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from ..models.appointment import AppointmentStatus

MAX_NOTES_LENGTH = 1000

def _normalize_notes(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value:
        return None
    if len(value) > MAX_NOTES_LENGTH:
        raise ValueError(f"Notes must be {MAX_NOTES_LENGTH} characters or fewer")
    return value

class BookingCreate(BaseModel):
    time_slot_uid: str = Field(..., min_length=1)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_email: EmailStr
    customer_phone: str = Field(..., min_length=3, max_length=32)
    notes: Optional[str] = None
    user_uid: Optional[str] = None

    @field_validator("time_slot_uid", "customer_name", "customer_phone")
    @classmethod
    def strip_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Field cannot be blank")
        return value

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_notes(value)

class RescheduleRequest(BaseModel):
    new_time_slot_uid: str = Field(..., min_length=1)
    notes: Optional[str] = None

    @field_validator("new_time_slot_uid")
    @classmethod
    def strip_slot_uid(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("New time slot UID is required")
        return value

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_notes(value)

class AdminAppointmentUpdate(BaseModel):
    time_slot_uid: Optional[str] = None
    status: Optional[AppointmentStatus] = None
    notes: Optional[str] = None

    @field_validator("notes")
    @classmethod
    def validate_notes(cls, value: Optional[str]) -> Optional[str]:
        return _normalize_notes(value)

class AppointmentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    appointment_uid: str
    user_uid: Optional[str] = None
    time_slot_uid: str
    customer_name: str
    customer_email: str
    customer_phone: str
    notes: Optional[str] = None
    booking_reference: str
    status: AppointmentStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
