from datetime import date, datetime, time
from typing import Optional

from pydantic import BaseModel, ConfigDict, model_validator

from ..models.time_slot import AvailabilityStatus

class TimeSlotCreate(BaseModel):
    slot_date: date
    start_time: time
    end_time: time

    @model_validator(mode="after")
    def check_time_range(self):
        if self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

class TimeSlotUpdate(BaseModel):
    """Partial update of a slot's calendar position. Status is owned by the reservation flow."""

    slot_date: Optional[date] = None
    start_time: Optional[time] = None
    end_time: Optional[time] = None

    @model_validator(mode="after")
    def check_time_range(self):
        if self.start_time and self.end_time and self.end_time <= self.start_time:
            raise ValueError("end_time must be after start_time")
        return self

class TimeSlotResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    time_slot_uid: str
    admin_uid: str
    slot_date: date
    start_time: time
    end_time: time
    availability_status: AvailabilityStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
