from sqlalchemy import Column, String, ForeignKey, Date, Time, DateTime, Enum as SQLEnum, Index
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base
from ..core.identifiers import new_time_slot_uid

class AvailabilityStatus(str, enum.Enum):
    AVAILABLE = "available"
    # Transient marker written inside the booking transaction before BOOKED.
    # It records intent only; exclusion comes from the row lock.
    LOCKED = "locked"
    BOOKED = "booked"

# Allowed availability_status moves. BOOKED -> LOCKED is never legal.
SLOT_TRANSITIONS = {
    AvailabilityStatus.AVAILABLE: {AvailabilityStatus.LOCKED, AvailabilityStatus.BOOKED},
    AvailabilityStatus.LOCKED: {AvailabilityStatus.BOOKED},
    AvailabilityStatus.BOOKED: {AvailabilityStatus.AVAILABLE},
}

def can_transition(current: AvailabilityStatus, target: AvailabilityStatus) -> bool:
    return target in SLOT_TRANSITIONS.get(AvailabilityStatus(current), set())

class TimeSlot(Base):
    __tablename__ = "time_slots"

    time_slot_uid = Column(String(64), primary_key=True, default=new_time_slot_uid)
    admin_uid = Column(String(64), ForeignKey("users.user_uid"), nullable=False, index=True)

    slot_date = Column(Date, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    availability_status = Column(
        SQLEnum(AvailabilityStatus, values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False,
        default=AvailabilityStatus.AVAILABLE,
    )

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    admin = relationship("User", back_populates="time_slots")
    appointments = relationship("Appointment", back_populates="time_slot")

    __table_args__ = (
        Index("idx_time_slots_date_status", "slot_date", "availability_status"),
    )

    @property
    def is_available(self) -> bool:
        return self.availability_status == AvailabilityStatus.AVAILABLE

    def __repr__(self):
        return (
            f"<TimeSlot(time_slot_uid={self.time_slot_uid}, date='{self.slot_date}', "
            f"start='{self.start_time}', status='{self.availability_status}')>"
        )
