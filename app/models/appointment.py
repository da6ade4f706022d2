from sqlalchemy import Column, String, ForeignKey, DateTime, Text, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base
from ..core.identifiers import new_appointment_uid

class AppointmentStatus(str, enum.Enum):
    BOOKED = "booked"
    RESCHEDULED = "rescheduled"
    CANCELLED = "cancelled"

# Statuses whose time slot must be held as BOOKED
ACTIVE_STATUSES = (AppointmentStatus.BOOKED, AppointmentStatus.RESCHEDULED)

class Appointment(Base):
    __tablename__ = "appointments"

    appointment_uid = Column(String(64), primary_key=True, default=new_appointment_uid)

    # Relationships; user_uid is null for guest bookings
    user_uid = Column(String(64), ForeignKey("users.user_uid"), nullable=True, index=True)
    time_slot_uid = Column(String(64), ForeignKey("time_slots.time_slot_uid"), nullable=False, index=True)

    # Customer contact
    customer_name = Column(String(255), nullable=False)
    customer_email = Column(String(255), nullable=False)
    customer_phone = Column(String(32), nullable=False)
    notes = Column(Text, nullable=True)

    booking_reference = Column(String(32), nullable=False, unique=True)
    status = Column(
        SQLEnum(AppointmentStatus, values_callable=lambda statuses: [s.value for s in statuses]),
        nullable=False,
        default=AppointmentStatus.BOOKED,
    )

    # Tracking
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    user = relationship("User", back_populates="appointments")
    time_slot = relationship("TimeSlot", back_populates="appointments")
    notifications = relationship("EmailNotification", back_populates="appointment")

    def is_owned_by(self, user_uid) -> bool:
        return self.user_uid is not None and self.user_uid == user_uid

    def __repr__(self):
        return (
            f"<Appointment(appointment_uid={self.appointment_uid}, time_slot_uid={self.time_slot_uid}, "
            f"reference='{self.booking_reference}', status='{self.status}')>"
        )
