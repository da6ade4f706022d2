from sqlalchemy import Column, String, ForeignKey, DateTime, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
import enum

from ..core.database import Base
from ..core.identifiers import new_notification_uid

class NotificationType(str, enum.Enum):
    BOOKING_CONFIRMATION = "booking_confirmation"
    RESCHEDULE = "reschedule_notification"
    CANCELLATION = "cancellation_notification"

SENT_STATUS = "sent"

class EmailNotification(Base):
    """Audit record of a customer notification. Delivery itself is never performed."""

    __tablename__ = "email_notifications"

    notification_uid = Column(String(64), primary_key=True, default=new_notification_uid)
    appointment_uid = Column(String(64), ForeignKey("appointments.appointment_uid"), nullable=False, index=True)
    notification_type = Column(
        SQLEnum(NotificationType, values_callable=lambda types: [t.value for t in types]),
        nullable=False,
    )
    recipient_email = Column(String(255), nullable=False)
    sent_status = Column(String(20), nullable=False, default=SENT_STATUS)
    created_at = Column(DateTime, server_default=func.now())

    appointment = relationship("Appointment", back_populates="notifications")

    def __repr__(self):
        return f"<EmailNotification(notification_uid={self.notification_uid}, type='{self.notification_type}')>"
