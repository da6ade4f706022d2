from .user import User
from .time_slot import TimeSlot, AvailabilityStatus
from .appointment import Appointment, AppointmentStatus
from .notification import EmailNotification, NotificationType

__all__ = [
    "User",
    "TimeSlot",
    "AvailabilityStatus",
    "Appointment",
    "AppointmentStatus",
    "EmailNotification",
    "NotificationType",
]
