import logging

from sqlalchemy.orm import Session

from ..models.appointment import Appointment
from ..models.notification import EmailNotification, NotificationType, SENT_STATUS

logger = logging.getLogger(__name__)

def record_notification(
    db: Session,
    appointment: Appointment,
    notification_type: NotificationType,
) -> EmailNotification:
    """Add a notification audit row to the caller's open transaction.

    No email is sent; the record is marked ``sent`` and the would-be delivery
    is logged. Nothing is committed here.
    """
    notification = EmailNotification(
        appointment_uid=appointment.appointment_uid,
        notification_type=notification_type,
        recipient_email=appointment.customer_email,
        sent_status=SENT_STATUS,
    )
    db.add(notification)

    logger.info(
        "Email %s queued for %s (appointment %s, reference %s)",
        notification_type.value,
        appointment.customer_email,
        appointment.appointment_uid,
        appointment.booking_reference,
    )
    return notification
