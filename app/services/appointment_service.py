import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import ConflictError, NotFoundError, StorageFailure, UnauthorizedError
from ..models.appointment import Appointment, AppointmentStatus
from ..models.time_slot import TimeSlot
from ..models.user import User
from ..schemas.appointment import AdminAppointmentUpdate, RescheduleRequest
from . import reservation_service
from .reservation_service import Requester

logger = logging.getLogger(__name__)

class AppointmentService:
    """Read paths for appointments and the admin edit screen.

    Every state change is delegated to ``reservation_service``.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_for_user(self, user: User) -> List[Appointment]:
        return self.db.query(Appointment).filter(
            Appointment.user_uid == user.user_uid
        ).order_by(Appointment.created_at.desc()).all()

    def get_appointment(self, appointment_uid: str, requester: Requester) -> Appointment:
        appointment = self._get(appointment_uid)
        if not (requester.is_admin or appointment.is_owned_by(requester.user_uid)):
            raise UnauthorizedError("Unauthorized to view this appointment")
        return appointment

    def list_for_admin(self, admin: User, status: Optional[AppointmentStatus] = None) -> List[Appointment]:
        """Appointments on time slots managed by the admin."""
        query = self.db.query(Appointment).join(
            TimeSlot, Appointment.time_slot_uid == TimeSlot.time_slot_uid
        ).filter(TimeSlot.admin_uid == admin.user_uid)

        if status:
            query = query.filter(Appointment.status == status)

        return query.order_by(TimeSlot.slot_date, TimeSlot.start_time).all()

    def admin_update(
        self,
        appointment_uid: str,
        update: AdminAppointmentUpdate,
        admin: User,
    ) -> Appointment:
        """Apply an admin edit: cancel, move to another slot, or change notes."""
        requester = Requester.from_user(admin)
        appointment = self._get(appointment_uid)

        moving = bool(update.time_slot_uid) and update.time_slot_uid != appointment.time_slot_uid

        cancelling = update.status == AppointmentStatus.CANCELLED
        already_cancelled = appointment.status == AppointmentStatus.CANCELLED

        if cancelling and moving:
            raise ConflictError("An appointment cannot be moved and cancelled in one update")

        if cancelling and not already_cancelled:
            return reservation_service.cancel(self.db, appointment_uid, requester, notes=update.notes)

        if update.status and not cancelling and already_cancelled:
            raise ConflictError("Cancelled appointments cannot be reactivated")

        if moving:
            return reservation_service.reschedule(
                self.db,
                appointment_uid,
                RescheduleRequest(new_time_slot_uid=update.time_slot_uid, notes=update.notes),
                requester,
            )

        if update.status and update.status != appointment.status:
            raise ConflictError("Status changes other than cancellation require a new time slot")

        if update.notes is not None:
            appointment = self._set_notes(appointment, update.notes)
        return appointment

    def _set_notes(self, appointment: Appointment, notes: str) -> Appointment:
        appointment.notes = notes
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to update notes of appointment %s", appointment.appointment_uid)
            raise StorageFailure() from exc
        self.db.refresh(appointment)
        return appointment

    def _get(self, appointment_uid: str) -> Appointment:
        appointment = self.db.query(Appointment).filter(
            Appointment.appointment_uid == appointment_uid
        ).first()
        if not appointment:
            raise NotFoundError("Appointment not found")
        return appointment
