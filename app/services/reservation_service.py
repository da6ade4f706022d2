"""
Slot reservation transactions: book, reschedule and cancel.

Each operation runs in one transaction on the session it is handed and is
all-or-nothing. A time slot is claimed under an exclusive row lock
(``SELECT ... FOR UPDATE``) and every status change is a guarded UPDATE whose
row count is checked, so a second claimant of the same slot always ends in
``ConflictError`` rather than a double booking.

Slot status moves along AVAILABLE -> LOCKED -> BOOKED on booking,
BOOKED -> AVAILABLE on cancel, and AVAILABLE -> BOOKED / BOOKED -> AVAILABLE
for the two slots of a reschedule.
"""

import logging
from contextlib import contextmanager
from typing import Iterable, List, NamedTuple, Optional

from sqlalchemy.exc import IntegrityError, OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import apply_lock_timeout
from ..core.exceptions import (
    ConflictError, NotFoundError, ReservationError, StorageFailure, UnauthorizedError
)
from ..core.identifiers import generate_booking_reference
from ..core.security import UserRole
from ..models.appointment import Appointment, AppointmentStatus, ACTIVE_STATUSES
from ..models.notification import NotificationType
from ..models.time_slot import TimeSlot, AvailabilityStatus, can_transition
from ..schemas.appointment import BookingCreate, RescheduleRequest
from .notification_service import record_notification

logger = logging.getLogger(__name__)


class Requester(NamedTuple):
    """Identity on whose behalf a reschedule or cancel is attempted."""

    user_uid: Optional[str]
    role: UserRole

    @classmethod
    def from_user(cls, user) -> "Requester":
        return cls(user_uid=user.user_uid, role=UserRole(user.role))

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@contextmanager
def reservation_transaction(db: Session, operation: str):
    """Roll back on any failure and translate store errors into ``StorageFailure``."""
    try:
        yield
    except ReservationError as exc:
        db.rollback()
        logger.warning("%s rejected: %s", operation, exc.message)
        raise
    except IntegrityError as exc:
        db.rollback()
        if "booking_reference" in str(exc.orig):
            logger.warning("%s hit a booking reference collision", operation)
            raise StorageFailure("Booking reference collision, please retry", retryable=True) from exc
        logger.exception("%s violated a storage constraint", operation)
        raise StorageFailure() from exc
    except OperationalError as exc:
        # Lock timeouts, deadlock victims and dropped connections
        db.rollback()
        logger.exception("%s failed in the store", operation)
        raise StorageFailure("The store is busy, please retry", retryable=True) from exc
    except SQLAlchemyError as exc:
        db.rollback()
        logger.exception("%s failed in the store", operation)
        raise StorageFailure() from exc


def _lock_slots(db: Session, slot_uids: Iterable[str]) -> List[TimeSlot]:
    """Lock the given slot rows, always in ascending uid order."""
    ordered = sorted(set(slot_uids))
    return (
        db.query(TimeSlot)
        .filter(TimeSlot.time_slot_uid.in_(ordered))
        .order_by(TimeSlot.time_slot_uid)
        .with_for_update()
        .populate_existing()
        .all()
    )


def _transition_slot(db: Session, slot: TimeSlot, target: AvailabilityStatus) -> None:
    """Move a slot to ``target`` only if it still holds the status we observed."""
    current = AvailabilityStatus(slot.availability_status)
    if not can_transition(current, target):
        raise ConflictError(
            f"Time slot cannot move from {current.value} to {target.value}"
        )

    updated = db.query(TimeSlot).filter(
        TimeSlot.time_slot_uid == slot.time_slot_uid,
        TimeSlot.availability_status == current,
    ).update(
        {TimeSlot.availability_status: target},
        synchronize_session="evaluate",
    )
    if updated != 1:
        raise ConflictError("Time slot is not available")


def _get_appointment(db: Session, appointment_uid: str, lock: bool = False) -> Appointment:
    query = db.query(Appointment).filter(Appointment.appointment_uid == appointment_uid)
    if lock:
        query = query.with_for_update().populate_existing()
    appointment = query.first()
    if not appointment:
        raise NotFoundError("Appointment not found")
    return appointment


def _authorize(appointment: Appointment, requester: Requester, action: str) -> None:
    if requester.is_admin or appointment.is_owned_by(requester.user_uid):
        return
    raise UnauthorizedError(f"Unauthorized to {action} this appointment")


def book(db: Session, booking: BookingCreate) -> Appointment:
    """Claim an available slot and create a booked appointment for it."""
    with reservation_transaction(db, "book"):
        exists = db.query(TimeSlot.time_slot_uid).filter(
            TimeSlot.time_slot_uid == booking.time_slot_uid
        ).first()
        if not exists:
            raise NotFoundError("Time slot not found")

        apply_lock_timeout(db)
        locked = _lock_slots(db, [booking.time_slot_uid])
        if not locked:
            raise NotFoundError("Time slot not found")
        slot = locked[0]

        # Status may have changed while we waited for the lock
        if not slot.is_available:
            raise ConflictError("Time slot is not available")

        _transition_slot(db, slot, AvailabilityStatus.LOCKED)

        appointment = Appointment(
            user_uid=booking.user_uid,
            time_slot_uid=slot.time_slot_uid,
            customer_name=booking.customer_name,
            customer_email=str(booking.customer_email),
            customer_phone=booking.customer_phone,
            notes=booking.notes,
            booking_reference=generate_booking_reference(),
            status=AppointmentStatus.BOOKED,
        )
        db.add(appointment)
        db.flush()

        _transition_slot(db, slot, AvailabilityStatus.BOOKED)
        record_notification(db, appointment, NotificationType.BOOKING_CONFIRMATION)

        db.commit()
        db.refresh(appointment)

    logger.info(
        "Booked slot %s as appointment %s (%s)",
        appointment.time_slot_uid, appointment.appointment_uid, appointment.booking_reference,
    )
    return appointment


def reschedule(
    db: Session,
    appointment_uid: str,
    request: RescheduleRequest,
    requester: Requester,
) -> Appointment:
    """Move an active appointment to another available slot, releasing the old one."""
    with reservation_transaction(db, "reschedule"):
        apply_lock_timeout(db)
        appointment = _get_appointment(db, appointment_uid, lock=True)
        _authorize(appointment, requester, "reschedule")

        if appointment.status == AppointmentStatus.CANCELLED:
            raise ConflictError("Cancelled appointments cannot be rescheduled")

        old_slot_uid = appointment.time_slot_uid
        new_slot_uid = request.new_time_slot_uid

        slots = {slot.time_slot_uid: slot for slot in _lock_slots(db, [old_slot_uid, new_slot_uid])}

        new_slot = slots.get(new_slot_uid)
        if new_slot is None:
            raise NotFoundError("New time slot not found")
        if new_slot_uid == old_slot_uid or not new_slot.is_available:
            raise ConflictError("New time slot is not available")

        values = {
            Appointment.time_slot_uid: new_slot_uid,
            Appointment.status: AppointmentStatus.RESCHEDULED,
        }
        if request.notes is not None:
            values[Appointment.notes] = request.notes

        # Guard against a cancel or reschedule that committed after our read
        updated = db.query(Appointment).filter(
            Appointment.appointment_uid == appointment_uid,
            Appointment.time_slot_uid == old_slot_uid,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).update(values, synchronize_session="fetch")
        if updated != 1:
            raise ConflictError("Appointment was modified by another request")

        old_slot = slots.get(old_slot_uid)
        if old_slot is not None and old_slot.availability_status == AvailabilityStatus.BOOKED:
            _transition_slot(db, old_slot, AvailabilityStatus.AVAILABLE)
        _transition_slot(db, new_slot, AvailabilityStatus.BOOKED)

        record_notification(db, appointment, NotificationType.RESCHEDULE)

        db.commit()
        db.refresh(appointment)

    logger.info(
        "Rescheduled appointment %s from slot %s to slot %s",
        appointment_uid, old_slot_uid, new_slot_uid,
    )
    return appointment


def cancel(
    db: Session,
    appointment_uid: str,
    requester: Requester,
    notes: Optional[str] = None,
) -> Appointment:
    """Cancel an appointment and return its slot to the available pool.

    The appointment row is locked and re-read first, so the slot released is
    the one it holds at cancel time. Cancelling an already cancelled
    appointment returns it unchanged and does not touch the slot, which may
    since have been booked by someone else.
    """
    with reservation_transaction(db, "cancel"):
        apply_lock_timeout(db)
        appointment = _get_appointment(db, appointment_uid, lock=True)
        _authorize(appointment, requester, "cancel")

        if appointment.status == AppointmentStatus.CANCELLED:
            db.rollback()
            logger.info("Appointment %s is already cancelled", appointment_uid)
            return appointment

        slot_uid = appointment.time_slot_uid
        values = {Appointment.status: AppointmentStatus.CANCELLED}
        if notes is not None:
            values[Appointment.notes] = notes

        updated = db.query(Appointment).filter(
            Appointment.appointment_uid == appointment_uid,
            Appointment.time_slot_uid == slot_uid,
            Appointment.status.in_(ACTIVE_STATUSES),
        ).update(values, synchronize_session="fetch")
        if updated != 1:
            db.rollback()
            db.refresh(appointment)
            if appointment.status == AppointmentStatus.CANCELLED:
                # A concurrent cancel won; it already released the slot
                return appointment
            raise ConflictError("Appointment was modified by another request")

        released = db.query(TimeSlot).filter(
            TimeSlot.time_slot_uid == slot_uid,
            TimeSlot.availability_status == AvailabilityStatus.BOOKED,
        ).update(
            {TimeSlot.availability_status: AvailabilityStatus.AVAILABLE},
            synchronize_session="evaluate",
        )
        if not released:
            logger.warning(
                "Slot %s of appointment %s was not booked at cancel time",
                slot_uid, appointment_uid,
            )

        record_notification(db, appointment, NotificationType.CANCELLATION)

        db.commit()
        db.refresh(appointment)

    logger.info("Cancelled appointment %s, released slot %s", appointment_uid, slot_uid)
    return appointment
