import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.database import apply_lock_timeout
from ..core.exceptions import ConflictError, NotFoundError, StorageFailure
from ..models.time_slot import TimeSlot, AvailabilityStatus
from ..models.user import User
from ..schemas.time_slot import TimeSlotCreate, TimeSlotUpdate

logger = logging.getLogger(__name__)

class TimeSlotService:
    def __init__(self, db: Session):
        self.db = db

    def list_available(self, slot_date: date) -> List[TimeSlot]:
        """Bookable slots on the given date."""
        return self.db.query(TimeSlot).filter(
            TimeSlot.slot_date == slot_date,
            TimeSlot.availability_status == AvailabilityStatus.AVAILABLE
        ).order_by(TimeSlot.start_time).all()

    def list_for_admin(self, admin: User, slot_date: Optional[date] = None) -> List[TimeSlot]:
        """Slots owned by an admin, optionally restricted to one date."""
        query = self.db.query(TimeSlot).filter(TimeSlot.admin_uid == admin.user_uid)
        if slot_date:
            query = query.filter(TimeSlot.slot_date == slot_date)
        return query.order_by(TimeSlot.slot_date, TimeSlot.start_time).all()

    def create_slot(self, admin: User, slot_data: TimeSlotCreate) -> TimeSlot:
        slot = TimeSlot(
            admin_uid=admin.user_uid,
            slot_date=slot_data.slot_date,
            start_time=slot_data.start_time,
            end_time=slot_data.end_time,
            availability_status=AvailabilityStatus.AVAILABLE
        )

        self.db.add(slot)
        self._commit("create time slot")
        self.db.refresh(slot)

        logger.info("Admin %s created time slot %s", admin.user_uid, slot.time_slot_uid)
        return slot

    def update_slot(self, admin: User, time_slot_uid: str, slot_data: TimeSlotUpdate) -> TimeSlot:
        changes = slot_data.model_dump(exclude_unset=True, exclude_none=True)
        if not changes:
            return self._get_owned_slot(admin, time_slot_uid)

        apply_lock_timeout(self.db)
        # Held until commit so a booking cannot claim the slot mid-edit
        slot = self._get_owned_slot(admin, time_slot_uid, lock=True)

        if slot.availability_status != AvailabilityStatus.AVAILABLE:
            self.db.rollback()
            raise ConflictError("Only available time slots can be changed")

        start_time = changes.get("start_time", slot.start_time)
        end_time = changes.get("end_time", slot.end_time)
        if end_time <= start_time:
            self.db.rollback()
            raise ConflictError("end_time must be after start_time")

        for field, value in changes.items():
            setattr(slot, field, value)

        self._commit("update time slot")
        self.db.refresh(slot)
        return slot

    def delete_slot(self, admin: User, time_slot_uid: str) -> None:
        """Delete an admin's slot; booked or locked slots are kept."""
        apply_lock_timeout(self.db)
        slot = self._get_owned_slot(admin, time_slot_uid, lock=True)

        if slot.availability_status != AvailabilityStatus.AVAILABLE:
            self.db.rollback()
            raise ConflictError("Time slot cannot be deleted while it is booked")

        if slot.appointments:
            # Released slots stay referenced by cancelled/rescheduled history
            self.db.rollback()
            raise ConflictError("Time slot has appointment history and cannot be deleted")

        self.db.delete(slot)
        self._commit("delete time slot")
        logger.info("Admin %s deleted time slot %s", admin.user_uid, time_slot_uid)

    def _get_owned_slot(self, admin: User, time_slot_uid: str, lock: bool = False) -> TimeSlot:
        query = self.db.query(TimeSlot).filter(
            TimeSlot.time_slot_uid == time_slot_uid,
            TimeSlot.admin_uid == admin.user_uid
        )
        if lock:
            query = query.with_for_update().populate_existing()

        slot = query.first()
        if not slot:
            self.db.rollback()
            raise NotFoundError("Time slot not found")
        return slot

    def _commit(self, action: str) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            logger.exception("Failed to %s", action)
            raise StorageFailure() from exc
