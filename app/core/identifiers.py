import secrets
import string
import uuid

from .config import settings

USER_PREFIX = "user"
TIME_SLOT_PREFIX = "ts"
APPOINTMENT_PREFIX = "apt"
NOTIFICATION_PREFIX = "enot"

BOOKING_REFERENCE_PREFIX = "BR"
_REFERENCE_ALPHABET = string.ascii_uppercase + string.digits

def generate_id(prefix: str) -> str:
    """Opaque globally-unique id tagged with the entity kind, e.g. ``apt_<uuid4>``."""
    return f"{prefix}_{uuid.uuid4()}"

def new_user_uid() -> str:
    return generate_id(USER_PREFIX)

def new_time_slot_uid() -> str:
    return generate_id(TIME_SLOT_PREFIX)

def new_appointment_uid() -> str:
    return generate_id(APPOINTMENT_PREFIX)

def new_notification_uid() -> str:
    return generate_id(NOTIFICATION_PREFIX)

def generate_booking_reference(length: int = None) -> str:
    """Human-facing booking code. Uniqueness is enforced by the appointments table."""
    length = length or settings.BOOKING_REFERENCE_LENGTH
    code = "".join(secrets.choice(_REFERENCE_ALPHABET) for _ in range(length))
    return f"{BOOKING_REFERENCE_PREFIX}{code}"
