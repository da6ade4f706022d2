from sqlalchemy import Column, String, DateTime, Boolean, Enum as SQLEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship

from ..core.database import Base
from ..core.identifiers import new_user_uid
from ..core.security import UserRole

class User(Base):
    __tablename__ = "users"

    user_uid = Column(String(64), primary_key=True, default=new_user_uid)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    phone = Column(String(32), nullable=False)
    role = Column(
        SQLEnum(UserRole, values_callable=lambda roles: [role.value for role in roles]),
        nullable=False,
        default=UserRole.CUSTOMER,
    )
    is_active = Column(Boolean, default=True)
    last_login = Column(DateTime, nullable=True)

    # Timestamps
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # Relationships
    time_slots = relationship("TimeSlot", back_populates="admin")
    appointments = relationship("Appointment", back_populates="user")

    def __repr__(self):
        return f"<User(user_uid={self.user_uid}, email='{self.email}', role='{self.role}')>"
