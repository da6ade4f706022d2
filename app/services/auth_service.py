from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from fastapi import HTTPException, status
from datetime import datetime, timezone
import logging

from ..models.user import User
from ..core.security import (
    verify_password, get_password_hash, create_user_token, UserRole
)
from ..schemas.auth import (
    UserLogin, UserRegister, TokenResponse, UserResponse, ChangePassword
)

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session):
        self.db = db

    def register_user(self, user_data: UserRegister) -> User:
        """Register a new customer account."""
        email = str(user_data.email).lower()

        existing_user = self.db.query(User).filter(User.email == email).first()
        if existing_user:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )

        new_user = User(
            name=user_data.name,
            email=email,
            password_hash=get_password_hash(user_data.password),
            phone=user_data.phone,
            role=UserRole.CUSTOMER,
            is_active=True
        )

        self.db.add(new_user)
        try:
            self.db.commit()
        except IntegrityError:
            # Lost a race with a concurrent registration of the same email
            self.db.rollback()
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Email already registered"
            )
        self.db.refresh(new_user)

        logger.info("Registered user %s", new_user.user_uid)
        return new_user

    def authenticate_user(self, login_data: UserLogin) -> TokenResponse:
        """Authenticate user and return an access token."""
        user = self.db.query(User).filter(
            User.email == str(login_data.email).lower()
        ).first()

        if not user or not verify_password(login_data.password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Invalid credentials"
            )

        if not user.is_active:
            raise HTTPException(
                status_code=status.HTTP_401_UNAUTHORIZED,
                detail="Account is deactivated"
            )

        user.last_login = datetime.now(timezone.utc)
        self.db.commit()
        self.db.refresh(user)

        token = create_user_token(user.user_uid, user.email, user.role)

        return TokenResponse(
            access_token=token.access_token,
            token_type=token.token_type,
            expires_in=token.expires_in,
            user=UserResponse.model_validate(user)
        )

    def change_password(self, user: User, password_data: ChangePassword) -> None:
        if not verify_password(password_data.current_password, user.password_hash):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Current password is incorrect"
            )

        user.password_hash = get_password_hash(password_data.new_password)
        self.db.commit()

    def create_admin(self, name: str, email: str, password: str, phone: str) -> User:
        """Provision an administrator account (admins cannot self-register)."""
        admin = User(
            name=name,
            email=email.lower(),
            password_hash=get_password_hash(password),
            phone=phone,
            role=UserRole.ADMIN,
            is_active=True
        )
        self.db.add(admin)
        self.db.commit()
        self.db.refresh(admin)

        logger.info("Provisioned admin %s", admin.user_uid)
        return admin
