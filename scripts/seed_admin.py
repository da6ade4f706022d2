"""Provision an administrator account. Admins cannot self-register through the API."""

import argparse
import os

from app.core.database import SessionLocal, init_db
from app.models.user import User
from app.services.auth_service import AuthService


def upsert_admin(*, name: str, email: str, password: str, phone: str) -> User:
    db = SessionLocal()
    try:
        existing = db.query(User).filter(User.email == email.lower()).first()
        if existing:
            return existing
        return AuthService(db).create_admin(name=name, email=email, password=password, phone=phone)
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--name", default="Admin")
    parser.add_argument("--email", default=os.getenv("ADMIN_EMAIL", "admin@example.com"))
    parser.add_argument("--password", default=os.getenv("ADMIN_PASSWORD"))
    parser.add_argument("--phone", default="000-0000")
    args = parser.parse_args()

    if not args.password:
        parser.error("--password (or ADMIN_PASSWORD) is required")

    init_db()
    admin = upsert_admin(name=args.name, email=args.email, password=args.password, phone=args.phone)
    print("Seeded admin:", admin.user_uid, admin.email)
