import os
import sys
from pathlib import Path

import pytest

# Add project root to Python path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

# Set testing environment variables before the app is imported
os.environ["TESTING"] = "1"
os.environ.setdefault("TEST_DATABASE_URL", "sqlite:///./test.db")

from fastapi.testclient import TestClient  # noqa: E402

from app.main import app  # noqa: E402
from app.core.database import Base, SessionLocal, engine, get_db, get_redis  # noqa: E402
from app.core.security import UserRole  # noqa: E402

from tests.factories import create_user  # noqa: E402

def override_get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    Base.metadata.create_all(bind=engine)
    get_redis().flushall()
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def db(test_db):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        yield test_client

@pytest.fixture
def admin_user(db):
    return create_user(db, "admin@example.com", role=UserRole.ADMIN, name="Admin")

@pytest.fixture
def customer(db):
    return create_user(db, "alice@example.com", name="Alice")

@pytest.fixture
def other_customer(db):
    return create_user(db, "bob@example.com", name="Bob")
