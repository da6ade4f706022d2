from sqlalchemy import create_engine, text
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from typing import Generator
import time
import redis
from .config import settings

def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        # SQLite has no row locks; requests still share one file between threads
        return {"connect_args": {"check_same_thread": False, "timeout": 30}}
    return {
        "pool_size": 5,
        "max_overflow": 10,
        "pool_timeout": 30,
        "pool_recycle": 1800,  # Recycle connections after 30 minutes
        "pool_pre_ping": True,
    }

engine = create_engine(settings.get_database_url, **_engine_options(settings.get_database_url))

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()

# Redis setup - in-process store for testing
if settings.TESTING:
    class RedisMock:
        def __init__(self):
            self.data = {}
            self.expiry = {}

        def _purge(self, key):
            expires_at = self.expiry.get(key)
            if expires_at is not None and expires_at <= time.monotonic():
                self.data.pop(key, None)
                self.expiry.pop(key, None)

        def get(self, key):
            self._purge(key)
            return self.data.get(key)

        def incr(self, key):
            self._purge(key)
            self.data[key] = str(int(self.data.get(key, "0")) + 1)
            return int(self.data[key])

        def expire(self, key, seconds):
            if key not in self.data:
                return False
            self.expiry[key] = time.monotonic() + seconds
            return True

        def delete(self, key):
            self.expiry.pop(key, None)
            return 1 if self.data.pop(key, None) is not None else 0

        def flushall(self):
            self.data.clear()
            self.expiry.clear()
            return True

    redis_client = RedisMock()
else:
    redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)

# Database dependency
def get_db() -> Generator[Session, None, None]:
    """Yield one session per request; the connection goes back to the pool on every exit path."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

# Redis dependency
def get_redis():
    """Get Redis client."""
    return redis_client

def apply_lock_timeout(db: Session) -> None:
    """Bound row-lock waits for the rest of the current transaction.

    Only PostgreSQL honours ``SET LOCAL lock_timeout``; other dialects rely on
    their own busy timeout.
    """
    if settings.LOCK_TIMEOUT_MS <= 0:
        return
    if db.get_bind().dialect.name != "postgresql":
        return
    db.execute(text(f"SET LOCAL lock_timeout = {int(settings.LOCK_TIMEOUT_MS)}"))

# Database initialization
def init_db():
    """Initialize database tables."""
    # Import models so they register with the metadata
    from .. import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
