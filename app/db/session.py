from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from app.core.config import settings, DB_TIMEOUT_SECONDS


def _engine_options(url: str) -> dict:
    if url.startswith("sqlite"):
        return {
            "connect_args": {
                "timeout": DB_TIMEOUT_SECONDS,
                "check_same_thread": False,
            },
        }

    return {
        "pool_pre_ping": True,
        "pool_timeout": DB_TIMEOUT_SECONDS,
        "connect_args": {
            "connect_timeout": DB_TIMEOUT_SECONDS,
            # bound every statement and row lock wait
            "options": (
                f"-c statement_timeout={DB_TIMEOUT_SECONDS * 1000} "
                f"-c lock_timeout={DB_TIMEOUT_SECONDS * 1000}"
            ),
        },
    }


engine = create_engine(
    settings.DATABASE_URL,
    **_engine_options(settings.DATABASE_URL),
)


if engine.dialect.name == "sqlite":
    # SQLite ignores ON DELETE rules unless asked per connection
    @event.listens_for(engine, "connect")
    def _enable_sqlite_fks(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


SessionLocal = sessionmaker(
    bind=engine,
    autoflush=False,
    expire_on_commit=False,
)


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
