import os
from pathlib import Path
from typing import Generator

from dotenv import load_dotenv
from sqlalchemy.engine import Engine
from sqlmodel import Session, SQLModel, create_engine

load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./hotel_pms.db")

_is_sqlite = DATABASE_URL.startswith("sqlite")
_connect_args = {"check_same_thread": False} if _is_sqlite else {}
_echo = os.getenv("SQL_ECHO", "false").lower() in ("true", "1", "yes")

if _is_sqlite and ":memory:" not in DATABASE_URL:
    db_path = DATABASE_URL.replace("sqlite:///", "", 1)
    Path(db_path).parent.mkdir(parents=True, exist_ok=True)

engine: Engine = create_engine(
    DATABASE_URL,
    echo=_echo,
    connect_args=_connect_args,
)


def get_session() -> Generator[Session, None, None]:
    """Get database session"""
    with Session(engine) as session:
        yield session


def new_session() -> Session:
    """Standalone session for background jobs (caller closes it)."""
    return Session(engine)


def init_db() -> None:
    """Initialize database - create all tables"""
    # Import all models to ensure they're registered with SQLModel metadata
    from hotel_pms.models.booking import Booking  # noqa: F401
    from hotel_pms.models.calendar_conflict import CalendarConflict  # noqa: F401
    from hotel_pms.models.conflict_detection_run import ConflictDetectionRun  # noqa: F401
    from hotel_pms.models.ota_platform import OtaPlatform  # noqa: F401
    from hotel_pms.models.property import Property  # noqa: F401
    from hotel_pms.models.room import Room  # noqa: F401

    SQLModel.metadata.create_all(engine)
