import os

# Must be set before hotel_pms.database is imported: keeps the app engine off disk
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from datetime import date  # noqa: E402
from typing import Optional  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

from hotel_pms.database import get_session  # noqa: E402
from hotel_pms.main import app  # noqa: E402

TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(name="engine")
def engine_fixture():
    """Fresh in-memory database per test

    StaticPool + check_same_thread=False so every session (including the
    TestClient's worker thread) sees the same connection.
    """
    # Import all models to ensure they're registered BEFORE create_all
    from hotel_pms.models.booking import Booking  # noqa: F401
    from hotel_pms.models.calendar_conflict import CalendarConflict  # noqa: F401
    from hotel_pms.models.conflict_detection_run import ConflictDetectionRun  # noqa: F401
    from hotel_pms.models.ota_platform import OtaPlatform  # noqa: F401
    from hotel_pms.models.property import Property  # noqa: F401
    from hotel_pms.models.room import Room  # noqa: F401

    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="client")
def client_fixture(engine):
    """Test client whose get_session dependency uses the test engine

    Override MUST be set BEFORE TestClient() so the app never touches its
    own engine.
    """

    def override_get_session():
        with Session(engine) as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    with TestClient(app) as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
def hotel(session):
    """A property with rooms 101 (2000/night), 102 (1500/night) and 201 (no rate)"""
    from hotel_pms.models.property import Property
    from hotel_pms.models.room import Room

    prop = Property(name="Seaside Inn")
    session.add(prop)
    session.flush()
    session.add(Room(property_id=prop.id, room_no="101", room_type="double", price_per_night=2000))
    session.add(Room(property_id=prop.id, room_no="102", room_type="single", price_per_night=1500))
    session.add(Room(property_id=prop.id, room_no="201", room_type="suite", price_per_night=None))
    session.commit()
    session.refresh(prop)
    return prop


@pytest.fixture
def add_booking(session):
    """Factory: add_booking(property_id, room_no, check_in, check_out, **fields) -> Booking"""
    from hotel_pms.models.booking import Booking

    def _add(
        property_id: int,
        room_no: Optional[str],
        check_in: date,
        check_out: date,
        **fields,
    ) -> Booking:
        fields.setdefault("guest_name", "Guest")
        fields.setdefault("total_amount", 1000.0)
        booking = Booking(property_id=property_id, room_no=room_no, check_in=check_in, check_out=check_out, **fields)
        session.add(booking)
        session.commit()
        session.refresh(booking)
        return booking

    return _add
