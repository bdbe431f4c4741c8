import os
import tempfile
from datetime import datetime, timedelta

_DB_DIR = tempfile.mkdtemp(prefix="studio-scheduling-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_DB_DIR, 'scheduling.db')}"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["ALGORITHM"] = "HS256"
os.environ["ADMIN_ROLE"] = "admin"
os.environ["NOTIFICATION_SERVICE_URL"] = ""

import pytest  # noqa: E402
from jose import jwt  # noqa: E402

from studio_scheduling import models  # noqa: E402,F401
from studio_scheduling.core.config import settings  # noqa: E402
from studio_scheduling.core.database import Base, SessionLocal, engine  # noqa: E402
from studio_scheduling.core.interval import Buffers, TimeWindow  # noqa: E402
from studio_scheduling.models.enums import EquipmentStatus  # noqa: E402
from studio_scheduling.models.equipment import Equipment  # noqa: E402
from studio_scheduling.models.room import Room  # noqa: E402
from studio_scheduling.models.staff_member import StaffMember  # noqa: E402
from studio_scheduling.services.availability_service import AvailabilityService  # noqa: E402
from studio_scheduling.services.booking_service import (  # noqa: E402
    BookingCandidate,
    BookingService,
    StaffSlot,
)
from studio_scheduling.services.equipment_ledger import EquipmentLedger  # noqa: E402

STUDIO_ID = 1


class FixedClock:
    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self) -> None:
        self.maintenance = []
        self.proposals = []

    def notify_maintenance_needed(self, equipment_id, reason):
        self.maintenance.append((equipment_id, reason))

    def notify_assignment_proposed(self, staff_user_id, booking_id, role=None):
        self.proposals.append((staff_user_id, booking_id, role))


def window(day: int, start_hour: float, end_hour: float, *, month: int = 1, year: int = 2024) -> TimeWindow:
    base = datetime(year, month, day)
    return TimeWindow(
        base + timedelta(hours=start_hour),
        base + timedelta(hours=end_hour),
    )


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 1, 1, 6, 0))


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def availability(clock):
    return AvailabilityService(SessionLocal, clock=clock)


@pytest.fixture
def booking_service(db, availability, notifier, clock):
    return BookingService(db, availability=availability, notifier=notifier, clock=clock)


@pytest.fixture
def ledger(db, notifier, clock):
    return EquipmentLedger(db, notifier=notifier, clock=clock)


def _persist(resource):
    session = SessionLocal()
    try:
        session.add(resource)
        session.commit()
        return resource.id
    finally:
        session.close()


@pytest.fixture
def make_staff():
    def factory(name="Alex", *, studio_id=STUDIO_ID, is_active=True):
        return _persist(StaffMember(studio_id=studio_id, name=name, is_active=is_active))

    return factory


@pytest.fixture
def make_room():
    def factory(name="Studio A", *, studio_id=STUDIO_ID, is_active=True):
        return _persist(Room(studio_id=studio_id, name=name, is_active=is_active))

    return factory


@pytest.fixture
def make_equipment():
    def factory(
        name="Canon R5",
        *,
        studio_id=STUDIO_ID,
        status=EquipmentStatus.AVAILABLE,
        condition="Good",
    ):
        return _persist(
            Equipment(
                studio_id=studio_id,
                name=name,
                category="camera",
                status=status,
                condition=condition,
            )
        )

    return factory


@pytest.fixture
def candidate():
    def factory(
        booking_window,
        *,
        staff=(),
        equipment=(),
        rooms=(),
        buffers=None,
        **extra,
    ):
        return BookingCandidate(
            studio_id=STUDIO_ID,
            title=extra.pop("title", "Portrait session"),
            window=booking_window,
            buffers=buffers or Buffers(),
            staff=[slot if isinstance(slot, StaffSlot) else StaffSlot(slot) for slot in staff],
            equipment_ids=list(equipment),
            room_ids=list(rooms),
            **extra,
        )

    return factory


def make_token(subject=1, role=None):
    claims = {"sub": str(subject)}
    if role is not None:
        claims["role"] = role
    return jwt.encode(claims, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


@pytest.fixture
def client(notifier):
    from fastapi.testclient import TestClient

    from studio_scheduling.dependencies import get_notifier
    from studio_scheduling.main import app

    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
