from datetime import datetime, timedelta
from typing import Generator
import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from canteen import config
from canteen.db import init_db, make_engine
from canteen.main import app, get_clock, get_db, get_mailer

ADMIN_KEY = "test-admin-key"


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class RecordingMailer:
    def __init__(self, delivers: bool = True):
        self.delivers = delivers
        self.sent = []

    def send(self, to: str, subject: str, body: str) -> bool:
        self.sent.append((to, subject, body))
        return self.delivers


@pytest.fixture(autouse=True)
def settings():
    # Deterministic configuration regardless of the developer's environment
    yield config.override(
        jwt_secret="test-secret",
        admin_key=ADMIN_KEY,
        token_ttl_days=7,
        pin_ttl_minutes=15,
        hash_pins=False,
        expose_test_pin=True,
        mail_host=None,
    )
    config.reset()


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 3, 1, 12, 0, 0))


@pytest.fixture
def mailer() -> RecordingMailer:
    # Degraded by default: records the message but reports it as not delivered
    return RecordingMailer(delivers=False)


@pytest.fixture
def admin_headers():
    return {"X-Admin-Key": ADMIN_KEY}


@pytest.fixture(scope="function")
def db_session() -> Generator:
    # Use in-memory SQLite with a single connection
    engine = make_engine("sqlite://", poolclass=StaticPool)
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
    init_db(engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def client(db_session, clock, mailer):
    # Override dependencies to use the same session, clock and mailer
    def override_get_db():
        try:
            yield db_session
        finally:
            pass
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_mailer] = lambda: mailer
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
