import os

# Must be set before anything imports core.config
os.environ["ENV"] = "testing"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")

import json

import httpx
import pytest
from fastapi import BackgroundTasks
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from main import create_app
from core.database import Base
from services.courier_service import CourierAssignmentCoordinator, CourierClient
from services.location_service import LocationRelay
from services.notification_service import NotificationDispatcher, OrderEventEmitter
from services.order_service import OrderService
from utils.deps import get_courier_coordinator, get_db, get_notification_dispatcher
from tests.factories import COURIER_ID, OTHER_COURIER_ID, PENDING_COURIER_ID

# SYNC SQLite for testing (matches sync service layer)
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False}
)

TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine
)


@pytest.fixture
def session() -> Generator[Session, None, None]:
    """
    Creates a fresh, empty database for each test.
    """
    Base.metadata.create_all(bind=engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def session_factory(session):
    """Opens extra sessions on the same test database (simulates another replica)."""
    opened = []

    def factory() -> Session:
        db = TestingSessionLocal()
        opened.append(db)
        return db

    yield factory
    for db in opened:
        db.close()


@pytest.fixture
def courier_statuses():
    """Courier service fixture data; tests may mutate it."""
    return {
        COURIER_ID: "approved",
        OTHER_COURIER_ID: "approved",
        PENDING_COURIER_ID: "pending",
    }


@pytest.fixture
def courier_coordinator(courier_statuses):
    def handler(request: httpx.Request) -> httpx.Response:
        courier_id = request.url.path.rsplit("/", 1)[-1]
        if courier_id not in courier_statuses:
            return httpx.Response(404, json={"success": False, "errorCode": "NOT_FOUND"})
        return httpx.Response(200, json={"success": True, "data": {"id": courier_id, "status": courier_statuses[courier_id]}})

    http = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://courier.test/api")
    yield CourierAssignmentCoordinator(CourierClient(http))
    http.close()


@pytest.fixture
def sent_notifications():
    return []


@pytest.fixture
def notification_dispatcher(sent_notifications):
    def handler(request: httpx.Request) -> httpx.Response:
        sent_notifications.append(json.loads(request.content))
        return httpx.Response(202, json={"success": True})

    http = httpx.Client(transport=httpx.MockTransport(handler), base_url="http://notify.test/api")
    yield NotificationDispatcher(http, enabled=True, max_retries=3, backoff_seconds=0, sleep=lambda _: None)
    http.close()


@pytest.fixture
def order_service(session, courier_coordinator, notification_dispatcher):
    """OrderService with events dispatched inline, as a script would use it."""
    return OrderService(
        session,
        coordinator=courier_coordinator,
        events=OrderEventEmitter(notification_dispatcher)
    )


@pytest.fixture
def background_tasks():
    return BackgroundTasks()


@pytest.fixture
def app(session, courier_coordinator, notification_dispatcher):
    application = create_app()
    application.state.location_relay = LocationRelay(persistence_enabled=True, history_limit=50)

    def override_get_db():
        try:
            yield session
        finally:
            pass  # Session cleanup handled by session fixture

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_courier_coordinator] = lambda: courier_coordinator
    application.dependency_overrides[get_notification_dispatcher] = lambda: notification_dispatcher
    yield application
    application.dependency_overrides.clear()


@pytest.fixture
async def client(app):
    """
    Yields an HTTP client that interacts with the app using the test database.
    The client is async (for FastAPI), but the DB session is sync.
    """
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac
