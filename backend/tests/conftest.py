"""Pytest fixtures — file-backed SQLite database, fresh for every test."""
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from app.database import Base, get_db
from app.main import app
from app.security import create_access_token, hash_password

# Import all models so they register with Base.metadata
from app.models.user import Feature, User, UserPermission, UserRole  # noqa: F401
from app.models.event import Event                                   # noqa: F401
from app.models.accreditation import Accreditation, Vehicle          # noqa: F401
from app.models.zone import VehicleTimeSlot, ZoneConfig, ZoneMovement  # noqa: F401
from app.models.history import AccreditationHistory, AccreditationHistoryArchive  # noqa: F401
from app.models.chat import ChatMessage                              # noqa: F401

SQLITE_URL = "sqlite:///./test.db"


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    # Enable WAL mode for better concurrency
    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def db(db_engine):
    """Yield a database session bound to the test engine."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def client(db_engine):
    """FastAPI TestClient with the database dependency overridden to use SQLite."""
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)

    def _override_get_db():
        session = TestingSession()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers: users, tokens, zones, accreditations
# ---------------------------------------------------------------------------
def create_test_user(
    db,
    email: str = "agent@example.com",
    name: str = "Agent",
    role: UserRole = UserRole.USER,
    permissions: dict = None,
    password: str = "password123",
    is_active: bool = True,
) -> User:
    """Insert a user; ``permissions`` maps Feature -> "read" | "write"."""
    user = User(
        name=name,
        email=email,
        password_hash=hash_password(password),
        role=role,
        is_active=is_active,
    )
    for feature, mode in (permissions or {}).items():
        user.permissions.append(UserPermission(feature=feature, can_read=True, can_write=(mode == "write")))
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


@pytest.fixture
def admin(db) -> User:
    return create_test_user(db, email="root@example.com", name="Root", role=UserRole.SUPER_ADMIN)


@pytest.fixture
def admin_headers(admin) -> dict:
    return auth_headers(admin)


@pytest.fixture
def agent(db) -> User:
    """A logistics agent with write access to the list and zones, no archives."""
    return create_test_user(
        db,
        permissions={Feature.LISTE: "write", Feature.GESTION_ZONES: "write"},
    )


@pytest.fixture
def agent_headers(agent) -> dict:
    return auth_headers(agent)


def create_test_zone(db, zone: str = "PALAIS", label: str = "Palais des Festivals", is_active: bool = True) -> ZoneConfig:
    config = ZoneConfig(
        zone=zone,
        label=label,
        address="1 Boulevard de la Croisette",
        latitude=43.5513,
        longitude=7.0174,
        is_active=is_active,
    )
    db.add(config)
    db.commit()
    db.refresh(config)
    return config


def vehicle_payload(**overrides) -> dict:
    payload = {
        "plate": "AB-123-CD",
        "size": "PORTEUR",
        "phoneCode": "+33",
        "phoneNumber": "612345678",
        "date": "2026-05-12",
        "time": "08:00",
        "city": "Nice",
        "unloading": ["rear"],
    }
    payload.update(overrides)
    return payload


def accreditation_payload(**overrides) -> dict:
    payload = {
        "company": "Acme",
        "stand": "B12",
        "unloading": "Quai 3",
        "event": "festival-2026",
        "message": "",
        "consent": True,
        "vehicles": [vehicle_payload()],
    }
    payload.update(overrides)
    return payload


def create_test_accreditation(client: TestClient, **overrides) -> dict:
    """Helper — POST /api/accreditations (public) and return response JSON."""
    resp = client.post("/api/accreditations", json=accreditation_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()
