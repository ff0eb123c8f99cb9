from datetime import date

import pytest
from sqlalchemy import create_engine, event, StaticPool
from sqlalchemy.orm import sessionmaker

from tripdetails.auth import hash_password
from tripdetails.context import get_capabilities
from tripdetails.database import Base, get_db
from tripdetails.main import app
from tripdetails.models import Driver, Plant, Trip, User, Vehicle
from tripdetails.services.schema_probe import SchemaCapabilityProbe

from fastapi.testclient import TestClient


def make_engine():
    """In-memory SQLite engine; StaticPool so all threads share the same connection."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, _):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    return engine


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh in-memory SQLite engine with the current schema for each test."""
    engine = make_engine()
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine):
    """Create a session bound to the test engine."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="function")
def caps(db_engine):
    return SchemaCapabilityProbe(db_engine).capabilities()


@pytest.fixture(scope="function")
def client(db_engine, caps):
    """FastAPI test client with overridden DB and capability dependencies.

    The app lifespan is not entered, so the production database is never probed.
    """
    def _override_get_db():
        session = sessionmaker(bind=db_engine)()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_capabilities] = lambda: caps
    yield TestClient(app)
    app.dependency_overrides.clear()


# --- Reference data ---

@pytest.fixture(scope="function")
def fleet(db_session):
    """Two plants, three vehicles, three drivers and two helpers."""
    north = Plant(name="North")
    south = Plant(name="South")
    db_session.add_all([north, south])
    db_session.flush()

    v1 = Vehicle(vehicle_no="TRK-001", plant_id=north.id)
    v2 = Vehicle(vehicle_no="TRK-002", plant_id=north.id)
    v3 = Vehicle(vehicle_no="TRK-003", plant_id=south.id)
    d1 = Driver(name="Alice")
    d2 = Driver(name="Bruno")
    d3 = Driver(name="Chen")
    h1 = Driver(name="Hana", role="helper")
    h2 = Driver(name="Igor", role="helper")
    db_session.add_all([v1, v2, v3, d1, d2, d3, h1, h2])
    db_session.commit()
    return {
        "north": north, "south": south,
        "v1": v1, "v2": v2, "v3": v3,
        "d1": d1, "d2": d2, "d3": d3,
        "h1": h1, "h2": h2,
    }


def add_trip(db, vehicle_id, start_km, end_km=None, start_date=date(2026, 3, 1), end_date=None):
    """Insert a trip row directly, bypassing the lifecycle rules."""
    trip = Trip(
        vehicle_id=vehicle_id,
        start_date=start_date,
        start_km=start_km,
        end_date=end_date or (start_date if end_km is not None else None),
        end_km=end_km,
        status="ended" if end_km is not None else "ongoing",
    )
    db.add(trip)
    db.commit()
    return trip


def trip_payload(fleet, **overrides) -> dict:
    payload = {
        "vehicle_id": fleet["v1"].id,
        "start_date": "2026-03-02",
        "start_km": 1000,
        "driver_ids": [fleet["d1"].id],
        "customer_names": ["Acme"],
    }
    payload.update(overrides)
    return payload


# --- Users ---

def _make_user(db, username, password, role, driver_id=None) -> User:
    user = User(
        username=username,
        full_name=username.title(),
        hashed_password=hash_password(password),
        role=role,
        driver_id=driver_id,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture(scope="function")
def admin_user(db_session) -> User:
    return _make_user(db_session, "testadmin", "admin123", "admin")


@pytest.fixture(scope="function")
def supervisor_user(db_session) -> User:
    return _make_user(db_session, "testsupervisor", "super123", "supervisor")


@pytest.fixture(scope="function")
def driver_user(db_session, fleet) -> User:
    """A driver-role user linked to driver 'Alice'."""
    return _make_user(db_session, "testdriver", "drive123", "driver", driver_id=fleet["d1"].id)


def get_auth_headers(client: TestClient, username: str, password: str) -> dict:
    """Login and return Authorization headers with Bearer token."""
    resp = client.post("/api/auth/login", json={"username": username, "password": password})
    assert resp.status_code == 200, f"Login failed for {username}: {resp.text}"
    token = resp.json()["access_token"]
    # The login cookie would take precedence over the header on later requests
    client.cookies.clear()
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(scope="function")
def admin_headers(client, admin_user) -> dict:
    return get_auth_headers(client, "testadmin", "admin123")


@pytest.fixture(scope="function")
def supervisor_headers(client, supervisor_user) -> dict:
    return get_auth_headers(client, "testsupervisor", "super123")


@pytest.fixture(scope="function")
def driver_headers(client, driver_user) -> dict:
    return get_auth_headers(client, "testdriver", "drive123")
