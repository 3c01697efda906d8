"""
Global test fixtures for pytest.

Settings are read at import time, so the environment is pointed at an
in-memory SQLite database before anything from the package is imported.
"""
import os

os.environ.setdefault("SQLALCHEMY_DATABASE_URI", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("VALID_API_KEYS", "test-inbound-key")
os.environ.setdefault("REQUIRE_API_KEY", "true")

from datetime import date
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from healthydialogue import models
from healthydialogue.api import deps
from healthydialogue.core import security
from healthydialogue.db.base import Base
from healthydialogue.main import app
from healthydialogue.models.patient import EnrollmentStatus

INBOUND_API_KEY = "test-inbound-key"

engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


# ============================================================================
# Database
# ============================================================================

@pytest.fixture
def db():
    """Session on a freshly created schema"""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def client(db):
    """API client whose requests share the test database"""
    def override_get_db():
        session = TestingSessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[deps.get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


# ============================================================================
# Model factories
# ============================================================================

class Factory:
    """Creates committed directory records with unique identifiers"""

    def __init__(self, session):
        self.db = session
        self._seq = count(1)

    def _save(self, obj):
        self.db.add(obj)
        self.db.commit()
        return obj

    def doctor(self, **kwargs):
        n = next(self._seq)
        defaults = dict(
            name=f"Dr. Test {n}",
            email=f"doctor{n}@test.com",
            phone=f"+1555000{n:04d}",
            textit_uuid=f"doctor-uuid-{n}",
        )
        defaults.update(kwargs)
        return self._save(models.Doctor(**defaults))

    def patient(self, **kwargs):
        n = next(self._seq)
        defaults = dict(name=f"Patient {n}", phone=f"+1666000{n:04d}")
        defaults.update(kwargs)
        return self._save(models.Patient(**defaults))

    def program(self, **kwargs):
        n = next(self._seq)
        defaults = dict(name=f"Program {n}", icon="heart", color="#FF0000")
        defaults.update(kwargs)
        return self._save(models.TherapyProgram(**defaults))

    def enrollment(self, doctor, patient, program=None, status=EnrollmentStatus.ACTIVE, **kwargs):
        program = program or self.program()
        return self._save(models.PatientProgramEnrollment(
            doctor_id=doctor.id,
            patient_id=patient.id,
            therapy_program_id=program.id,
            status=status,
            start_date=kwargs.pop("start_date", date(2024, 1, 1)),
            **kwargs,
        ))


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def doctor(factory):
    return factory.doctor()


@pytest.fixture
def patient(factory):
    return factory.patient(name="Alice Example")


@pytest.fixture
def enrollment(factory, doctor, patient):
    return factory.enrollment(doctor, patient, factory.program(name="Diabetes Care"))


@pytest.fixture
def headers_for():
    """Bearer headers for any doctor"""
    def _headers(doctor):
        return {"Authorization": f"Bearer {security.create_access_token(doctor.id)}"}
    return _headers


@pytest.fixture
def auth_headers(doctor, headers_for):
    return headers_for(doctor)


@pytest.fixture
def inbound_headers():
    return {"X-API-Key": INBOUND_API_KEY}
