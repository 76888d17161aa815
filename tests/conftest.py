import os

# must be set before clinic_billing.core.config builds its settings
os.environ.setdefault("DATABASE_URL", "sqlite://")

import itertools

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from clinic_billing.db.base import Base
from clinic_billing.models import Patient  # noqa: F401  (registers tables)
from clinic_billing.schemas.patient import PatientCreate
from clinic_billing.services.patient_service import create_patient

_phones = itertools.count(5550000001)


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        future=True,
    )
    Base.metadata.create_all(bind=eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_patient(db):
    """Register a patient the way the front desk does (zero balances)."""

    def _make(name="Jane Roe", **overrides):
        n = next(_phones)
        data = {
            "name": name,
            "phone": str(n),
            "email": f"patient{n}@example.com",
            "address": "42 Harbour Street, Springfield",
            "services": "Consultation",
        }
        data.update(overrides)
        return create_patient(db, PatientCreate(**data))

    return _make


@pytest.fixture
def client(session_factory):
    from fastapi.testclient import TestClient

    from clinic_billing.api.deps import get_db
    from clinic_billing.main import app

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    # no context manager: skip the lifespan hook that creates tables on the real engine
    yield TestClient(app)
    app.dependency_overrides.clear()
