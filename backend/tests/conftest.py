from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from clinic_scheduler.db.session import InMemorySession, reset_session
from clinic_scheduler.models import Provider, Service
from clinic_scheduler.services.seed import seed_all


@pytest.fixture
def session() -> InMemorySession:
    return InMemorySession()


@pytest.fixture
def seeded(session) -> InMemorySession:
    seed_all(session)
    return session


@pytest.fixture
def providers(seeded) -> dict[str, int]:
    return {p.initials: p.id for p in seeded.all(Provider)}


@pytest.fixture
def services(seeded) -> dict[str, int]:
    return {s.name: s.id for s in seeded.all(Service)}


@pytest.fixture
def api_session() -> InMemorySession:
    session = reset_session()
    seed_all(session)
    return session


@pytest.fixture
def client(api_session) -> TestClient:
    from clinic_scheduler.main import app

    return TestClient(app)
