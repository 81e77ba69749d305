"""
Shared fixtures. The environment is set before any app module is imported:
a throwaway SQLite database, upload and log directories, and a JWT secret.
The AI gateway is never reached; endpoint tests talk to FakeGateway.
"""
import os
import tempfile

_workdir = tempfile.mkdtemp(prefix="onquiz-tests-")
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["SQLALCHEMY_DATABASE_URL"] = f"sqlite:///{os.path.join(_workdir, 'test.db')}"
os.environ["UPLOAD_DIR"] = os.path.join(_workdir, "uploads")
os.environ["LOG_DIR"] = os.path.join(_workdir, "logs")
os.environ["AI_API_KEY"] = "test-key"

import pytest
from fastapi.testclient import TestClient

from app.db.models_registry import Base
from app.db.session import SessionLocal, engine
from app.main import app
from app.services.ai_text_service import get_ai_service
from app.services.quiz_generation import registry

from fakes import FakeGateway


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
def gateway():
    fake = FakeGateway()
    app.dependency_overrides[get_ai_service] = fake.service
    yield fake
    app.dependency_overrides.pop(get_ai_service, None)


@pytest.fixture
def client(gateway):
    with TestClient(app) as test_client:
        yield test_client
    registry.clear()


def signup(client, email, job_title="사원", department="개발팀", name=None, password="secret123"):
    response = client.post(
        "/api/v1/auth/signup",
        json={
            "email": email,
            "password": password,
            "name": name or email.split("@")[0],
            "department": department,
            "job_title": job_title,
        },
    )
    assert response.status_code == 201, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
def register(client):
    """Signs a user up and returns their auth headers."""

    def _register(email, job_title="사원", department="개발팀", name=None):
        return signup(client, email, job_title=job_title, department=department, name=name)

    return _register


@pytest.fixture
def owner(register):
    """First user of acme.com; becomes super_admin."""
    return register("owner@acme.com", job_title="이사", department="경영지원팀")
