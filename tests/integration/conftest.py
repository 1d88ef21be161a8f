import pytest
from fastapi.testclient import TestClient

from app.core.security import create_access_token
from app.main import app


def auth_header(user_id: str, role: str) -> dict:
    token = create_access_token({"sub": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client(services):
    with TestClient(app) as test_client:
        # Swap the lifespan-built container for the seeded test one
        app.state.services = services
        yield test_client


@pytest.fixture
def passenger_headers():
    return auth_header("passenger-1", "passenger")


@pytest.fixture
def driver_headers():
    return auth_header("driver-verified", "driver")


@pytest.fixture
def headers_for():
    return auth_header
