"""
Pytest fixtures and test configuration for dayjobs tests.
"""

import os
import secrets
from datetime import datetime, time, timedelta, timezone

import pytest

# Unique per run so tokens from elsewhere never validate
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

os.environ.setdefault("DAYJOBS_JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ.setdefault("DAYJOBS_RATE_LIMIT_ENABLED", "false")
os.environ.setdefault("DAYJOBS_SWEEPER_ENABLED", "false")
os.environ.pop("DAYJOBS_DATABASE_PATH", None)

from dayjobs.clock import FixedClock  # noqa: E402
from dayjobs.market.service import Marketplace  # noqa: E402
from dayjobs.market.sqlite import SQLiteJobRepository  # noqa: E402
from dayjobs.market.storage import InMemoryJobRepository  # noqa: E402

# Tuesday morning; "today" for every test unless a test moves the clock
NOW = datetime(2026, 3, 10, 9, 0, tzinfo=timezone.utc)
TODAY = NOW.date()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def memory_repo():
    return InMemoryJobRepository()


@pytest.fixture
def sqlite_repo(tmp_path):
    return SQLiteJobRepository(tmp_path / "market.db")


@pytest.fixture(params=["memory", "sqlite"])
def repository(request, tmp_path):
    """Each storage backend in turn."""
    if request.param == "memory":
        return InMemoryJobRepository()
    return SQLiteJobRepository(tmp_path / "market.db")


@pytest.fixture
def market(repository, clock):
    return Marketplace(repository=repository, clock=clock)


@pytest.fixture
def memory_market(memory_repo, clock):
    return Marketplace(repository=memory_repo, clock=clock)


def job_attributes(**overrides):
    """Valid create_job keyword arguments, service date today."""
    attributes = {
        "role": "Cook",
        "service_date": TODAY,
        "start_time": time(8, 0),
        "end_time": time(17, 0),
        "daily_rate": 150,
        "description": "Prep and line cooking for a lunch service",
        "benefits": ["meal", "transport"],
        "city": "Sao Paulo",
        "neighborhood": "Pinheiros",
        "company_name": "Bistro Uno",
    }
    attributes.update(overrides)
    return attributes


@pytest.fixture
def make_job():
    """Factory creating an open job through a marketplace."""

    def _make(market, poster_id="c1", **overrides):
        return market.create_job(poster_id, **job_attributes(**overrides))

    return _make


@pytest.fixture
def yesterday():
    return TODAY - timedelta(days=1)


@pytest.fixture
def tomorrow():
    return TODAY + timedelta(days=1)


# =============================================================================
# API fixtures
# =============================================================================


@pytest.fixture
def api_market(clock):
    """In-memory marketplace the API routes are pointed at."""
    return Marketplace(repository=InMemoryJobRepository(), clock=clock)


@pytest.fixture
def app(api_market):
    from dayjobs.api.database import get_marketplace
    from dayjobs.api.main import app as fastapi_app

    fastapi_app.dependency_overrides[get_marketplace] = lambda: api_market
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def client(app):
    """Create a test client."""
    from fastapi.testclient import TestClient

    with TestClient(app) as test_client:
        yield test_client


def _token(actor_id, role, **kwargs):
    from dayjobs.api.auth import create_access_token
    from dayjobs.api.config import get_settings

    return create_access_token(actor_id, role, get_settings(), **kwargs)


@pytest.fixture
def auth_headers():
    """Factory for bearer headers: auth_headers("c1", "company")."""

    def _headers(actor_id, role, **kwargs):
        return {"Authorization": f"Bearer {_token(actor_id, role, **kwargs)}"}

    return _headers


@pytest.fixture
def company_headers(auth_headers):
    return auth_headers("c1", "company", name="Bistro Uno")


@pytest.fixture
def worker_headers(auth_headers):
    return auth_headers("w1", "worker", name="Ana")


@pytest.fixture
def admin_headers(auth_headers):
    return auth_headers("ops", "company", is_admin=True)
