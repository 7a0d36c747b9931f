import pytest
from fastapi.testclient import TestClient

from fakes import FakeSupabase
from src.db import get_supabase, get_supabase_provider
from src.main import app
from src.observability import reset_metrics


@pytest.fixture(autouse=True)
def _reset_metrics():
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def fake_db():
    db = FakeSupabase()
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_supabase_provider] = lambda: (lambda: db)
    yield db
    app.dependency_overrides.clear()


@pytest.fixture
def client():
    return TestClient(app)
