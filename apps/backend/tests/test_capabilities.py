import os
import pytest
from fastapi.testclient import TestClient


@pytest.fixture
def client():
    from main import app
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_env():
    env_vars = [
        "SUPABASE_DB_URL",
        "DATABASE_URL",
        "OPENROUTER_API_KEY",
        "OPENAI_API_KEY",
        "SCRAPER_DISABLE_SCHEDULER",
    ]
    saved = {var: os.environ.pop(var) for var in env_vars if var in os.environ}
    yield
    os.environ.update(saved)


def test_capabilities_endpoint_returns_correct_shape(client):
    response = client.get("/api/capabilities")

    assert response.status_code == 200
    data = response.json()
    assert set(data) == {"env", "queue"}
    assert data["env"]["SUPABASE_DB_URL"] is False
    assert set(data["queue"]) == {"running", "completed", "failed"}


def test_capabilities_reports_env_presence(client, monkeypatch):
    monkeypatch.setenv("OPENROUTER_API_KEY", "test-key")

    data = client.get("/api/capabilities").json()

    assert data["env"]["OPENROUTER_API_KEY"] is True
    assert data["env"]["OPENAI_API_KEY"] is False


def test_healthz_red_without_database(client):
    data = client.get("/api/healthz").json()

    assert data["status"] == "red"
    assert data["components"] == {"db": False, "ai": False, "scheduler": True}


def test_healthz_scheduler_flag(client, monkeypatch):
    monkeypatch.setenv("SCRAPER_DISABLE_SCHEDULER", "true")
    monkeypatch.setenv("OPENAI_API_KEY", "test-key")

    data = client.get("/api/healthz").json()

    assert data["components"]["scheduler"] is False
    assert data["components"]["ai"] is True
    assert data["status"] == "red"


def test_settings_from_env(monkeypatch):
    from app.config import ScraperSettings

    monkeypatch.setenv("SCRAPER_ENV", "DEV")
    monkeypatch.setenv("SCRAPER_DETAIL_TIMEOUT", "9")

    settings = ScraperSettings.from_env()

    assert settings.is_dev is True
    assert settings.detail_timeout == 9.0


def test_settings_default_to_production(monkeypatch):
    from app.config import ScraperSettings

    monkeypatch.delenv("SCRAPER_ENV", raising=False)

    assert ScraperSettings.from_env().is_dev is False
