import pytest
from pydantic import ValidationError

from app.config import Settings


def test_comma_separated_lists(monkeypatch):
    monkeypatch.setenv("WORKFLOW_SEED_EXTENSIONS", "com_content, com_users,")
    monkeypatch.setenv("CORS_ORIGINS", "http://a.test,http://b.test")
    loaded = Settings()
    assert loaded.workflow_seed_extensions == ["com_content", "com_users"]
    assert loaded.cors_origins == ["http://a.test", "http://b.test"]


def test_database_url_must_be_supported(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "mysql://root@localhost/db")
    with pytest.raises(ValidationError):
        Settings()


def test_api_prefix_is_normalized(monkeypatch):
    monkeypatch.setenv("API_V1_PREFIX", "/api/v2/")
    assert Settings().api_v1_prefix == "/api/v2"
