"""
Test settings loading from the environment.

Verifies that every key documented in .env.example maps onto a settings
field and that the queue/worker/database sections parse correctly.
"""
from __future__ import annotations

from pathlib import Path
import re

import pytest
from pydantic import ValidationError

from core.infrastructure.database.config import DatabaseSettings
from core.settings import AppSettings, QueueSettings, WorkerSettings, get_app_settings

ENV_EXAMPLE = Path(__file__).resolve().parents[1] / ".env.example"


def _parse_env_keys(env_path: Path) -> list[str]:
    keys: list[str] = []
    for line in env_path.read_text(encoding="utf-8").splitlines():
        s = line.strip()
        if not s or s.startswith("#") or "=" not in s:
            continue
        k = s.split("=", 1)[0].strip()
        if re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", k) and k not in keys:
            keys.append(k)
    return keys


def _env_names(model_cls) -> dict[str, str]:
    """
    Return map: ENV_NAME -> field_name for a settings class.
    """
    prefix = model_cls.model_config.get("env_prefix", "")
    names: dict[str, str] = {}
    for field_name, field in model_cls.model_fields.items():
        names[field.alias or f"{prefix}{field_name}".upper()] = field_name
    return names


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep the host environment out of these tests."""
    for cls in (QueueSettings, WorkerSettings, DatabaseSettings):
        for env_name in _env_names(cls):
            monkeypatch.delenv(env_name, raising=False)
    get_app_settings.cache_clear()
    yield
    get_app_settings.cache_clear()


def test_every_documented_env_key_is_mapped():
    keys = _parse_env_keys(ENV_EXAMPLE)

    env_map: dict[str, str] = {}
    for cls in (QueueSettings, WorkerSettings, DatabaseSettings):
        for env_name in _env_names(cls):
            if env_name in env_map:
                pytest.fail(f"Duplicate env name mapped twice: {env_name}")
            env_map[env_name] = cls.__name__

    missing = [k for k in keys if k not in env_map]
    assert not missing, f"Unmapped env keys: {missing}"


def test_queue_settings_defaults():
    settings = QueueSettings()

    assert settings.backend == "redis"
    assert settings.redis_url == "redis://localhost:6379/0"
    assert settings.concurrency_for("content-generation") == 3
    assert settings.concurrency_for("verification") == 10
    assert settings.lock_duration_ms == 900_000


def test_queue_settings_from_env(monkeypatch):
    monkeypatch.setenv("QUEUE_BACKEND", "memory")
    monkeypatch.setenv("REDIS_URL", "redis://cache:6380/2")
    monkeypatch.setenv("QUEUE_CONCURRENCY_VERIFICATION", "4")
    monkeypatch.setenv("QUEUE_RETRY_BACKOFF_SECONDS", "0.5")

    settings = QueueSettings()

    assert settings.backend == "memory"
    assert settings.redis_url == "redis://cache:6380/2"
    assert settings.concurrency_for("verification") == 4
    assert settings.retry_backoff_seconds == 0.5


def test_queue_settings_reject_zero_concurrency(monkeypatch):
    monkeypatch.setenv("QUEUE_CONCURRENCY_CMS_PUBLISHING", "0")

    with pytest.raises(ValidationError):
        QueueSettings()


def test_queue_settings_reject_unknown_backend(monkeypatch):
    monkeypatch.setenv("QUEUE_BACKEND", "kafka")

    with pytest.raises(ValidationError):
        QueueSettings()


def test_worker_credentials(monkeypatch):
    monkeypatch.setenv("OPENAI_API_KEY", "sk-test")

    settings = WorkerSettings()
    credentials = settings.credentials()

    assert credentials == {
        "OPENAI_API_KEY": "sk-test",
        "CMS_API_TOKEN": None,
        "GSC_SERVICE_ACCOUNT_JSON": None,
    }
    assert "sk-test" not in repr(settings)


def test_app_settings_aggregates_sections(monkeypatch):
    monkeypatch.setenv("DB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")

    settings = get_app_settings()

    assert isinstance(settings, AppSettings)
    assert settings.database.is_sqlite is True
    assert settings.queue.key_prefix == "seoagent:queue"
    assert get_app_settings() is settings
