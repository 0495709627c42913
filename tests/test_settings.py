"""Tests for social_backend.settings.Settings behavior."""

from typing import Any

import pytest
from pydantic import ValidationError

from social_backend.settings import Settings, get_settings


def test_settings_defaults(monkeypatch: pytest.MonkeyPatch):
    """Defaults should be stable even if external env or .env sets values.

    We explicitly delete both upper & lower case variants and bypass .env loading
    by passing `_env_file=None`.
    """
    for var in [
        "SOCIAL_BACKEND_HOST",
        "SOCIAL_BACKEND_PORT",
        "SOCIAL_BACKEND_LOG_LEVEL",
        "SOCIAL_BACKEND_RELOAD",
        "SOCIAL_BACKEND_EXCHANGE_DURABLE",
        "SOCIAL_BACKEND_MAX_RECONNECT_ATTEMPTS",
        "SOCIAL_BACKEND_RECONNECT_DELAY",
        "SOCIAL_BACKEND_SERVICES",
        "social_backend_host",
        "social_backend_port",
    ]:
        monkeypatch.delenv(var, raising=False)
    s = Settings(_env_file=None)  # ignore project .env file if present
    assert s.host == "0.0.0.0"
    assert s.port == 8080
    assert s.log_level == "INFO"
    assert s.reload is False
    assert s.services is None
    assert s.exchange_durable is False
    assert s.max_reconnect_attempts == 10
    assert s.reconnect_delay == 5.0
    assert s.publisher_confirms is False
    assert s.handler_failure_policy == "dead_letter"
    assert s.post_cache_ttl == 3600
    assert s.post_list_cache_ttl == 300


def test_env_overrides(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("SOCIAL_BACKEND_HOST", "127.0.0.1")
    monkeypatch.setenv("SOCIAL_BACKEND_PORT", "9090")
    monkeypatch.setenv("SOCIAL_BACKEND_RABBITMQ_URL", "amqp://u:p@rabbit:5672/")
    monkeypatch.setenv("SOCIAL_BACKEND_EXCHANGE_DURABLE", "true")
    monkeypatch.setenv("SOCIAL_BACKEND_SERVICES", "search,media")
    s = Settings(_env_file=None)  # new instance reads env
    assert s.host == "127.0.0.1"
    assert s.port == 9090
    assert s.rabbitmq_url == "amqp://u:p@rabbit:5672/"
    assert s.exchange_durable is True
    assert s.services == "search,media"


def test_case_insensitive_env_name(monkeypatch: pytest.MonkeyPatch):
    # lower-case variable name should still be picked up due to case_sensitive=False
    monkeypatch.setenv("social_backend_host", "10.10.10.10")  # type: ignore[arg-type]
    s = Settings(_env_file=None)
    assert s.host == "10.10.10.10"


def test_get_settings_singleton():
    a = get_settings()
    b = get_settings()
    assert a is b


def test_get_settings_cache_not_affected_by_new_env(monkeypatch: pytest.MonkeyPatch):
    # Ensure cache stability: first call caches values
    first = get_settings()
    original_host = first.host
    monkeypatch.setenv("SOCIAL_BACKEND_HOST", "203.0.113.5")
    second = get_settings()
    assert second is first
    assert second.host == original_host  # cache not invalidated


@pytest.mark.parametrize(
    "override,expected",
    [
        ({"host": "1.1.1.1"}, "1.1.1.1"),
        ({"port": 1234}, 1234),
        ({"log_level": "debug"}, "DEBUG"),
        ({"handler_failure_policy": "REQUEUE"}, "requeue"),
    ],
)
def test_direct_instantiation_with_overrides(override: dict[str, Any], expected: Any):
    s = Settings(_env_file=None, **override)
    # pick first and assert value
    key = next(iter(override.keys()))
    assert getattr(s, key) == expected


def test_failure_policy_accepts_dashes():
    s = Settings(_env_file=None, handler_failure_policy="Dead-Letter")
    assert s.handler_failure_policy == "dead_letter"


def test_invalid_log_level():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, log_level="chatty")


def test_negative_retry_budget_is_rejected():
    with pytest.raises(ValidationError):
        Settings(_env_file=None, max_reconnect_attempts=-1)


def test_model_dump_contains_all_core_fields():
    s = Settings(_env_file=None)
    data = s.model_dump()
    for field in ["host", "port", "log_level", "reload", "services", "rabbitmq_url", "exchange_name", "redis_url"]:
        assert field in data
