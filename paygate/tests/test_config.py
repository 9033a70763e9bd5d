import logging

import pytest

from paygate.core.config import Settings, get_local_timezone, validate_config
from paygate.core.services import build_services, build_store
from paygate.core.store import InMemoryStore, SqlKeyValueStore


def test_defaults_are_valid():
    cfg = Settings(STORE_BACKEND="memory", LOCAL_TIMEZONE=None, DATABASE_URL=None, TEST_DATABASE_URL=None)
    assert validate_config(strict=True, settings_obj=cfg) is True


def test_sql_backend_requires_url_strict():
    cfg = Settings(STORE_BACKEND="sql", DATABASE_URL=None, TEST_DATABASE_URL=None)
    with pytest.raises(RuntimeError, match="DATABASE_URL"):
        validate_config(strict=True, settings_obj=cfg)


def test_unknown_backend_warns_when_not_strict(caplog):
    cfg = Settings(STORE_BACKEND="redis")
    with caplog.at_level(logging.WARNING, logger="paygate"):
        assert validate_config(strict=False, settings_obj=cfg, logger=logging.getLogger("paygate")) is False
    assert "STORE_BACKEND" in caplog.text


def test_unset_timezone_means_host_local():
    assert get_local_timezone(Settings(LOCAL_TIMEZONE=None)) is None


def test_build_store_memory():
    assert isinstance(build_store(Settings(STORE_BACKEND="memory")), InMemoryStore)


def test_build_store_sql():
    cfg = Settings(STORE_BACKEND="sql", DATABASE_URL="sqlite://", TEST_DATABASE_URL=None)
    assert isinstance(build_store(cfg), SqlKeyValueStore)


def test_services_share_one_store(clock):
    store = InMemoryStore()
    services = build_services(Settings(STORE_BACKEND="memory"), store=store, now_fn=clock)
    assert services.store is store
    services.paywall.should_show()
    assert services.entitlements.current_tier().value == "free"
    assert store.get("firstLaunchDate") == clock.now


def test_build_store_sql_uses_only_given_settings(monkeypatch):
    monkeypatch.setenv("TEST_DATABASE_URL", "sqlite://")
    cfg = Settings(STORE_BACKEND="sql", DATABASE_URL=None, TEST_DATABASE_URL=None)
    with pytest.raises(ValueError, match="DATABASE_URL"):
        build_store(cfg)
