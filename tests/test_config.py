from pathlib import Path

import pytest

from tracker.common.config import ProviderType, load_tracker_config
from tracker.common.exceptions import ConfigError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("TRACKER_BACKEND_URL", "TRACKER_AUTH_TOKEN", "TRACKER_STATE_DIR"):
        monkeypatch.delenv(name, raising=False)


def test_defaults():
    config = load_tracker_config(None)

    assert config.tracking.moving_interval_min == 15
    assert config.tracking.stationary_interval_min == 30
    assert config.tracking.cache_max_age_min == 10
    assert config.tracking.fix_timeout_s == 5.0
    assert config.tracking.max_pending == 100
    assert config.backend.url == "https://shopper-zibt.onrender.com/"
    assert config.backend.timeout_s == 60.0
    assert config.backend.retry_backoff == [1.0, 2.0]
    assert config.provider == ProviderType.SIMULATED
    assert config.server.port == 8085


def test_sections_are_read():
    config = load_tracker_config({
        "tracker": {"device_id": "phone-9", "state_dir": "/tmp/tracker"},
        "tracking": {"moving_interval_min": 5, "max_pending": 10},
        "backend": {"url": "", "fast_mode": False},
        "connectivity": {"enabled": False},
    })

    assert config.device_id == "phone-9"
    assert config.state_dir == Path("/tmp/tracker")
    assert config.tracking.moving_interval_min == 5
    assert config.tracking.max_pending == 10
    assert not config.backend.enabled
    assert not config.backend.fast_mode
    assert not config.connectivity.enabled


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("TRACKER_BACKEND_URL", "https://staging.test/")
    monkeypatch.setenv("TRACKER_AUTH_TOKEN", "token-123")
    monkeypatch.setenv("TRACKER_STATE_DIR", "/data/state")

    config = load_tracker_config({"backend": {"url": "https://prod.test/"}})

    assert config.backend.url == "https://staging.test/"
    assert config.backend.auth_token == "token-123"
    assert config.state_dir == Path("/data/state")


def test_invalid_interval():
    with pytest.raises(ConfigError):
        load_tracker_config({"tracking": {"moving_interval_min": 0}})


def test_invalid_queue_limit():
    with pytest.raises(ConfigError):
        load_tracker_config({"tracking": {"max_pending": -1}})


def test_unknown_provider():
    with pytest.raises(ConfigError) as exc_info:
        load_tracker_config({"tracker": {"provider": "gps-hat"}})

    assert not exc_info.value.recoverable
