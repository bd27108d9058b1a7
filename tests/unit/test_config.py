import pytest

from forge_oss.config import MEGABYTE
from forge_oss.config import Config
from forge_oss.config import Region
from forge_oss.config import get_config


@pytest.fixture
def clean_env(monkeypatch):
    for name in (
        "FORGE_BASE_URL",
        "FORGE_REGION",
        "OSS_CHUNK_SIZE_BYTES",
        "OSS_MAX_PARTS_PER_BATCH",
        "OSS_MINUTES_EXPIRATION",
        "OSS_RETRY_ATTEMPTS",
        "OSS_RETRY_INTERVAL_SECONDS",
        "OSS_RENEW_EXPIRED_URLS",
    ):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


def test_defaults(clean_env):
    cfg = get_config()

    assert cfg.forge_base_url == "https://developer.api.autodesk.com"
    assert cfg.forge_region is Region.US
    assert cfg.chunk_size_bytes == 100 * MEGABYTE
    assert cfg.max_parts_per_batch == 25
    assert cfg.minutes_expiration == 60
    assert cfg.retry_attempts == 3
    assert cfg.retry_interval_seconds == 3.0
    assert cfg.renew_expired_urls is True


def test_values_read_from_environment(clean_env):
    clean_env.setenv("FORGE_BASE_URL", "https://example.test/")
    clean_env.setenv("FORGE_REGION", "emea")
    clean_env.setenv("OSS_CHUNK_SIZE_BYTES", str(8 * MEGABYTE))
    clean_env.setenv("OSS_RENEW_EXPIRED_URLS", "false")

    cfg = get_config()

    assert cfg.forge_base_url == "https://example.test"
    assert cfg.forge_region is Region.EMEA
    assert cfg.chunk_size_bytes == 8 * MEGABYTE
    assert cfg.renew_expired_urls is False


@pytest.mark.parametrize(("raw", "expected"), [("0", 1), ("-5", 1), ("30", 30), ("61", 60), ("1440", 60)])
def test_minutes_expiration_is_clamped(clean_env, raw, expected):
    clean_env.setenv("OSS_MINUTES_EXPIRATION", raw)

    assert get_config().minutes_expiration == expected


def test_zero_retry_attempts_rejected(clean_env):
    clean_env.setenv("OSS_RETRY_ATTEMPTS", "0")

    with pytest.raises(ValueError):
        get_config()


def test_config_instances_are_independent(clean_env):
    first = Config()
    clean_env.setenv("OSS_MAX_PARTS_PER_BATCH", "10")

    assert first.max_parts_per_batch == 25
    assert Config().max_parts_per_batch == 10
