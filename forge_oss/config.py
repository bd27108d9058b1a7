import dataclasses
import enum

import dotenv

from forge_oss.utils import as_bool
from forge_oss.utils import env


dotenv.load_dotenv()

MEGABYTE = 1 << 20


class Region(str, enum.Enum):
    """Region where the bucket data resides."""

    US = "US"
    EMEA = "EMEA"


@dataclasses.dataclass
class Config:
    """Client configuration settings."""

    # Credentials (two-legged OAuth)
    forge_client_id: str = env("FORGE_CLIENT_ID:")
    forge_client_secret: str = env("FORGE_CLIENT_SECRET:")

    # Endpoints
    forge_base_url: str = env("FORGE_BASE_URL:https://developer.api.autodesk.com")
    forge_region: Region = env("FORGE_REGION:US", convert=lambda x: Region(x.strip().upper()))
    authentication_path: str = "/authentication/v2/token"
    bucket_api_path: str = "/oss/v2/buckets"

    # Upload partitioning
    chunk_size_bytes: int = env(f"OSS_CHUNK_SIZE_BYTES:{100 * MEGABYTE}", convert=int)
    max_parts_per_batch: int = env("OSS_MAX_PARTS_PER_BATCH:25", convert=int)
    # Signed URL lifetime, 1 to 60 minutes on the remote side
    minutes_expiration: int = env("OSS_MINUTES_EXPIRATION:60", convert=int)

    # Retry behaviour (fixed attempts, fixed interval)
    retry_attempts: int = env("OSS_RETRY_ATTEMPTS:3", convert=int)
    retry_interval_seconds: float = env("OSS_RETRY_INTERVAL_SECONDS:3.0", convert=float)
    renew_expired_urls: bool = env("OSS_RENEW_EXPIRED_URLS:true", convert=as_bool)
    max_url_renewals: int = env("OSS_MAX_URL_RENEWALS:3", convert=int)

    # HTTP
    http_timeout_seconds: float = env("OSS_HTTP_TIMEOUT_SECONDS:60.0", convert=float)
    http_connect_timeout_seconds: float = env("OSS_HTTP_CONNECT_TIMEOUT_SECONDS:10.0", convert=float)

    # Logging
    log_level: str = env("LOG_LEVEL:INFO")
    loki_url: str = env("LOKI_URL:", convert=str)
    loki_enabled: bool = env("LOKI_ENABLED:false", convert=as_bool)
    environment: str = env("ENVIRONMENT:development")


def get_config() -> Config:
    """Get client configuration."""
    cfg = Config()

    cfg.forge_base_url = cfg.forge_base_url.rstrip("/")

    # The signeds3upload endpoint only accepts 1..60 minutes
    cfg.minutes_expiration = max(1, min(60, cfg.minutes_expiration))

    if cfg.retry_attempts < 1:
        raise ValueError(f"OSS_RETRY_ATTEMPTS must be at least 1, got {cfg.retry_attempts}")

    return cfg
