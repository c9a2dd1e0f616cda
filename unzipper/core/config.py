import re

from pydantic import ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from unzipper.core.errors import ConfigError

_INTEGER_RE = re.compile(r"^\s*[+-]?\d+\s*$")


def _parse_upload_limit(value: object) -> int:
    """Accept integers and integer strings only.

    ``"1.5"``, ``"abc"`` and booleans are rejected so that a typo in
    PARALLEL_UPLOAD_LIMIT stops the worker instead of silently changing
    the upload concurrency.
    """
    if isinstance(value, bool):
        raise ValueError("A value other than an integer is set for PARALLEL_UPLOAD_LIMIT.")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and _INTEGER_RE.match(value):
        return int(value)
    raise ValueError("A value other than an integer is set for PARALLEL_UPLOAD_LIMIT.")


class Settings(BaseSettings):
    """Worker settings loaded from environment variables.

    STORE_URL is the artifact store root; the ``/v1`` API prefix is added
    by the store client.

    PARALLEL_UPLOAD_LIMIT
    ─────────────────────
    • N > 0   - upload at most N artifacts concurrently per chunk
    • N <= 0  - upload every artifact of the bundle in one batch
    • other   - ConfigError at startup
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Artifact store
    store_url: str = "http://localhost:9000"
    store_retry_limit: int = 5
    store_timeout: float = 30.0

    # Unzip job
    parallel_upload_limit: int = 0

    @field_validator("parallel_upload_limit", mode="before")
    @classmethod
    def require_integer_limit(cls, v: object) -> int:
        return _parse_upload_limit(v)

    @field_validator("store_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")

    # Heartbeat server (GET /last-emitted)
    heartbeat_enabled: bool = True
    heartbeat_host: str = "0.0.0.0"
    heartbeat_port: int = 80

    # Sentry - leave blank to disable error capture.
    sentry_dsn: str = ""

    # App
    debug: bool = False


class QueueSettings(BaseSettings):
    """Backing-store settings for the Celery broker.

    QUEUE_CONNECTION_TYPE selects the topology: ``single`` uses
    QUEUE_HOST / QUEUE_PORT / QUEUE_DATABASE, ``clustered`` uses
    QUEUE_CLUSTER_HOSTS (a JSON list of ``host:port`` strings).
    """

    model_config = SettingsConfigDict(
        env_prefix="QUEUE_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    connection_type: str = "single"

    # single
    host: str = "127.0.0.1"
    port: int = 6379
    database: int = 0

    # clustered
    cluster_hosts: list[str] = []
    slots_refresh_timeout: int = 1000

    # shared
    password: str | None = None
    tls: bool = False
    prefix: str = ""


def get_settings() -> Settings:
    try:
        return Settings()
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc


def get_queue_settings() -> QueueSettings:
    try:
        return QueueSettings()
    except ValidationError as exc:
        raise ConfigError(str(exc)) from exc
