import os
from dataclasses import dataclass


@dataclass(frozen=True)
class Config:
    """Worker settings, read from DATABASE_URL and BULKTRACK_* variables.

    ``listen_database_url`` may point LISTEN at a direct (non-pooled)
    connection; it defaults to ``database_url``.
    """

    database_url: str
    listen_database_url: str = ""
    poll_interval_seconds: float = 5.0
    batch_size: int = 10
    max_retries: int = 3
    health_port: int = 8081
    log_format: str = "json"
    log_level: str = "INFO"
    default_language: str = "en"

    def __post_init__(self) -> None:
        if not self.listen_database_url:
            object.__setattr__(self, "listen_database_url", self.database_url)

    @classmethod
    def from_env(cls) -> "Config":
        database_url = os.environ.get("DATABASE_URL", "").strip()
        if not database_url:
            raise RuntimeError("DATABASE_URL must be set")

        env = os.environ.get
        return cls(
            database_url=database_url,
            listen_database_url=env("BULKTRACK_WORKER_LISTEN_DATABASE_URL", "").strip(),
            poll_interval_seconds=float(env("BULKTRACK_POLL_INTERVAL", "5.0")),
            batch_size=int(env("BULKTRACK_BATCH_SIZE", "10")),
            max_retries=int(env("BULKTRACK_MAX_RETRIES", "3")),
            health_port=int(env("BULKTRACK_HEALTH_PORT", "8081")),
            log_format=env("BULKTRACK_LOG_FORMAT", "json"),
            log_level=env("BULKTRACK_LOG_LEVEL", "INFO"),
            default_language=env("BULKTRACK_DEFAULT_LANGUAGE", "en"),
        )
