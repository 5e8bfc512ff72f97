from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Task List API"
    log_level: str = "INFO"
    cors_origins: list[str] = ["*"]

    # Document store; "memory://" selects the in-process backend
    mongodb_uri: str | None = None
    mongodb_db: str = "tasklist"
    mongodb_timeout_ms: int = 5000
    connect_on_startup: bool = False

    cache_enabled: bool = True
    redis_dsn: str | None = None
    l1_maxsize: int = 2048
    l1_ttl_seconds: int = 60  # default L1 TTL
    l2_ttl_seconds: int = 300  # default Redis TTL
    cache_namespace: str = "tasklist:"
    redis_pool_size: int = 5


@lru_cache
def get_settings() -> Settings:
    return Settings()

