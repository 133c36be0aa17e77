"""
Configuration management using Pydantic BaseSettings.
All values can be overridden via environment variables or a .env file.
"""
from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # ── TiDB (MySQL-protocol compatible) ───────────────────────────────────
    tidb_host: str = "tidb"
    tidb_port: int = 4000
    tidb_user: str = "root"
    tidb_password: str = ""
    tidb_database: str = "social"

    # Full SQLAlchemy URL; when set it wins over the tidb_* parts
    database_url: Optional[str] = None

    @property
    def db_url(self) -> str:
        if self.database_url:
            return self.database_url
        return (
            f"mysql+aiomysql://{self.tidb_user}:{self.tidb_password}"
            f"@{self.tidb_host}:{self.tidb_port}/{self.tidb_database}"
        )

    # ── Auth provider (bearer token → user id) ─────────────────────────────
    auth_url: str = "http://auth:9999"
    auth_api_key: str = ""
    auth_timeout_seconds: float = 2.0

    # ── Suggestions ────────────────────────────────────────────────────────
    suggestion_default_limit: int = 10
    suggestion_max_concurrency: int = 8      # candidates scored at once
    suggestion_recent_window_days: int = 7
    suggestion_exclude_dismissed: bool = True
    suggestion_dismissal_window_days: int = 30
    suggestion_learning_enabled: bool = False

    # ── HTTP ───────────────────────────────────────────────────────────────
    cors_allow_origins: list[str] = ["*"]

    # ── Observability ──────────────────────────────────────────────────────
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://jaeger:4317"
    service_name: str = "suggest-users"
    environment: str = "development"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
