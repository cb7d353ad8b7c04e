from __future__ import annotations

from functools import lru_cache

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CONTROLLER_IDENTITY = "dns-controller"


class Settings(BaseSettings):
    app_name: str = Field(default="NodeDNSSync")
    app_env: str = Field(default="dev")
    app_version: str = Field(default="0.1.0")

    database_url: str = Field(default="")

    log_level: str = Field(default="INFO")
    log_file: str = Field(default="")
    log_db_queries: bool = Field(default=False)
    log_sql_max_length: int = Field(default=400)

    server_host: str = Field(default="0.0.0.0")
    server_port: int = Field(default=8000)
    metrics_enabled: bool = Field(default=True)

    controller_identity: str = Field(default=DEFAULT_CONTROLLER_IDENTITY)
    annotation_filter: str = Field(default="")
    fqdn_template: str = Field(default="")
    label_filter: str = Field(default="")
    suppress_ipv6: bool = Field(default=False)
    node_resync_interval_seconds: int = Field(default=30)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_settings(self) -> "Settings":
        issues: list[str] = []
        if not self.database_url:
            issues.append("DATABASE_URL must be set in .env or environment variables.")
        if not self.controller_identity.strip():
            issues.append("CONTROLLER_IDENTITY must not be empty.")
        if self.node_resync_interval_seconds <= 0:
            issues.append("NODE_RESYNC_INTERVAL_SECONDS must be positive.")
        if issues:
            raise ValueError(" ".join(issues))
        return self


@lru_cache
def get_settings() -> Settings:
    return Settings()
