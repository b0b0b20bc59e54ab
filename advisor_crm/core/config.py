from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "Advisor CRM API"
    app_env: str = "local"
    app_debug: bool = True
    app_version: str = "0.1.0"
    api_port: int = 3000
    database_url: str = "sqlite+pysqlite:///./advisor_crm.db"
    auto_create_schema: bool = False
    session_secret: str = "replace-me-with-a-long-random-secret"
    session_algorithm: str = "HS256"
    session_cookie_name: str = "advisor_crm_session"
    session_ttl_seconds: int = 24 * 60 * 60
    auth_required: bool = False
    cors_allowed_origins: str = "http://localhost:5173"
    api_base_url: str = "http://localhost:3000/api"
    metrics_enabled: bool = False
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str | None = None
    otel_console_exporter: bool = False
    log_level: str = "INFO"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=False)

    @property
    def allowed_origins(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
