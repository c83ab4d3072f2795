from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "careers-api"
    environment: str = "dev"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    database_command_timeout_seconds: float = 15.0
    catalog_default_page_size: int = 10
    catalog_max_page_size: int = 50
    related_positions_limit: int = 3
    featured_positions_limit: int = 6
    otel_enabled: bool = True
    otel_service_name: str = "careers-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="CAREERS_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
