from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    environment: str = "dev"
    api_base_url: str = "http://localhost:8000"
    module_id: str = "enrichment-worker"
    api_key: str = "local-enrichment-key"
    api_timeout_seconds: float = 10.0
    poll_interval_seconds: float = 5.0
    max_backoff_seconds: float = 60.0
    batch_size: int = 25
    typesense_url: str | None = None
    typesense_api_key: str | None = None
    typesense_collection: str = "jobs"
    typesense_timeout_seconds: float = 10.0
    fair_chance_employers_path: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "recovery-jobs-worker"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(env_prefix="JOBBOARD_WORKER_", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
