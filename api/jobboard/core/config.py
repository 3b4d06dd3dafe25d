from functools import cached_property, lru_cache

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    app_name: str = "recovery-jobs-api"
    environment: str = "dev"
    storage_backend: str = "postgres"
    database_url: str | None = None
    database_pool_min_size: int = 1
    database_pool_max_size: int = 10
    admin_emails: str | None = None
    auth_userinfo_url: str | None = None
    auth_timeout_seconds: float = 5.0
    machine_credentials_json: str | None = None
    token_signing_secret: str | None = None
    magic_link_ttl_days: int = 7
    app_base_url: str = "http://localhost:5173"
    typesense_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TYPESENSE_URL", "VITE_TYPESENSE_URL"),
    )
    typesense_api_key: str | None = Field(
        default=None,
        validation_alias=AliasChoices("TYPESENSE_API_KEY", "VITE_TYPESENSE_API_KEY"),
    )
    typesense_collection: str = "jobs"
    typesense_timeout_seconds: float = 5.0
    scrape_pipeline_url: str | None = None
    scrape_pipeline_secret: str | None = None
    scrape_pipeline_timeout_seconds: float = 30.0
    nuke_batch_size: int = 100
    inngest_webhook_url: str | None = None
    groq_api_key: str | None = None
    otel_enabled: bool = True
    otel_service_name: str = "recovery-jobs-api"
    otel_exporter_otlp_endpoint: str | None = None
    otel_exporter_otlp_headers: str | None = None
    otel_trace_sample_ratio: float = 1.0
    otel_log_correlation: bool = True

    model_config = SettingsConfigDict(extra="ignore", populate_by_name=True)

    @cached_property
    def admin_email_set(self) -> frozenset[str]:
        if not self.admin_emails:
            return frozenset()
        return frozenset(
            chunk.strip().lower() for chunk in self.admin_emails.split(",") if chunk.strip()
        )


@lru_cache
def get_settings() -> Settings:
    return Settings()
