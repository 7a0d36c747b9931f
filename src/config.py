from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    log_level: str = "INFO"
    database_url: str | None = None
    supabase_url: str | None = None
    supabase_service_role_key: str | None = None
    docuseal_webhook_secret: str | None = None
    docuseal_webhook_signature_mode: str = "permissive_audit"  # permissive_audit | enforce
    internal_scheduler_secret: str | None = None
    webhook_event_retention_days: int = 30
    webhook_event_cleanup_batch_size: int = 500
    webhook_event_cleanup_max_batches: int = 20
    observability_export_url: str | None = None
    observability_export_bearer_token: str | None = None
    observability_export_timeout_seconds: float = 3.0

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )


settings = Settings()
