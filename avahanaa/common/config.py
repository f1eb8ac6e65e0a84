"""Central environment-driven settings for the notify service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "notify"
    log_level: str = "INFO"
    database_url: str
    redis_url: str = "redis://redis:6379/0"
    otel_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"

    # "sql" keeps counters in the database, "redis" keeps them in Redis hashes.
    rate_limit_backend: str = "sql"
    rate_limit_window_seconds: int = 60
    rate_limit_origin_max: int = 3
    rate_limit_code_max: int = 8
    rate_limit_max_transaction_attempts: int = 5

    push_gateway_url: str = "https://fcm.googleapis.com/v1/projects/avahanaa/messages:send"
    push_gateway_token: str = ""
    push_timeout_seconds: float = 5.0
    push_source: str = "avahanaa-web"
    push_android_channel: str = "vehicle_alerts"
    push_click_action: str = "OPEN_VEHICLE_ALERT"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
