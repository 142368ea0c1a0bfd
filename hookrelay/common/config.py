"""Central environment-driven settings for the relay process.

The relay loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`); every field has a default so the relay boots
with an open poll endpoint and no outbound targets.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class RelaySettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "hookrelay"
    host: str = "0.0.0.0"
    port: int = 10000
    log_level: str = "INFO"
    verify_token: str = "vibecode"
    poll_token: str = ""
    panel_url: str = ""
    panel_token: str = ""
    consumer_url: str = ""
    consumer_secret: str = ""
    outbound_timeout_seconds: float = 15.0
    notification_ttl_seconds: int = 6 * 3600
    notification_capacity: int = 500
    poll_default_limit: int = 50
    poll_max_limit: int = 500
    enrichment_max_entries: int = 2000
    sweep_interval_seconds: float = 300.0
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = RelaySettings()
