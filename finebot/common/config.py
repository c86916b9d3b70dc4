"""Central environment-driven settings for the pay bot.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "paybot"
    log_level: str = "INFO"
    host: str = "localhost"
    port: int = 3978
    public_scheme: str = "http"
    approval_path: str = "approvalComplete"
    cancel_url: str = "http://localhost"
    paypal_client_mode: str = "sandbox"
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    provider_timeout_seconds: float = 30.0
    microsoft_app_id: str = ""
    microsoft_app_password: str = ""
    bot_id: str = "paybot"
    bot_name: str = "paybot"
    messaging_timeout_seconds: float = 10.0
    dialog_state_ttl_seconds: float = 3600.0
    dialog_state_max_entries: int = 10000
    fine_name: str = "Fine"
    fine_sku: str = "ParkingFine"
    fine_description: str = "This is your fine. Please pay it :3"
    fine_amount_minor_units: int = 100
    fine_currency: str = "USD"
    otel_exporter_otlp_endpoint: str = ""
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
