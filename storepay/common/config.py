"""Central environment-driven settings for the payments service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "storepay-payments"
    log_level: str = "INFO"
    database_url: str = "sqlite+pysqlite:///./storepay.db"
    gateway_base_url: str = "https://wallet.wearemarz.com/api/v1"
    gateway_api_key: str = ""
    gateway_api_secret: str = ""
    gateway_timeout_seconds: float = 20.0
    callback_url: str = "http://localhost:8000/webhooks/collections"
    default_description: str = "Payment for Mami Papa Babies & Kids products"
    # Subscriber-number prefixes per provider, after the 256 country code.
    provider_prefixes: dict[str, list[str]] = {
        "mtn": ["76", "77", "78", "31", "39"],
        "airtel": ["70", "75"],
    }
    kafka_bootstrap_servers: str | None = None
    fulfillment_topic: str = "orders.payment_completed"
    otel_enabled: bool = False
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
