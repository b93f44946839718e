"""Central environment-driven settings for the payment service.

The process loads this once at startup. Behavior is controlled by environment
variables (or a local `.env` file); gateway policy knobs use the `GATEWAY_`
prefix.
"""

from decimal import Decimal

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payment-service"
    log_level: str = "INFO"
    database_url: str = "sqlite+pysqlite:///./cardpay.db"
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    tracing_enabled: bool = True
    recent_payments_limit: int = 10

    gateway_decline_suffix: str = "0000"
    gateway_approve_suffix: str = "1111"
    gateway_transient_error_rate: float = 0.05
    gateway_bank_decline_rate: float = 0.15
    gateway_high_amount_threshold: Decimal = Decimal("1000")
    gateway_high_amount_decline_rate: float = 0.30
    gateway_insufficient_funds_threshold: Decimal = Decimal("500")
    gateway_insufficient_funds_rate: float = 0.20
    gateway_min_delay_seconds: float = 1.0
    gateway_max_delay_seconds: float = 3.0
    gateway_timeout_seconds: float | None = 10.0
    gateway_seed: int | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = CommonSettings()
