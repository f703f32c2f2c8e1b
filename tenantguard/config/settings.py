# tenantguard/config/settings.py

from functools import lru_cache
from typing import Dict, List, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Application ---
    app_name: str = "tenantguard"
    environment: Literal["dev", "test", "prod"] = "dev"
    debug: bool = False
    version: str = "0.1.0"

    # --- Identity (bearer tokens issued by the surrounding auth layer) ---
    jwt_secret: str = Field(..., min_length=32)
    jwt_algorithm: str = "HS256"
    # Resolve role and tenant from principal_bindings instead of token claims
    use_principal_directory: bool = False

    # --- Database ---
    database_url: str

    # --- Redis (ephemeral anomaly signals) ---
    redis_url: str
    anomaly_signal_ttl_seconds: int = 86400

    # --- Messaging (security alert side-channel) ---
    rabbitmq_url: str
    alert_exchange: str = "security_alerts"
    alert_notify_timeout_seconds: float = Field(default=5.0, gt=0)

    # --- Tenant binding ---
    tenant_field: str = "tenant_id"
    globally_readable_types: List[str] = Field(default_factory=lambda: ["organizations"])
    # "resource_type:operation:allowed_if" entries, e.g. "stakeholder_notes:delete:administrator"
    policy_rules: List[str] = Field(default_factory=list)

    # --- Audit ---
    audit_volatile_fields: List[str] = Field(
        default_factory=lambda: ["updated_at", "created_at"]
    )
    # resource type -> public | confidential | sensitive | pii; merged over the built-in table
    audit_sensitivity_overrides: Dict[str, str] = Field(default_factory=dict)

    # --- Anomaly detection ---
    # Windows must be positive; counts are exclusive thresholds
    burst_read_threshold: int = Field(default=100, ge=0)
    burst_window_seconds: int = Field(default=60, gt=0)
    repeated_denial_threshold: int = Field(default=5, ge=0)
    repeated_denial_window_seconds: int = Field(default=300, gt=0)
    tenant_switch_threshold: int = Field(default=3, ge=0)
    tenant_switch_window_seconds: int = Field(default=300, gt=0)
    anomaly_poll_interval_seconds: float = 5.0

    # --- Compliance views ---
    pii_access_window_days: int = 30
    bulk_access_window_hours: int = 24
    bulk_access_per_minute_threshold: int = 10

    # --- Observability ---
    enable_metrics: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"


@lru_cache
def get_settings() -> AppSettings:
    return AppSettings()
