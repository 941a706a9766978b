"""
Configuration loader with Pydantic validation.

Supports:
- YAML file loading
- Environment variable overrides
- Secrets from environment
"""

from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceConfig(BaseModel):
    """Identity of the monitored service."""

    name: str = "Service"
    enable_startup_probe: bool = True


class MonitorConfig(BaseModel):
    """Background monitor parameters."""

    interval_seconds: float = 15.0
    history_retention_hours: float = 168.0  # 7 days

    @field_validator("interval_seconds", "history_retention_hours")
    @classmethod
    def validate_positive(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("must be positive")
        return v


class PredictiveConfig(BaseModel):
    """Predictive failure analysis parameters."""

    enabled: bool = True
    analysis_window_hours: float = 24.0
    analysis_interval_minutes: float = 15.0
    minimum_data_points: int = 10
    degradation_threshold: float = 0.3
    critical_threshold: float = 0.7

    @field_validator("degradation_threshold", "critical_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        if not 0 <= v <= 1:
            raise ValueError("threshold must be between 0 and 1")
        return v

    @field_validator("minimum_data_points")
    @classmethod
    def validate_min_points(cls, v: int) -> int:
        if v < 1:
            raise ValueError("minimum_data_points must be at least 1")
        return v

    @field_validator("analysis_window_hours")
    @classmethod
    def validate_window(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("analysis_window_hours must be positive")
        return v

    @property
    def analysis_window(self) -> timedelta:
        return timedelta(hours=self.analysis_window_hours)

    @model_validator(mode="after")
    def validate_threshold_order(self) -> "PredictiveConfig":
        if self.degradation_threshold >= self.critical_threshold:
            raise ValueError("degradation_threshold must be below critical_threshold")
        return self


class AlertConfig(BaseModel):
    """Alert delivery parameters. Channel credentials live in SecretsConfig."""

    enable_external_channels: bool = False
    enable_auto_actions: bool = False
    enable_webhook: bool = False
    enable_slack: bool = False
    enable_telegram: bool = False
    retention: int = 100


class PublishConfig(BaseModel):
    """Change-notification publishing to the message bus."""

    enabled: bool = False
    channel: str = "platform.health"


class HttpDependencyConfig(BaseModel):
    """An HTTP peer the service depends on."""

    name: str
    url: str
    critical: bool = True
    timeout_seconds: float = 2.0

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        # Sub-second timeouts are raised to one second
        return max(1.0, v)


class DependenciesConfig(BaseModel):
    """Built-in probes to register."""

    http: list[HttpDependencyConfig] = Field(default_factory=list)
    working_set_max_mb: float | None = None
    disk_min_free_mb: float | None = None
    disk_path: str = "/"


class DetailsAuthConfig(BaseModel):
    """API key protection for the details endpoint."""

    enabled: bool = False


class ObservabilityConfig(BaseModel):
    """Logging, metrics and API configuration."""

    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    metrics_port: int = 9090
    api_host: str = "127.0.0.1"
    api_port: int = 8080


class SecretsConfig(BaseSettings):
    """
    Secrets loaded exclusively from environment variables.
    Never logged or persisted.
    """

    model_config = SettingsConfigDict(env_prefix="HEALTH_", case_sensitive=False)

    details_api_key: str = ""
    webhook_url: str = ""
    slack_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    redis_url: str = ""


class AppConfig(BaseModel):
    """Complete application configuration."""

    environment: str = "local"

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    monitor: MonitorConfig = Field(default_factory=MonitorConfig)
    predictive: PredictiveConfig = Field(default_factory=PredictiveConfig)
    alerts: AlertConfig = Field(default_factory=AlertConfig)
    publish: PublishConfig = Field(default_factory=PublishConfig)
    dependencies: DependenciesConfig = Field(default_factory=DependenciesConfig)
    details_auth: DetailsAuthConfig = Field(default_factory=DetailsAuthConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def diff_from_defaults(self) -> dict[str, Any]:
        """
        Get configuration differences from defaults.

        Useful for logging what's been customized.
        """
        defaults = AppConfig()
        current = self.model_dump()
        default_dict = defaults.model_dump()

        def diff_dict(d1: dict, d2: dict, path: str = "") -> dict:
            differences = {}
            for key in set(d1.keys()) | set(d2.keys()):
                full_key = f"{path}.{key}" if path else key
                v1 = d1.get(key)
                v2 = d2.get(key)

                if isinstance(v1, dict) and isinstance(v2, dict):
                    nested = diff_dict(v1, v2, full_key)
                    if nested:
                        differences.update(nested)
                elif v1 != v2:
                    differences[full_key] = {"current": v1, "default": v2}

            return differences

        return diff_dict(current, default_dict)


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Load configuration from YAML file."""
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, "r") as f:
        return yaml.safe_load(f) or {}


def deep_merge(base: dict, override: dict) -> dict:
    """Deep merge two dictionaries."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """
    Load configuration from YAML file over the defaults.

    Priority (highest to lowest):
    1. Specified config file
    2. Defaults
    """
    config_dict: dict[str, Any] = AppConfig().model_dump()

    if config_path:
        path = Path(config_path)
        config_dict = deep_merge(config_dict, load_yaml_config(path))

    return AppConfig(**config_dict)


def load_secrets() -> SecretsConfig:
    """Load secrets from environment variables."""
    return SecretsConfig()


def init_config(config_path: str | Path | None = None) -> tuple[AppConfig, SecretsConfig]:
    """Load configuration and secrets."""
    return load_config(config_path), load_secrets()
