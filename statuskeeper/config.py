"""
Configuration loading and validation for StatusKeeper.

A loaded ``Config`` is an immutable snapshot: every reload produces a new
instance which is compared by value with the previous one.
"""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from statuskeeper.core import ConfigError


class FrozenModel(BaseModel):
    """Base for snapshot models: immutable, unknown keys ignored."""
    model_config = ConfigDict(frozen=True, extra="ignore")


class ServiceConfig(FrozenModel):
    """A single monitored service."""
    name: str = Field(..., min_length=1)
    description: str = ""
    url: str = Field(..., min_length=1)
    hide_url: bool = False
    expected_response_code: int = Field(200, ge=100, le=599)


class CategoryConfig(FrozenModel):
    """A named group of services, displayed together."""
    name: str = Field(..., min_length=1)
    description: str = ""
    services: tuple[ServiceConfig, ...] = ()


class SmtpConfig(FrozenModel):
    """SMTP connection settings, forwarded to the email notifier."""
    host: str = "localhost"
    port: int = 587
    username: str | None = None
    password: str | None = None
    starttls: bool = True


class MailConfig(FrozenModel):
    """Outbound mail settings."""
    enabled: bool = False
    send_from: str = ""
    recipients: tuple[str, ...] = ()
    smtp: SmtpConfig = Field(default_factory=SmtpConfig)


class ProbeConfig(FrozenModel):
    """How probes are executed."""
    timeout_seconds: float = Field(7.0, gt=0)
    max_concurrency: int = Field(16, ge=1)
    user_agent: str = "statuskeeper/0.1"


class RuleConfig(FrozenModel):
    """Correlation rule selection."""
    type: str = "degradation_streak"
    config: dict[str, Any] = Field(default_factory=dict)


class AlertingConfig(FrozenModel):
    """Alerting behaviour."""
    rule: RuleConfig = Field(default_factory=RuleConfig)


class NotifierConfig(FrozenModel):
    """Configuration for an additional notification destination."""
    type: str  # "webhook", "console", "email"
    config: dict[str, Any] = Field(default_factory=dict)


class Config(FrozenModel):
    """Main configuration for StatusKeeper."""
    name: str = "StatusKeeper"
    categories: tuple[CategoryConfig, ...] = ()
    check_interval_minutes: float = Field(15, gt=0)
    data_retention_hours: float = Field(24, gt=0)
    watch_interval_seconds: float = Field(15, gt=0)
    database_url: str = "sqlite:///statuskeeper.sqlite"
    secret: str | None = None
    mail: MailConfig = Field(default_factory=MailConfig)
    probe: ProbeConfig = Field(default_factory=ProbeConfig)
    alerting: AlertingConfig = Field(default_factory=AlertingConfig)
    notifiers: tuple[NotifierConfig, ...] = ()

    @model_validator(mode="after")
    def _unique_urls(self) -> "Config":
        seen: set[str] = set()
        for category in self.categories:
            for service in category.services:
                if service.url in seen:
                    raise ValueError(f"Duplicate service url: {service.url}")
                seen.add(service.url)
        return self

    @property
    def check_interval_seconds(self) -> float:
        """Probe period in seconds."""
        return self.check_interval_minutes * 60

    @property
    def notifications_enabled(self) -> bool:
        """Whether any notification destination is configured."""
        return self.mail.enabled or bool(self.notifiers)


# Name used by the rest of the package for one loaded configuration
ConfigSnapshot = Config


def parse_config(raw_config: dict[str, Any] | None) -> Config:
    """
    Validate an already-parsed configuration document.

    Raises:
        ConfigError: If the document does not describe a valid configuration
    """
    if raw_config is None:
        raw_config = {}
    if not isinstance(raw_config, dict):
        raise ConfigError("Configuration root must be a mapping")

    try:
        return Config.model_validate(raw_config)
    except ValidationError as e:
        raise ConfigError(f"Configuration validation error: {e}") from e


def load_config(config_path: str | Path) -> Config:
    """
    Load and validate configuration from YAML file.

    Args:
        config_path: Path to the YAML configuration file

    Returns:
        Validated Config object

    Raises:
        FileNotFoundError: If config file doesn't exist
        ConfigError: If config is invalid
        yaml.YAMLError: If YAML parsing fails
    """
    path = Path(config_path)

    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with path.open('r', encoding='utf-8') as f:
        raw_config: dict[str, Any] = yaml.safe_load(f)

    return parse_config(raw_config)


class YamlConfigLoader:
    """Loads snapshots from a YAML file on every call."""

    def __init__(self, config_path: str | Path) -> None:
        self.path = Path(config_path)

    def load(self) -> Config:
        """Read and validate the file."""
        return load_config(self.path)
