"""
Plugin initialization for StatusKeeper.

This module imports all built-in plugins to register them with the registry,
and builds the configured plugin instances for a snapshot.
Import this module to ensure all plugins are available.
"""

# Import all plugin modules to trigger registration decorators
# pylint: disable=unused-import
# ruff: noqa: F401
from statuskeeper import correlator, notifiers
from statuskeeper.config import Config
from statuskeeper.core import CorrelationRule, Notifier

# Re-export registry functions for convenience
from statuskeeper.registry import create_notifier, create_rule, get_registry

__all__ = [
    "build_notifiers",
    "build_rule",
    "create_notifier",
    "create_rule",
    "get_registry",
]


def build_rule(config: Config) -> CorrelationRule:
    """Create the correlation rule selected by a snapshot."""
    rule = config.alerting.rule
    return create_rule(rule.type, dict(rule.config))


def build_notifiers(config: Config) -> list[Notifier]:
    """
    Create every notifier a snapshot asks for.

    The ``mail`` section yields an email notifier when enabled; entries
    under ``notifiers`` are created through the registry.
    """
    instances: list[Notifier] = []

    if config.mail.enabled:
        smtp = config.mail.smtp
        instances.append(create_notifier("email", {
            "name": config.name,
            "send_from": config.mail.send_from,
            "recipients": list(config.mail.recipients),
            "smtp_host": smtp.host,
            "smtp_port": smtp.port,
            "username": smtp.username,
            "password": smtp.password,
            "starttls": smtp.starttls,
        }))

    for notifier_config in config.notifiers:
        instances.append(create_notifier(notifier_config.type, dict(notifier_config.config)))

    return instances
