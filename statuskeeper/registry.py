"""
Plugin registry and factory system for StatusKeeper.

This module provides a centralized registry for the pluggable parts of the
alerting path and factory functions to instantiate them from configuration.
"""

from collections.abc import Callable
from typing import Any

from statuskeeper.core import CorrelationRule, Notifier


class PluginRegistry:
    """
    Central registry for all plugin types.

    Each category (rules, notifiers) maintains a mapping of type names to
    implementation classes.
    """

    def __init__(self) -> None:
        self._rules: dict[str, type[CorrelationRule]] = {}
        self._notifiers: dict[str, type[Notifier]] = {}

    # Rule registration
    def register_rule(self, type_name: str, cls: type[CorrelationRule]) -> None:
        """Register a correlation rule implementation."""
        self._rules[type_name] = cls

    def get_rule(self, type_name: str) -> type[CorrelationRule]:
        """Get a rule class by type name."""
        if type_name not in self._rules:
            raise ValueError(f"Unknown rule type: {type_name}")
        return self._rules[type_name]

    # Notifier registration
    def register_notifier(self, type_name: str, cls: type[Notifier]) -> None:
        """Register a notifier implementation."""
        self._notifiers[type_name] = cls

    def get_notifier(self, type_name: str) -> type[Notifier]:
        """Get a notifier class by type name."""
        if type_name not in self._notifiers:
            raise ValueError(f"Unknown notifier type: {type_name}")
        return self._notifiers[type_name]

    def list_plugins(self) -> dict[str, list[str]]:
        """List all registered plugins by category."""
        return {
            "rules": list(self._rules.keys()),
            "notifiers": list(self._notifiers.keys()),
        }


# Global registry instance
_registry = PluginRegistry()


# Factory functions
def create_rule(type_name: str, config: dict[str, Any]) -> CorrelationRule:
    """Create a correlation rule instance from configuration."""
    cls = _registry.get_rule(type_name)
    return cls(config)


def create_notifier(type_name: str, config: dict[str, Any]) -> Notifier:
    """Create a notifier instance from configuration."""
    cls = _registry.get_notifier(type_name)
    return cls(config)


# Decorators for easy registration
def register_rule(type_name: str) -> Callable[[type[CorrelationRule]], type[CorrelationRule]]:
    """Decorator to register a correlation rule class."""
    def decorator(cls: type[CorrelationRule]) -> type[CorrelationRule]:
        _registry.register_rule(type_name, cls)
        return cls
    return decorator


def register_notifier(type_name: str) -> Callable[[type[Notifier]], type[Notifier]]:
    """Decorator to register a notifier class."""
    def decorator(cls: type[Notifier]) -> type[Notifier]:
        _registry.register_notifier(type_name, cls)
        return cls
    return decorator


def get_registry() -> PluginRegistry:
    """Get the global plugin registry."""
    return _registry
