"""
Core interfaces and data structures for StatusKeeper.

This module defines the values that flow through a probe cycle and the
plugin interfaces the rest of the system is built around:
- Targets and samples: what is measured and what was recorded
- Rules: should a run of samples raise an alert
- Notifiers: how an alert leaves the process
"""

import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any

ONLINE = "online"
ISSUES = "issues"
OFFLINE = "offline"

STATUSES = (ONLINE, ISSUES, OFFLINE)
DEGRADED_STATUSES = frozenset({ISSUES, OFFLINE})

INCIDENT = "incident"
MAINTENANCE = "maintenance"


class StatusKeeperError(Exception):
    """Base class for StatusKeeper errors."""


class ConfigError(StatusKeeperError, ValueError):
    """Raised when a configuration document is invalid."""


class StorageError(StatusKeeperError):
    """Raised when the sample store cannot complete a query."""


def now_ms() -> int:
    """Current wall-clock time in milliseconds since the epoch."""
    return int(time.time() * 1000)


Clock = Callable[[], int]


def is_degraded(status: str | None) -> bool:
    """Return True for statuses that count towards a degradation streak."""
    return status in DEGRADED_STATUSES


@dataclass(frozen=True)
class ServiceTarget:
    """One monitored endpoint, identified by its URL."""
    url: str
    name: str
    description: str = ""
    expected_response_code: int = 200
    hide_url: bool = False
    category: str = ""

    @property
    def display_url(self) -> str:
        """URL as it may be shown to end users."""
        return "hidden" if self.hide_url else self.url


@dataclass(frozen=True)
class ProbeResult:
    """Outcome of a single probe before it is timestamped."""
    status: str
    response_time: int | None  # Milliseconds, None when no response arrived
    status_code: int | None = None
    error: str | None = None


@dataclass(frozen=True)
class ServiceSample:
    """One recorded probe outcome for a target."""
    url: str
    status: str
    response_time: int | None
    timestamp: int  # Milliseconds since epoch


@dataclass(frozen=True)
class Incident:
    """
    An incident or maintenance window maintained outside the core.

    The core only reads incidents: to mention them in alerts and to
    overlay ongoing ones on the status view.
    """
    id: str
    title: str
    started_at: int
    description: str = ""
    kind: str = INCIDENT
    urls: frozenset[str] = field(default_factory=frozenset)
    resolved_at: int | None = None

    def affects(self, url: str) -> bool:
        """Whether the incident references the given target URL."""
        return url in self.urls

    def is_ongoing(self, now: int) -> bool:
        """Started and not yet resolved at ``now``."""
        if self.started_at > now:
            return False
        return self.resolved_at is None or self.resolved_at > now


IncidentProvider = Callable[[], Sequence[Incident]]


def no_incidents() -> Sequence[Incident]:
    """Default incident provider."""
    return ()


@dataclass
class AlertDecision:
    """Decision from a rule about whether to alert."""
    should_alert: bool
    message: str
    context: dict[str, Any]  # Additional context for the alert


@dataclass(frozen=True)
class Alert:
    """A rendered alert ready to be handed to notifiers."""
    subject: str
    body: str


class CorrelationRule(ABC):
    """
    Base class for correlation rules.

    Rules decide whether a target's recent history marks the start of a
    degradation that deserves a notification.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the rule with configuration.

        Args:
            config: Type-specific configuration dictionary
        """
        self.config = config

    @property
    def history_size(self) -> int:
        """Number of most recent samples the rule needs to see."""
        return 1

    @abstractmethod
    def evaluate(self, history: Sequence[ServiceSample]) -> AlertDecision:
        """
        Evaluate whether to alert based on recent samples.

        Args:
            history: Most recent samples for one target, newest first

        Returns:
            AlertDecision indicating whether to alert and why
        """
        raise NotImplementedError


class Notifier(ABC):
    """
    Base class for all notifiers.

    Notifiers deliver rendered alerts to external destinations.
    """

    def __init__(self, config: dict[str, Any]):
        """
        Initialize the notifier with configuration.

        Args:
            config: Type-specific configuration dictionary
        """
        self.config = config

    @abstractmethod
    def send(self, subject: str, html_body: str) -> bool:
        """
        Send a notification.

        Args:
            subject: Short alert subject line
            html_body: HTML fragment describing the alert

        Returns:
            True if notification was sent successfully, False otherwise
        """
        raise NotImplementedError
