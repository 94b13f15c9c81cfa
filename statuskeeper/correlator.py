"""
Incident correlation: decides when a run of failed probes deserves an alert.
"""

import html
from collections.abc import Iterable, Sequence
from datetime import UTC, datetime
from typing import Any

from statuskeeper.config import Config
from statuskeeper.core import (
    ONLINE,
    Alert,
    AlertDecision,
    CorrelationRule,
    IncidentProvider,
    ServiceSample,
    ServiceTarget,
    StorageError,
    is_degraded,
    no_incidents,
)
from statuskeeper.dispatch import AlertDispatcher
from statuskeeper.logging_config import get_logger
from statuskeeper.registry import register_rule
from statuskeeper.store import SampleStore

logger = get_logger(__name__)


@register_rule("degradation_streak")
class DegradationStreakRule(CorrelationRule):
    """
    Alerts once when a service starts failing consistently.

    Fires when the ``consecutive_failures`` most recent samples are all
    degraded and the sample just before them was online. Later ticks of the
    same streak no longer have an online sample in that position, so one
    streak produces one alert. Alternating online/failed samples never
    build a streak and never alert.

    Config:
        consecutive_failures: Degraded samples required (default: 2)
    """

    def __init__(self, config: dict[str, Any]):
        super().__init__(config)
        raw = config.get("consecutive_failures", 2)
        try:
            value = int(raw)
        except (TypeError, ValueError) as e:
            raise ValueError(f"consecutive_failures must be an integer, got {raw!r}") from e
        if value < 1:
            raise ValueError(f"consecutive_failures must be at least 1, got {value}")
        self._consecutive_failures = value

    @property
    def consecutive_failures(self) -> int:
        return self._consecutive_failures

    @property
    def history_size(self) -> int:
        return self.consecutive_failures + 1

    def evaluate(self, history: Sequence[ServiceSample]) -> AlertDecision:
        """Alert on the first tick of a sustained degradation."""
        needed = self.consecutive_failures

        if len(history) < needed + 1:
            return AlertDecision(
                should_alert=False,
                message=f"Not enough history ({len(history)} of {needed + 1} samples)",
                context={}
            )

        streak = history[:needed]
        before = history[needed]
        if all(is_degraded(s.status) for s in streak) and before.status == ONLINE:
            return AlertDecision(
                should_alert=True,
                message=f"{needed} consecutive failed checks after being online",
                context={
                    "status": streak[0].status,
                    "response_time": streak[0].response_time,
                    "timestamp": streak[0].timestamp,
                    "online_until": before.timestamp,
                }
            )

        return AlertDecision(
            should_alert=False,
            message="No new degradation streak",
            context={}
        )


def render_alert(
    target: ServiceTarget,
    decision: AlertDecision,
    site_name: str,
    incident_titles: Iterable[str] = ()
) -> Alert:
    """Render the subject and HTML body for a degraded service."""
    status = decision.context.get("status", "offline")
    subject = f"{site_name}: {target.name} is {status}"

    response_time = decision.context.get("response_time")
    timestamp = decision.context.get("timestamp")
    when = (
        datetime.fromtimestamp(timestamp / 1000, tz=UTC).strftime("%Y-%m-%d %H:%M:%S UTC")
        if timestamp is not None else "unknown"
    )

    rows = [
        ("Service", target.name),
        ("Description", target.description),
        ("URL", target.display_url),
        ("Status", status),
        ("Response time", f"{response_time} ms" if response_time is not None else "no response"),
        ("Detected", when),
    ]
    titles = list(incident_titles)
    if titles:
        rows.append(("Related incidents", ", ".join(titles)))

    body = [f"<h2>{html.escape(target.name)} is {html.escape(status)}</h2>"]
    body.append(f"<p>{html.escape(decision.message)}.</p>")
    body.append("<table>")
    for label, value in rows:
        body.append(
            f"<tr><td><strong>{html.escape(label)}</strong></td>"
            f"<td>{html.escape(str(value))}</td></tr>"
        )
    body.append("</table>")

    return Alert(subject=subject, body="\n".join(body))


class IncidentCorrelator:
    """Evaluates a recorded batch and dispatches alerts for new degradations."""

    def __init__(
        self,
        store: SampleStore,
        rule: CorrelationRule,
        dispatcher: AlertDispatcher,
        incident_provider: IncidentProvider = no_incidents
    ) -> None:
        self.store = store
        self.rule = rule
        self.dispatcher = dispatcher
        self.incident_provider = incident_provider

    def _incident_titles(self, url: str) -> list[str]:
        try:
            return [i.title for i in self.incident_provider() if i.affects(url)]
        except Exception:
            logger.warning("Could not load incidents for %s", url, exc_info=True)
            return []

    def evaluate_target(
        self,
        target: ServiceTarget,
        snapshot: Config,
        sample: ServiceSample | None = None
    ) -> Alert | None:
        """
        Evaluate one target's history and queue an alert if the rule fires.

        When ``sample`` is given, the stored history must end with it;
        otherwise the sample was not recorded and the target is skipped.
        """
        try:
            history = self.store.latest(target.url, self.rule.history_size)
        except StorageError:
            logger.error("Could not load history for %s", target.url, exc_info=True)
            return None

        if sample is not None and (not history or history[0].timestamp != sample.timestamp):
            logger.warning("Latest sample for %s was not recorded, skipping correlation", target.url)
            return None

        decision = self.rule.evaluate(history)
        if not decision.should_alert:
            logger.debug("No alert for %s: %s", target.url, decision.message)
            return None

        alert = render_alert(
            target,
            decision,
            snapshot.name,
            self._incident_titles(target.url)
        )
        logger.warning("Service %s degraded: %s", target.name, decision.message)
        self.dispatcher.submit(alert)
        return alert

    def evaluate(
        self,
        batch: Sequence[tuple[ServiceTarget, ServiceSample]],
        snapshot: Config
    ) -> list[Alert]:
        """
        Evaluate every degraded target of a recorded batch.

        Returns:
            Alerts that were queued
        """
        if not self.dispatcher.notifiers:
            logger.debug("No notifiers configured, skipping correlation")
            return []

        alerts = []
        for target, sample in batch:
            if not is_degraded(sample.status):
                continue
            alert = self.evaluate_target(target, snapshot, sample)
            if alert:
                alerts.append(alert)
        return alerts
