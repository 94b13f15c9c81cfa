"""
Scheduling of the probe loop and the configuration watch loop.
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from statuskeeper.config import Config
from statuskeeper.core import Clock, ServiceSample, now_ms
from statuskeeper.correlator import IncidentCorrelator
from statuskeeper.dispatch import AlertDispatcher
from statuskeeper.logging_config import get_logger
from statuskeeper.plugins import build_notifiers, build_rule
from statuskeeper.prober import HttpProber
from statuskeeper.retention import RetentionManager
from statuskeeper.store import SampleStore
from statuskeeper.targets import TargetRegistry

logger = get_logger(__name__)


class ConfigLoader(Protocol):
    """Anything that can produce a fresh configuration snapshot."""

    def load(self) -> Config:
        ...


def prober_for(snapshot: Config) -> HttpProber:
    """Build the prober a snapshot asks for."""
    return HttpProber(
        timeout_seconds=snapshot.probe.timeout_seconds,
        user_agent=snapshot.probe.user_agent
    )


class PeriodicTask:
    """
    Runs a callback on its own thread at a fixed period.

    The pending wait can be cancelled and restarted with a new period via
    ``reschedule``; a callback that is already running is never interrupted.
    Exceptions from the callback are logged and the loop keeps going.
    """

    def __init__(
        self,
        name: str,
        interval_seconds: float,
        callback: Callable[[], object],
        run_immediately: bool = False
    ) -> None:
        self.name = name
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.run_count = 0
        self._run_now = run_immediately
        self._flag_lock = threading.Lock()
        self._wake = threading.Event()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def _take_run_now(self) -> bool:
        with self._flag_lock:
            run_now = self._run_now
            self._run_now = False
            return run_now

    def _invoke(self) -> None:
        try:
            self.callback()
        except Exception:
            logger.error("Periodic task '%s' failed", self.name, exc_info=True)
        finally:
            self.run_count += 1

    def _loop(self) -> None:
        while not self._stop_event.is_set():
            if not self._take_run_now():
                woken = self._wake.wait(self.interval_seconds)
                if self._stop_event.is_set():
                    break
                if woken:
                    # Rescheduled or triggered: start over with the current settings
                    self._wake.clear()
                    continue
            self._invoke()

    def start(self) -> None:
        """Start the task thread."""
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name=self.name, daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5) -> None:
        """Stop the task thread, waiting for a running callback to finish."""
        self._stop_event.set()
        self._wake.set()
        if self._thread:
            self._thread.join(timeout=timeout)
            self._thread = None

    def trigger_now(self) -> None:
        """Run the callback as soon as possible, then resume the normal period."""
        with self._flag_lock:
            self._run_now = True
        self._wake.set()

    def reschedule(self, interval_seconds: float, run_now: bool = False) -> None:
        """Cancel the pending wait and continue with a new period."""
        with self._flag_lock:
            self.interval_seconds = interval_seconds
            if run_now:
                self._run_now = True
        self._wake.set()


class CycleState(Enum):
    """Stages of one probe cycle."""
    IDLE = "idle"
    PROBING = "probing"
    RECORDING = "recording"
    CORRELATING = "correlating"
    PRUNING = "pruning"


@dataclass
class CycleReport:
    """What one probe cycle did."""
    started_at: int
    probed: int = 0
    recorded: int = 0
    alerts: int = 0
    pruned: int = 0


class Scheduler:  # pylint: disable=too-many-instance-attributes
    """
    Drives the probe loop and the configuration watch loop.

    Probe cycles only ever run on the probe loop thread (or the caller of
    ``run_probe_cycle``), one at a time, so samples are written by a single
    writer. A configuration change asks that thread for an immediate cycle
    instead of running one itself.
    """

    def __init__(  # pylint: disable=too-many-arguments,too-many-positional-arguments
        self,
        registry: TargetRegistry,
        loader: ConfigLoader,
        store: SampleStore,
        correlator: IncidentCorrelator,
        retention: RetentionManager,
        dispatcher: AlertDispatcher,
        prober_factory: Callable[[Config], HttpProber] = prober_for,
        clock: Clock = now_ms
    ) -> None:
        self.registry = registry
        self.loader = loader
        self.store = store
        self.correlator = correlator
        self.retention = retention
        self.dispatcher = dispatcher
        self.prober_factory = prober_factory
        self.clock = clock
        self.state = CycleState.IDLE
        self.last_report: CycleReport | None = None
        self._cycle_lock = threading.Lock()

        snapshot = registry.snapshot
        self.probe_task = PeriodicTask(
            "probe-loop",
            snapshot.check_interval_seconds,
            self.run_probe_cycle,
            run_immediately=True
        )
        self.watch_task = PeriodicTask(
            "config-watch",
            snapshot.watch_interval_seconds,
            self.check_config
        )

    def _enter(self, state: CycleState) -> None:
        logger.debug("Probe cycle: %s -> %s", self.state.value, state.value)
        self.state = state

    def run_probe_cycle(self) -> CycleReport:
        """
        Probe all targets once, record the results, correlate and prune.

        Never raises; a failing stage is logged and the cycle ends in IDLE.
        """
        with self._cycle_lock:
            view = self.registry.current()
            snapshot = view.snapshot
            report = CycleReport(started_at=self.clock())

            try:
                self._enter(CycleState.PROBING)
                prober = self.prober_factory(snapshot)
                results = prober.probe_all(view.targets, snapshot.probe.max_concurrency)
                report.probed = len(results)

                self._enter(CycleState.RECORDING)
                timestamp = self.clock()
                batch = [
                    (target, ServiceSample(
                        url=target.url,
                        status=result.status,
                        response_time=result.response_time,
                        timestamp=timestamp,
                    ))
                    for target, result in zip(view.targets, results)
                ]
                report.recorded = self.store.append_batch(sample for _, sample in batch)
                if report.recorded < len(batch):
                    logger.warning(
                        "Recorded %s of %s sample(s)", report.recorded, len(batch)
                    )

                self._enter(CycleState.CORRELATING)
                try:
                    report.alerts = len(self.correlator.evaluate(batch, snapshot))
                except Exception:
                    logger.error("Incident correlation failed", exc_info=True)

                self._enter(CycleState.PRUNING)
                report.pruned = self.retention.prune(snapshot.data_retention_hours)
            except Exception:
                logger.error("Probe cycle failed while %s", self.state.value, exc_info=True)
            finally:
                self._enter(CycleState.IDLE)

            self.last_report = report
            logger.info(
                "Probe cycle done: %s probed, %s recorded, %s alert(s), %s pruned",
                report.probed,
                report.recorded,
                report.alerts,
                report.pruned
            )
            return report

    def apply_plugins(self, snapshot: Config) -> None:
        """Rebuild the rule and notifiers for a snapshot, keeping the old ones on error."""
        try:
            rule = build_rule(snapshot)
            notifiers = build_notifiers(snapshot)
        except (ValueError, KeyError):
            logger.error("Invalid alerting configuration, keeping previous plugins", exc_info=True)
            return
        self.correlator.rule = rule
        self.dispatcher.set_notifiers(notifiers)

    def check_config(self) -> bool:
        """
        Reload configuration and apply it if it changed.

        Returns:
            True if a new snapshot was installed
        """
        try:
            snapshot = self.loader.load()
        except Exception:
            logger.error("Failed to reload configuration, keeping previous snapshot", exc_info=True)
            return False

        old = self.registry.snapshot
        if not self.registry.swap(snapshot):
            return False

        if snapshot.database_url != old.database_url:
            logger.warning("database_url changed; restart required to use the new database")

        self.apply_plugins(snapshot)
        self.watch_task.reschedule(snapshot.watch_interval_seconds)
        self.probe_task.reschedule(snapshot.check_interval_seconds, run_now=True)
        logger.info(
            "Probe interval is now %s minute(s)", snapshot.check_interval_minutes
        )
        return True

    def request_config_check(self) -> None:
        """Check the configuration without waiting for the next watch tick."""
        self.watch_task.trigger_now()

    def start(self) -> None:
        """Start both loops and alert delivery."""
        self.dispatcher.start()
        self.probe_task.start()
        self.watch_task.start()
        logger.info(
            "Scheduler started: probing %s target(s) every %s minute(s)",
            len(self.registry.targets),
            self.registry.snapshot.check_interval_minutes
        )

    def stop(self) -> None:
        """Stop both loops and flush alert delivery."""
        self.watch_task.stop()
        self.probe_task.stop()
        self.dispatcher.stop()
        logger.info("Scheduler stopped")
