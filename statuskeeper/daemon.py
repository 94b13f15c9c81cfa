"""
Main daemon entry point for StatusKeeper.
"""

import argparse
import signal
import sys
import time
from typing import Any

from statuskeeper.aggregator import Aggregator
from statuskeeper.config import Config, YamlConfigLoader
from statuskeeper.core import Clock, IncidentProvider, ServiceSample, no_incidents, now_ms
from statuskeeper.correlator import IncidentCorrelator
from statuskeeper.dispatch import AlertDispatcher
from statuskeeper.logging_config import get_logger, setup_logging
from statuskeeper.plugins import build_notifiers, build_rule
from statuskeeper.retention import RetentionManager
from statuskeeper.scheduler import ConfigLoader, Scheduler
from statuskeeper.store import SampleStore
from statuskeeper.targets import TargetRegistry
from statuskeeper.watcher import ConfigFileWatcher

logger = get_logger(__name__)


class StatusDaemon:  # pylint: disable=too-many-instance-attributes
    """
    Wires the monitoring components together.

    Besides running the loops, the daemon is the query boundary used by
    the rest of the application: ``get_status_view`` and ``get_samples``.
    """

    def __init__(
        self,
        config_path: str | None = None,
        loader: ConfigLoader | None = None,
        incident_provider: IncidentProvider = no_incidents,
        clock: Clock = now_ms
    ) -> None:
        """
        Initialize the daemon.

        Args:
            config_path: Path to configuration file
            loader: Alternative configuration source (takes precedence)
            incident_provider: Callable returning the current incidents
            clock: Millisecond clock, injectable for tests

        Raises:
            ValueError: If neither a path nor a loader is given
        """
        if loader is None:
            if config_path is None:
                raise ValueError("Either config_path or loader is required")
            loader = YamlConfigLoader(config_path)

        self.config_path = config_path
        self.loader = loader
        self.incident_provider = incident_provider
        self.clock = clock

        config = loader.load()
        self.registry = TargetRegistry(config)
        self.store = SampleStore(config.database_url)
        self.dispatcher = AlertDispatcher(build_notifiers(config))
        self.correlator = IncidentCorrelator(
            self.store,
            build_rule(config),
            self.dispatcher,
            incident_provider
        )
        self.retention = RetentionManager(self.store, clock)
        self.aggregator = Aggregator(self.store, clock)
        self.scheduler = Scheduler(
            registry=self.registry,
            loader=loader,
            store=self.store,
            correlator=self.correlator,
            retention=self.retention,
            dispatcher=self.dispatcher,
            clock=clock,
        )
        self.file_watcher: ConfigFileWatcher | None = None
        self.running = False

    @property
    def config(self) -> Config:
        """The active configuration snapshot."""
        return self.registry.snapshot

    def get_status_view(self) -> dict[str, Any]:
        """Current status page payload."""
        try:
            incidents = self.incident_provider()
        except Exception:
            logger.warning("Could not load incidents for status view", exc_info=True)
            incidents = ()
        return self.aggregator.status_view(self.registry.snapshot, incidents=incidents).to_dict()

    def get_samples(self, url: str, since: int = 0) -> list[ServiceSample]:
        """Raw samples for one target since a timestamp, oldest first."""
        return self.store.query_range(url=url, since=since)

    def start(self, block: bool = True) -> None:
        """Start the daemon."""
        logger.info("Starting StatusKeeper daemon")

        self.scheduler.start()
        if self.config_path:
            self.file_watcher = ConfigFileWatcher(self.config_path, self.scheduler.request_config_check)
            self.file_watcher.start()

        self.running = True
        logger.info("StatusKeeper daemon running")

        if not block:
            return

        try:
            while self.running:
                time.sleep(1)
        except KeyboardInterrupt:
            logger.info("Shutdown signal received")
            self.stop()

    def stop(self) -> None:
        """Stop the daemon."""
        logger.info("Stopping StatusKeeper daemon")
        self.running = False

        if self.file_watcher:
            self.file_watcher.stop()
            self.file_watcher = None
        self.scheduler.stop()
        self.store.close()

        logger.info("StatusKeeper daemon stopped")


def main() -> None:
    """Entry point for the daemon."""
    parser = argparse.ArgumentParser(description="StatusKeeper monitoring daemon")
    parser.add_argument(
        '--config',
        default='/etc/statuskeeper/config.yaml',
        help='Path to configuration file (default: /etc/statuskeeper/config.yaml)'
    )
    parser.add_argument(
        '--log-level',
        default='INFO',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
        help='Log level (default: INFO)'
    )
    parser.add_argument(
        '--log-file',
        help='Optional log file path (logs to console if not specified)'
    )
    args = parser.parse_args()

    setup_logging(level=args.log_level, log_file=args.log_file)

    try:
        daemon = StatusDaemon(args.config)
    except Exception:
        logger.critical("Could not load configuration from %s", args.config, exc_info=True)
        sys.exit(1)

    def signal_handler(_sig: int, _frame: Any) -> None:
        logger.info("Shutdown signal received")
        daemon.stop()
        sys.exit(0)

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    try:
        daemon.start()
    except Exception:
        logger.critical("Fatal error", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
