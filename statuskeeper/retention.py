"""
Retention: removes samples that fell out of the history window.
"""

from statuskeeper.core import Clock, StorageError, now_ms
from statuskeeper.logging_config import get_logger
from statuskeeper.store import SampleStore

logger = get_logger(__name__)

MS_PER_HOUR = 60 * 60 * 1000


class RetentionManager:
    """Prunes the sample store once per probe cycle."""

    def __init__(self, store: SampleStore, clock: Clock = now_ms) -> None:
        self.store = store
        self.clock = clock

    def cutoff(self, retention_hours: float) -> int:
        """Oldest timestamp that is still kept."""
        return self.clock() - int(retention_hours * MS_PER_HOUR)

    def prune(self, retention_hours: float) -> int:
        """
        Delete samples older than the retention horizon.

        Failures are logged and left for the next cycle.

        Returns:
            Number of samples removed
        """
        cutoff = self.cutoff(retention_hours)
        try:
            removed = self.store.prune_older_than(cutoff)
        except StorageError:
            logger.error("Pruning samples older than %s failed", cutoff, exc_info=True)
            return 0

        if removed:
            logger.info("Pruned %s sample(s) older than %sh", removed, retention_hours)
        return removed
