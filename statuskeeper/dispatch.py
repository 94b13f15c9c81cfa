"""
Alert dispatch: hands rendered alerts to notifiers off the probe path.
"""

import queue
import threading
from collections.abc import Sequence

from statuskeeper.core import Alert, Notifier
from statuskeeper.logging_config import get_logger

logger = get_logger(__name__)


class AlertDispatcher:
    """
    Queues alerts and delivers them to every notifier.

    ``submit`` only enqueues, so correlation is never slowed down or failed
    by a mail server. Delivery happens on a worker thread after ``start``,
    or synchronously through ``drain``. Failed deliveries are logged and
    not retried.
    """

    def __init__(self, notifiers: Sequence[Notifier] = ()) -> None:
        self._notifiers: tuple[Notifier, ...] = tuple(notifiers)
        self._queue: queue.Queue[Alert | None] = queue.Queue()
        self._thread: threading.Thread | None = None

    @property
    def notifiers(self) -> tuple[Notifier, ...]:
        return self._notifiers

    def set_notifiers(self, notifiers: Sequence[Notifier]) -> None:
        """Replace the notifier set, e.g. after a configuration change."""
        self._notifiers = tuple(notifiers)

    def submit(self, alert: Alert) -> None:
        """Queue an alert for delivery."""
        self._queue.put(alert)

    def pending(self) -> int:
        """Number of alerts waiting for delivery."""
        return self._queue.qsize()

    def deliver(self, alert: Alert) -> int:
        """
        Send one alert to every notifier.

        Returns:
            Number of notifiers that reported success
        """
        delivered = 0
        for notifier in self._notifiers:
            try:
                if notifier.send(alert.subject, alert.body):
                    delivered += 1
                else:
                    logger.warning(
                        "Notifier %s returned False for '%s'",
                        notifier.__class__.__name__,
                        alert.subject
                    )
            except Exception:
                logger.error(
                    "Error sending notification via %s for '%s'",
                    notifier.__class__.__name__,
                    alert.subject,
                    exc_info=True
                )
        return delivered

    def drain(self) -> int:
        """Deliver everything currently queued on the calling thread."""
        count = 0
        while True:
            try:
                alert = self._queue.get_nowait()
            except queue.Empty:
                return count
            if alert is not None:
                self.deliver(alert)
                count += 1
            self._queue.task_done()

    def _run(self) -> None:
        while True:
            alert = self._queue.get()
            try:
                if alert is None:
                    return
                self.deliver(alert)
            finally:
                self._queue.task_done()

    def start(self) -> None:
        """Start the delivery worker."""
        if self._thread and self._thread.is_alive():
            return
        self._thread = threading.Thread(target=self._run, name="alert-dispatch", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5) -> None:
        """Stop the worker after it has delivered what is already queued."""
        if self._thread:
            self._queue.put(None)
            self._thread.join(timeout=timeout)
            self._thread = None
