"""
Console notifier for StatusKeeper.
"""

from statuskeeper.core import Notifier
from statuskeeper.logging_config import get_logger
from statuskeeper.registry import register_notifier

logger = get_logger(__name__)


@register_notifier("console")
class ConsoleNotifier(Notifier):
    """
    Writes notifications to the log.

    Useful for testing and for deployments without mail.

    Config:
        (none required)
    """

    def send(self, subject: str, html_body: str) -> bool:
        """Log the alert."""
        logger.warning("ALERT: %s", subject)
        logger.debug("Alert body: %s", html_body)
        return True


# Export for dynamic importing
__all__ = ["ConsoleNotifier"]
