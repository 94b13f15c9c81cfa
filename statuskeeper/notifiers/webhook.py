"""
Webhook notifier for StatusKeeper.
"""

import requests

from statuskeeper.core import Notifier
from statuskeeper.logging_config import get_logger
from statuskeeper.registry import register_notifier

logger = get_logger(__name__)


@register_notifier("webhook")
class WebhookNotifier(Notifier):
    """
    Sends notifications via HTTP webhook.

    Config:
        url: Webhook URL to send to
        method: HTTP method, POST or PUT (default: POST)
        headers: Optional HTTP headers
        timeout: Request timeout in seconds (default: 10)
    """

    def send(self, subject: str, html_body: str) -> bool:
        """Send notification via webhook."""
        url = self.config["url"]
        method = self.config.get("method", "POST").upper()
        headers = self.config.get("headers", {})
        timeout = self.config.get("timeout", 10)

        payload = {
            "subject": subject,
            "body": html_body,
        }

        if method not in ("POST", "PUT"):
            logger.error("Unsupported webhook method %s for %s", method, url)
            return False

        try:
            response = requests.request(method, url, json=payload, headers=headers, timeout=timeout)
            response.raise_for_status()
            logger.info("Webhook notification sent to %s", url)
            return True
        except requests.RequestException:
            logger.error("Failed to send webhook notification to %s", url, exc_info=True)
            return False


# Export for dynamic importing
__all__ = ["WebhookNotifier"]
