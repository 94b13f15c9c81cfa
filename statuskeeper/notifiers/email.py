"""
Email notifier for StatusKeeper.
"""

import smtplib
import ssl
from email.message import EmailMessage
from email.utils import formataddr

from statuskeeper.core import Notifier
from statuskeeper.logging_config import get_logger
from statuskeeper.registry import register_notifier

logger = get_logger(__name__)

MAIL_HEADER = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
</head>
<body style="font-family: Arial, sans-serif; color: #333; margin: 0; padding: 0; line-height: 1.5;">
    <div style="background-color: #F4F4F4; padding: 20px; box-sizing: border-box;">
        <div style="background-color: #FFFFFF; max-width: 600px; margin: 0 auto; padding: 20px; border-radius: 8px; box-sizing: border-box;">
"""

MAIL_FOOTER = """
        </div>
    </div>
</body>
</html>
"""

SMTPS_PORT = 465


def wrap_html(fragment: str) -> str:
    """Place an alert fragment inside the mail layout."""
    return MAIL_HEADER + fragment + MAIL_FOOTER


@register_notifier("email")
class EmailNotifier(Notifier):
    """
    Sends notifications via email.

    Port 465 connects with implicit TLS; any other port uses plain SMTP,
    upgraded with STARTTLS unless ``starttls`` is false.

    Config:
        smtp_host: SMTP server hostname
        smtp_port: SMTP server port (default: 587)
        send_from: Sender email address
        recipients: List of recipient addresses
        name: Display name for the sender (optional)
        username: SMTP username (optional)
        password: SMTP password (optional)
        starttls: Upgrade plain connections with STARTTLS (default: True)
        timeout: Connection timeout in seconds (default: 30)
    """

    def build_message(self, subject: str, html_body: str) -> EmailMessage:
        """Assemble the message without sending it."""
        message = EmailMessage()
        name = self.config.get("name")
        send_from = self.config["send_from"]
        message["From"] = formataddr((name, send_from)) if name else send_from
        message["To"] = ", ".join(self.config.get("recipients", []))
        message["Subject"] = subject
        message.set_content(f"{subject}\n\nThis message requires an HTML capable mail client.")
        message.add_alternative(wrap_html(html_body), subtype="html")
        return message

    def send(self, subject: str, html_body: str) -> bool:
        """Send notification via email."""
        recipients = self.config.get("recipients", [])
        if not recipients:
            logger.warning("No mail recipients configured, skipping '%s'", subject)
            return False

        host = self.config.get("smtp_host", "localhost")
        port = int(self.config.get("smtp_port", 587))
        timeout = self.config.get("timeout", 30)
        username = self.config.get("username")
        password = self.config.get("password")

        message = self.build_message(subject, html_body)

        try:
            if port == SMTPS_PORT:
                smtp: smtplib.SMTP = smtplib.SMTP_SSL(
                    host, port, timeout=timeout, context=ssl.create_default_context()
                )
            else:
                smtp = smtplib.SMTP(host, port, timeout=timeout)

            with smtp:
                if port != SMTPS_PORT and self.config.get("starttls", True):
                    smtp.starttls(context=ssl.create_default_context())
                if username:
                    smtp.login(username, password or "")
                smtp.send_message(message)

            logger.info("Mail sent to %s recipient(s): %s", len(recipients), subject)
            return True
        except (smtplib.SMTPException, OSError):
            logger.error("Failed to send mail '%s' via %s:%s", subject, host, port, exc_info=True)
            return False


# Export for dynamic importing
__all__ = ["EmailNotifier"]
