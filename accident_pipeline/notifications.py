# File: accident_pipeline/notifications.py

import logging
from typing import List, Optional, Tuple

import requests

from accident_pipeline.config import PipelineConfig

# ────────────────────────────────────────────────────────────────────────────────
# Email Notification Utility Module
#
# Sends operator emails through the SendGrid v3 mail API. Stages never send
# mid-run: they queue messages and flush the queue once, after their
# transactional work has finished.
#
# Reference: https://docs.sendgrid.com/api-reference/mail-send/mail-send
# ────────────────────────────────────────────────────────────────────────────────

logger = logging.getLogger("Notifications")

SENDGRID_API_URL = "https://api.sendgrid.com/v3/mail/send"
REQUEST_TIMEOUT = 10  # seconds


class EmailNotifier:
    """Delivers (subject, body) messages as email. Delivery failures are logged, never raised."""

    def __init__(self, api_key: str, sender: str, recipient: str, sender_name: str = "Accident Pipeline"):
        self.api_key = api_key
        self.sender = sender
        self.recipient = recipient
        self.sender_name = sender_name

    @classmethod
    def from_config(cls, config: PipelineConfig) -> "EmailNotifier":
        return cls(config.notification_api_key, config.notify_from, config.notify_to)

    def send(self, subject: str, body: str) -> bool:
        """
        Send one email.

        Returns:
            True if the service accepted the message, False otherwise
        """
        payload = {
            "personalizations": [{"to": [{"email": self.recipient, "name": "Admin"}]}],
            "from": {"email": self.sender, "name": self.sender_name},
            "subject": subject,
            "content": [{"type": "text/plain", "value": body}],
        }
        headers = {"Authorization": f"Bearer {self.api_key}"}

        try:
            response = requests.post(SENDGRID_API_URL, json=payload, headers=headers, timeout=REQUEST_TIMEOUT)
        except requests.RequestException as e:
            logger.error(f"Error sending email: {e}")
            return False

        if not response.ok:
            logger.error(f"Failed to send email. Status Code: {response.status_code} {response.text}")
            return False

        logger.info("Email sent successfully.")
        return True


class NotificationQueue:
    """Collects diagnostic messages during a run for delivery in the stage epilogue."""

    def __init__(self):
        self.messages: List[Tuple[str, str]] = []

    def add(self, subject: str, body: str) -> None:
        self.messages.append((subject, body))

    def __len__(self) -> int:
        return len(self.messages)

    def flush(self, notifier: Optional[EmailNotifier]) -> int:
        """
        Deliver every queued message once and empty the queue.

        Returns:
            Number of messages the notifier accepted
        """
        pending, self.messages = self.messages, []
        if notifier is None:
            if pending:
                logger.warning(f"No notifier configured; dropping {len(pending)} queued notifications")
            return 0

        delivered = 0
        for subject, body in pending:
            if notifier.send(subject, body):
                delivered += 1
        return delivered
