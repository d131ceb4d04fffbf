"""
Email transport abstraction for SendGrid and in-memory testing.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Email, Mail, To

logger = logging.getLogger(__name__)


class EmailTransportError(Exception):
    """The transport did not accept the message."""


class EmailTransport(Protocol):
    """Sends a single HTML email."""

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        ...


@dataclass
class SentEmail:
    recipient: str
    subject: str
    html_body: str
    sender: str


@dataclass
class InMemoryEmailTransport:
    """Records messages instead of sending them. Set `fail_with` to simulate errors."""

    sender_email: str = "orders@example.test"
    sender_name: Optional[str] = None
    sent: List[SentEmail] = field(default_factory=list)
    fail_with: Optional[Exception] = None

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        if self.fail_with is not None:
            raise EmailTransportError(str(self.fail_with)) from self.fail_with
        if not recipient:
            raise EmailTransportError("No recipients defined")
        sender = (
            f'"{self.sender_name}" <{self.sender_email}>'
            if self.sender_name
            else self.sender_email
        )
        logger.info("[MOCK EMAIL] To: %s Subject: %s", recipient, subject)
        self.sent.append(
            SentEmail(
                recipient=recipient,
                subject=subject,
                html_body=html_body,
                sender=sender,
            )
        )


@dataclass
class SendGridEmailTransport:
    """Transactional email through the SendGrid v3 API."""

    api_key: str
    sender_email: str
    sender_name: Optional[str] = None

    def __post_init__(self):
        self._client = SendGridAPIClient(api_key=self.api_key)

    def send(self, recipient: str, subject: str, html_body: str) -> None:
        if not recipient:
            raise EmailTransportError("No recipients defined")
        try:
            message = Mail(
                from_email=Email(self.sender_email, self.sender_name),
                to_emails=To(recipient),
                subject=subject,
                html_content=html_body,
            )
            response = self._client.send(message)
        except Exception as e:
            raise EmailTransportError(f"SendGrid request failed: {e}") from e
        if response.status_code not in (200, 201, 202):
            raise EmailTransportError(
                f"SendGrid rejected the message with status {response.status_code}"
            )
        logger.info("Email sent to %s", recipient)
