"""
Order emails sent to suppliers on behalf of signed-in staff.
"""

from __future__ import annotations

import logging
from typing import Optional

from backend.errors import ErrorCode, ServiceError
from backend.mail import EmailTransport, EmailTransportError
from shared.api import SendOrderEmailResult
from shared.types import CallerIdentity

logger = logging.getLogger(__name__)

EMAIL_SENT_MESSAGE = "Email sent successfully!"


def send_order_email(
    transport: EmailTransport,
    caller: Optional[CallerIdentity],
    recipient_email: Optional[str],
    subject: Optional[str],
    body: Optional[str],
) -> SendOrderEmailResult:
    if caller is None:
        raise ServiceError(
            ErrorCode.UNAUTHENTICATED,
            "The function must be called while authenticated.",
        )

    try:
        transport.send(recipient_email, subject or "", body or "")
    except EmailTransportError as e:
        logger.error("There was an error sending the email: %s", e)
        raise ServiceError(ErrorCode.INTERNAL, "Error sending email.") from e

    logger.info("Order email sent to %s by %s", recipient_email, caller.uid)
    return SendOrderEmailResult(success=True, message=EMAIL_SENT_MESSAGE)
