"""
Operator alerting with failure/recovery deduplication.

The gateway remembers the message of the last failure it alerted on. A
sustained outage producing the same message over and over results in one
email; a different message, or the same message after a recovery, alerts
again. Sending is best-effort: a broken mail relay is logged and otherwise
ignored so it can never disturb the reconciliation state.
"""

import logging
from email.message import EmailMessage
from email.utils import make_msgid
from typing import List, Optional

import aiosmtplib

from core.config import Settings
from core.exceptions import AlertTransportError

logger = logging.getLogger(__name__)


class AlertSender:
    """Delivery mechanism for a single alert."""

    async def send(self, subject: str, body: str) -> None:
        raise NotImplementedError


class LoggingAlertSender(AlertSender):
    """Used when no mail relay is configured."""

    async def send(self, subject: str, body: str) -> None:
        logger.warning(f"ALERT (mail not configured) {subject}: {body}")


class EmailAlertSender(AlertSender):
    """Plain-text alert mail over SMTP."""

    TIMEOUT = 10  # seconds

    def __init__(
        self,
        smtp_host: str,
        sender: str,
        recipients: List[str],
        smtp_port: int = 25
    ):
        self.smtp_host = smtp_host
        self.smtp_port = smtp_port
        self.sender = sender
        self.recipients = recipients

    def _build_message(self, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.sender
        message["To"] = ", ".join(self.recipients)
        message["Subject"] = subject
        message["Message-ID"] = make_msgid()
        message.set_content(body)
        return message

    async def send(self, subject: str, body: str) -> None:
        message = self._build_message(subject, body)
        try:
            await aiosmtplib.send(
                message,
                hostname=self.smtp_host,
                port=self.smtp_port,
                timeout=self.TIMEOUT,
            )
        except (aiosmtplib.SMTPException, OSError) as e:
            raise AlertTransportError(
                "Failed to send alert mail",
                context={"smtp_host": self.smtp_host, "subject": subject},
                original_exception=e
            )
        logger.info(f"Alert mail sent: {subject}")


class AlertGateway:
    """
    Deduplicating front of the alert sender.

    Attributes:
        last_alerted_message: Message of the last failure alerted on, None
            when no failure is outstanding
    """

    def __init__(
        self,
        sender: AlertSender,
        failure_subject: str = "Document sync failure",
        recovery_subject: str = "Document sync recovered",
        recovery_body: str = "The document sync service is able to reach its endpoints again.",
        last_alerted_message: Optional[str] = None
    ):
        self.sender = sender
        self.failure_subject = failure_subject
        self.recovery_subject = recovery_subject
        self.recovery_body = recovery_body
        self.last_alerted_message = last_alerted_message

    @classmethod
    def from_settings(cls, settings: Settings) -> "AlertGateway":
        if settings.MAIL_SMTP_HOST and settings.MAIL_SENDER and settings.mail_recipients:
            sender: AlertSender = EmailAlertSender(
                smtp_host=settings.MAIL_SMTP_HOST,
                smtp_port=settings.MAIL_SMTP_PORT,
                sender=settings.MAIL_SENDER,
                recipients=settings.mail_recipients,
            )
        else:
            sender = LoggingAlertSender()
        return cls(
            sender,
            failure_subject=settings.MAIL_SUBJ_FAILURE,
            recovery_subject=settings.MAIL_SUBJ_SUCCESS,
            recovery_body=settings.MAIL_BODY_SUCCESS,
        )

    async def _send(self, subject: str, body: str) -> bool:
        try:
            await self.sender.send(subject, body)
            return True
        except AlertTransportError as e:
            logger.error(f"Alert not delivered: {e}")
            return False

    async def notify_failure(self, message: str) -> bool:
        """
        Alert on a recoverable failure unless it repeats the outstanding one.

        Returns:
            True when an alert was attempted
        """
        if self.last_alerted_message == message:
            logger.debug(f"Suppressing repeated alert: {message}")
            return False
        self.last_alerted_message = message
        await self._send(self.failure_subject, message)
        return True

    async def notify_recovery(self) -> bool:
        """Alert once when contact is re-established after a failure."""
        if self.last_alerted_message is None:
            return False
        self.last_alerted_message = None
        await self._send(self.recovery_subject, self.recovery_body)
        return True

    async def notify_delivery_failure(self, document_id: str, code: int, body: str) -> None:
        """Target rejected a document with a server error. Not deduplicated."""
        await self._send(
            f"{self.failure_subject}: delivery of {document_id} returned {code}",
            body or f"Target answered {code} for document {document_id}"
        )
