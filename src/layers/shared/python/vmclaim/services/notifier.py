"""Operator notifications.

Notifier.send never raises. Transport failures are logged here and dropped,
so an outage of the mail server can never stop the reconciliation loop.

Transports:
- SMTP (STARTTLS on 587, implicit TLS on 465)
- Amazon SES via EmailService
- Log-only, used when no transport is configured
"""

import smtplib
import ssl
from abc import ABC, abstractmethod
from email.message import EmailMessage

import structlog

from vmclaim.services.email_service import EmailService
from vmclaim.utils.exceptions import NotificationDeliveryError

logger = structlog.get_logger()

SENDER_NAME = "VM Claim Notifier"


class Notifier(ABC):
    """One-way alert delivery."""

    transport: str = "base"

    def __init__(self):
        self.logger = logger.bind(service="notifier", transport=self.transport)

    def send(self, subject: str, body: str) -> bool:
        """Deliver an alert.

        Args:
            subject: Alert subject line.
            body: Plain-text body.

        Returns:
            True if delivered (to the log for the log-only transport),
            False if delivery failed.
        """
        try:
            self._deliver(subject, body)
        except Exception as e:
            self.logger.error(
                "Failed to send notification",
                subject=subject,
                error=str(e),
                error_type=type(e).__name__,
            )
            return False

        self.logger.info("Notification sent", subject=subject)
        return True

    @abstractmethod
    def _deliver(self, subject: str, body: str) -> None:
        """Deliver or raise NotificationDeliveryError."""


class LogNotifier(Notifier):
    """Writes alerts to the log when no mail transport is configured."""

    transport = "none"

    def _deliver(self, subject: str, body: str) -> None:
        self.logger.warning("Mail not configured, alert logged only", subject=subject, body=body)


class SmtpNotifier(Notifier):
    """Sends alerts through an SMTP relay."""

    transport = "smtp"

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: str | None = None,
        password: str | None = None,
        to_address: str | None = None,
        from_address: str | None = None,
        timeout: float = 30.0,
    ):
        """Initialize the SMTP notifier.

        Args:
            host: SMTP host.
            port: SMTP port; 465 means implicit TLS, anything else STARTTLS when offered.
            username: Login user (also the default sender and recipient).
            password: Login password.
            to_address: Recipient; defaults to username.
            from_address: Sender; defaults to username or noreply@localhost.
            timeout: Socket timeout in seconds.
        """
        super().__init__()
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.to_address = to_address or username
        self.from_address = from_address or username or "noreply@localhost"
        self.timeout = timeout

    def build_message(self, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f'"{SENDER_NAME}" <{self.from_address}>'
        msg["To"] = self.to_address
        msg.set_content(body)
        return msg

    def _deliver(self, subject: str, body: str) -> None:
        if not self.to_address:
            raise NotificationDeliveryError(self.transport, "No recipient configured")

        msg = self.build_message(subject, body)
        context = ssl.create_default_context()

        try:
            if self.port == 465:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)

            with server:
                server.ehlo()
                if self.port != 465 and server.has_extn("starttls"):
                    server.starttls(context=context)
                if self.username and self.password:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationDeliveryError(self.transport, str(e)) from e


class SesNotifier(Notifier):
    """Sends alerts through Amazon SES."""

    transport = "ses"

    def __init__(self, to_address: str, email_service: EmailService):
        """Initialize the SES notifier.

        Args:
            to_address: Recipient address.
            email_service: Configured SES email service.
        """
        super().__init__()
        self.to_address = to_address
        self.email_service = email_service

    def _deliver(self, subject: str, body: str) -> None:
        self.email_service.send_email(to=self.to_address, subject=subject, body_text=body)
