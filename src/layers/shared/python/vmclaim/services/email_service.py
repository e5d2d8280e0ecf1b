"""Email delivery via Amazon SES.

Plain-text alert mail only; the notifier decides when to send.
"""

import os
from typing import Any

import boto3
import structlog
from botocore.exceptions import BotoCoreError, ClientError

from vmclaim.utils.exceptions import NotificationDeliveryError

logger = structlog.get_logger()


class EmailService:
    """Service for sending emails via Amazon SES."""

    def __init__(
        self,
        region_name: str | None = None,
        from_email: str | None = None,
        configuration_set: str | None = None,
    ):
        """Initialize Email service.

        Args:
            region_name: AWS region for SES. Falls back to AWS_REGION env var.
            from_email: Sender address. Falls back to SES_FROM_EMAIL env var.
            configuration_set: Optional SES configuration set for tracking.
        """
        self.region_name = region_name or os.environ.get("AWS_REGION", "us-east-1")
        self.from_email = from_email or os.environ.get("SES_FROM_EMAIL")
        self.configuration_set = configuration_set or os.environ.get("SES_CONFIGURATION_SET")
        self._client = None

    @property
    def client(self):
        """Get SES client (lazy initialization).

        Returns:
            Boto3 SES client.
        """
        if self._client is None:
            self._client = boto3.client("ses", region_name=self.region_name)
        return self._client

    def send_email(
        self,
        to: str | list[str],
        subject: str,
        body_text: str,
    ) -> dict[str, Any]:
        """Send a plain-text email.

        Args:
            to: Recipient email address(es).
            subject: Email subject.
            body_text: Plain text body.

        Returns:
            Dict with message_id and status.

        Raises:
            NotificationDeliveryError: If sending fails.
        """
        if not self.from_email:
            raise NotificationDeliveryError("ses", "Sender email address is required")

        if not to:
            raise NotificationDeliveryError("ses", "Recipient email address is required")

        # Normalize to list
        if isinstance(to, str):
            to = [to]

        kwargs: dict[str, Any] = {
            "Source": self.from_email,
            "Destination": {"ToAddresses": to},
            "Message": {
                "Subject": {"Data": subject, "Charset": "UTF-8"},
                "Body": {"Text": {"Data": body_text, "Charset": "UTF-8"}},
            },
        }

        if self.configuration_set:
            kwargs["ConfigurationSetName"] = self.configuration_set

        try:
            response = self.client.send_email(**kwargs)
        except ClientError as e:
            error_code = e.response["Error"]["Code"]
            error_message = e.response["Error"]["Message"]

            logger.error(
                "SES send failed",
                error_code=error_code,
                error_message=error_message,
                to=to,
            )

            raise NotificationDeliveryError("ses", f"Failed to send email: {error_message}") from e
        except BotoCoreError as e:
            raise NotificationDeliveryError("ses", f"Failed to send email: {e}") from e

        logger.info("Email sent successfully", message_id=response["MessageId"])

        return {
            "message_id": response["MessageId"],
            "status": "sent",
            "to": to,
            "subject": subject,
        }
