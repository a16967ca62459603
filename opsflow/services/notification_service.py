"""
Notification delivery for workflow and agent steps.

Email goes through SendGrid; chat notifications go to a Slack incoming webhook.
Both raise NotificationError on failure so the workflow retry policy can act
on it.
"""

import html
from typing import Optional

import requests
from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, Email, To, Content

from opsflow.services.errors import NotificationError
from opsflow.services.structured_logging import get_logger

logger = get_logger('opsflow.notifications')


class NotificationService:
    """Sends emails via SendGrid and chat messages via Slack webhooks."""

    def __init__(self, sendgrid_api_key: Optional[str] = None,
                 from_email: str = "workflows@opsflow.dev", from_name: str = "OpsFlow",
                 slack_webhook_url: Optional[str] = None, timeout: int = 15):
        self.from_email = from_email
        self.from_name = from_name
        self.slack_webhook_url = slack_webhook_url
        self.timeout = timeout

        if not sendgrid_api_key:
            logger.warning("SENDGRID_API_KEY not set - emails will not be sent")
            self.client = None
        else:
            self.client = SendGridAPIClient(sendgrid_api_key)

    def send_email(self, to_email: str, subject: str, body: str) -> None:
        """
        Send a plain-text email (also rendered as minimal HTML).

        Raises:
            NotificationError: SendGrid not configured, rejected, or unreachable
        """
        if not self.client:
            raise NotificationError("Cannot send email - SendGrid not configured")

        message = Mail(
            from_email=Email(self.from_email, self.from_name),
            to_emails=To(to_email),
            subject=subject,
            html_content=Content("text/html", f"<pre>{html.escape(body)}</pre>")
        )
        message.add_content(Content("text/plain", body))

        try:
            response = self.client.send(message)
        except Exception as e:
            logger.error(f"Error sending email to {to_email}: {e}")
            raise NotificationError(f"Email delivery failed: {e}")

        if response.status_code not in (200, 201, 202):
            logger.error(f"SendGrid error: {response.status_code}", to_email=to_email)
            raise NotificationError(f"Email delivery failed with status {response.status_code}")

        logger.info(f"Email sent successfully to {to_email}: {subject}")

    def send_notification(self, message: str, channel: Optional[str] = None,
                          webhook_url: Optional[str] = None) -> None:
        """
        Post ``message`` to Slack.

        With no webhook configured the notification is only logged, which keeps
        local and test deployments usable.
        """
        url = webhook_url or self.slack_webhook_url
        if not url:
            logger.info("Notification (no Slack webhook configured)", channel=channel, text=message)
            return

        payload = {"text": message}
        if channel:
            payload["channel"] = channel

        try:
            response = requests.post(url, json=payload, timeout=self.timeout)
        except requests.exceptions.RequestException as e:
            raise NotificationError(f"Slack notification failed: {e}")

        if not 200 <= response.status_code < 300:
            raise NotificationError(f"Slack notification failed with status {response.status_code}")

        logger.info("Notification sent", channel=channel)
