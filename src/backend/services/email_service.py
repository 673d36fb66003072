"""
Email Service using Azure Communication Services.

Handles:
- New important survey notifications
"""

import asyncio
from html import escape
from typing import Optional

import structlog
from azure.communication.email import EmailClient

from core.config import settings

logger = structlog.get_logger(__name__)


def _mask(address: str) -> str:
    return address[:3] + "***"


class EmailService:
    """
    Email service using Azure Communication Services.

    Sending never raises: every failure is logged and reported as False, so
    callers can treat notifications as fire-and-forget.
    """

    def __init__(self):
        self._client: Optional[EmailClient] = None
        self._initialized = False
        self._sender_address: Optional[str] = None

    async def initialize(self) -> None:
        """Initialize the Azure Email client."""
        if self._initialized:
            return

        connection_string = settings.AZURE_COMMUNICATION_CONNECTION_STRING
        self._sender_address = settings.AZURE_EMAIL_SENDER_ADDRESS

        if not connection_string or not self._sender_address:
            logger.warning(
                "email_service_not_configured",
                has_connection_string=bool(connection_string),
                has_sender_address=bool(self._sender_address),
            )
            self._initialized = True
            return

        try:
            self._client = EmailClient.from_connection_string(connection_string)
            logger.info("email_service_initialized")
        except Exception as e:
            logger.error("email_service_init_failed", error=str(e))
        self._initialized = True

    @property
    def is_available(self) -> bool:
        """Check if email service is available."""
        return self._client is not None and self._sender_address is not None

    async def send_new_survey_notification(
        self,
        to_email: str,
        survey_title: str,
        survey_id: str,
        frontend_url: Optional[str] = None,
    ) -> bool:
        """
        Announce a new important survey.

        Args:
            to_email: Recipient email address
            survey_title: Title shown in the subject and body
            survey_id: Survey the email links to
            frontend_url: Base URL for the frontend (defaults to settings)

        Returns:
            True if sent successfully
        """
        await self.initialize()

        if not self.is_available:
            logger.warning(
                "email_service_unavailable",
                action="new_survey",
                to_email=_mask(to_email),
            )
            return False

        base_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")
        survey_url = f"{base_url}/surveys/{survey_id}"
        safe_title = escape(survey_title)

        subject = f"New Important Survey: {survey_title}"
        html_content = f"""
        <!DOCTYPE html>
        <html>
        <head>
            <meta charset="utf-8">
            <meta name="viewport" content="width=device-width, initial-scale=1.0">
        </head>
        <body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif; margin: 0; padding: 20px; background-color: #f5f5f5;">
            <div style="max-width: 600px; margin: 0 auto; background: white; border-radius: 8px; padding: 40px; box-shadow: 0 2px 4px rgba(0,0,0,0.1);">
                <h1 style="color: #1a1a1a; margin-bottom: 24px;">A new survey needs your voice</h1>

                <p style="color: #4a4a4a; line-height: 1.6;">
                    Your city has opened an important survey:
                </p>

                <h2 style="color: #1a1a1a;">{safe_title}</h2>

                <div style="text-align: center; margin: 32px 0;">
                    <a href="{survey_url}"
                       style="display: inline-block; background-color: #4caf50; color: white; text-decoration: none; padding: 14px 32px; border-radius: 6px; font-weight: 600;">
                        Take the Survey
                    </a>
                </div>

                <hr style="border: none; border-top: 1px solid #e5e7eb; margin: 32px 0;">

                <p style="color: #9ca3af; font-size: 12px;">
                    If the button doesn't work, copy and paste this URL into your browser:<br>
                    <span style="color: #4caf50; word-break: break-all;">{survey_url}</span>
                </p>

                <p style="color: #9ca3af; font-size: 12px; margin-top: 24px;">
                    The {settings.APP_NAME} Team
                </p>
            </div>
        </body>
        </html>
        """

        plain_text = f"""
A new survey needs your voice

Your city has opened an important survey: {survey_title}

Take the survey here: {survey_url}

The {settings.APP_NAME} Team
        """.strip()

        return await self._send_email(
            to_email=to_email,
            subject=subject,
            html_content=html_content,
            plain_text=plain_text,
        )

    async def _send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        plain_text: str,
    ) -> bool:
        """
        Internal method to send an email.

        Returns:
            True if sent successfully
        """
        if not self._client or not self._sender_address:
            return False

        message = {
            "senderAddress": self._sender_address,
            "recipients": {
                "to": [{"address": to_email}],
            },
            "content": {
                "subject": subject,
                "plainText": plain_text,
                "html": html_content,
            },
        }

        try:
            # The SDK poller blocks until delivery is accepted
            result = await asyncio.to_thread(lambda: self._client.begin_send(message).result())
        except Exception as e:
            logger.error("email_send_error", error=str(e), to=_mask(to_email))
            return False

        if result["status"] == "Succeeded":
            logger.info(
                "email_sent",
                to=_mask(to_email),
                subject=subject,
                message_id=result.get("id"),
            )
            return True

        logger.error(
            "email_send_failed",
            status=result["status"],
            error=result.get("error"),
        )
        return False


# Global instance
email_service = EmailService()


async def get_email_service() -> EmailService:
    """Dependency for getting email service."""
    await email_service.initialize()
    return email_service
