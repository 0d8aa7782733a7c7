"""Email notification service using SendGrid.

Sending is best-effort: every public method returns ``False`` on failure
and logs the reason instead of raising, so a booking never fails because
an email could not go out.
"""

import asyncio
import logging
from html import escape
from typing import Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from app.core.config import settings

logger = logging.getLogger(__name__)


class EmailService:
    """Email service for sending booking notifications."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        frontend_url: Optional[str] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.from_email = from_email or settings.SENDGRID_FROM_EMAIL
        self.from_name = from_name or settings.SENDGRID_FROM_NAME
        self.frontend_url = (frontend_url or settings.FRONTEND_URL).rstrip("/")

        if not self.api_key:
            logger.warning("SENDGRID_API_KEY not configured. Emails will not be sent.")
            self.client = None
            self.enabled = False
        else:
            self.client = SendGridAPIClient(self.api_key)
            self.enabled = True
            logger.info("Email service initialized successfully")

    def public_booking_url(self, public_token: str) -> str:
        return f"{self.frontend_url}/confirm/{public_token}"

    async def send_email(
        self,
        to: str,
        subject: str,
        html_body: str,
        plain_body: Optional[str] = None,
    ) -> bool:
        """
        Send an email.

        Args:
            to: Recipient email address
            subject: Email subject
            html_body: HTML body content
            plain_body: Plain text body (optional)

        Returns:
            True if sent successfully, False otherwise
        """
        if not self.enabled:
            logger.info("Email service disabled. Would have sent to %s: %s", to, subject)
            return False

        try:
            message = Mail(
                from_email=(self.from_email, self.from_name),
                to_emails=to,
                subject=subject,
                plain_text_content=plain_body or None,
                html_content=html_body,
            )

            # SendGrid's client is synchronous
            response = await asyncio.to_thread(self.client.send, message)

            if 200 <= response.status_code < 300:
                logger.info("Email sent successfully to %s: %s", to, subject)
                return True

            logger.error("Failed to send email to %s: %s %s", to, response.status_code, response.body)
            return False

        except Exception as e:
            logger.error("Error sending email to %s: %s", to, e)
            return False

    async def send_appointment_confirmation(
        self,
        to: str,
        client_name: str,
        provider_name: str,
        date: str,
        time: str,
        duration: int,
        location: Optional[str] = None,
        public_token: Optional[str] = None,
    ) -> bool:
        """
        Send the booking confirmation to the client.

        When ``public_token`` is given the email carries the link an
        anonymous client uses to view or cancel the booking.
        """
        subject = f"Appointment booked with {provider_name}"

        location_html = f"<p><strong>Location:</strong> {escape(location)}</p>" if location else ""
        location_plain = f"Location: {location}\n" if location else ""
        link_html = ""
        link_plain = ""
        if public_token:
            url = self.public_booking_url(public_token)
            link_html = (
                f'<p><a href="{url}" style="display: inline-block; padding: 12px 24px; background: #4F46E5; '
                f'color: white; text-decoration: none; border-radius: 5px;">View or cancel appointment</a></p>'
                f"<p>Or open this link: {url}</p>"
            )
            link_plain = f"View or cancel: {url}\n"

        html_body = f"""
        <html>
            <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
                <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
                    <h2 style="color: #4F46E5;">Appointment Booked</h2>

                    <p>Hi {escape(client_name)},</p>

                    <p>Your appointment with <strong>{escape(provider_name)}</strong> has been booked.</p>

                    <div style="background-color: #f9fafb; padding: 15px; border-radius: 5px; margin: 20px 0;">
                        <p><strong>Date:</strong> {date}</p>
                        <p><strong>Time:</strong> {time}</p>
                        <p><strong>Duration:</strong> {duration} minutes</p>
                        {location_html}
                    </div>

                    {link_html}
                </div>
            </body>
        </html>
        """

        plain_body = (
            f"Appointment Booked\n\n"
            f"Hi {client_name},\n\n"
            f"Your appointment with {provider_name} has been booked.\n\n"
            f"Date: {date}\n"
            f"Time: {time}\n"
            f"Duration: {duration} minutes\n"
            f"{location_plain}"
            f"{link_plain}"
        )

        return await self.send_email(to, subject, html_body, plain_body)


# Global email service instance
email_service = EmailService()
