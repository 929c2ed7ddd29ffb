"""
Outbound email over SMTP.

When SMTP is not configured the message is logged instead of sent (development
mode) and reported as delivered so admin flows are not blocked.
"""
from __future__ import annotations

import html
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Tuple

from starlette.concurrency import run_in_threadpool

from resolve.config import settings
from resolve.models.database_models import Application, ApplicationStatus
from resolve.models.schemas import SendDocumentationRequest, SendDocumentationResponse

logger = logging.getLogger(__name__)


_DOCUMENTATION_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head>
    <meta charset="utf-8">
    <title>Your Documentation - Resolve AI</title>
    <style>
        body {{ font-family: Arial, sans-serif; line-height: 1.6; color: #333; }}
        .container {{ max-width: 600px; margin: 0 auto; padding: 20px; }}
        .header {{ background: #1e40af; color: white; padding: 20px; text-align: center; }}
        .content {{ padding: 30px 20px; background: #f9fafb; }}
        .button {{ display: inline-block; padding: 12px 24px; background: #1e40af; color: white; text-decoration: none; border-radius: 6px; margin: 20px 0; }}
        .footer {{ padding: 20px; text-align: center; font-size: 14px; color: #666; }}
    </style>
</head>
<body>
    <div class="container">
        <div class="header">
            <h1>Resolve AI</h1>
            <p>Your Legal Documentation Partner</p>
        </div>
        <div class="content">
            <h2>Hello {recipient_name},</h2>
            <p>Your requested documentation is ready! We've prepared your <strong>{document_title}</strong> and it's ready for download.</p>
            {custom_message}
            {download_button}
            <p>This document has been specifically prepared for your case and contains important legal information. Please review it carefully and contact us if you have any questions.</p>
            <p><strong>What's Next?</strong></p>
            <ul>
                <li>Review your documentation thoroughly</li>
                <li>Follow the recommended timeline</li>
                <li>Contact us if you need clarification</li>
                <li>Access your dashboard for updates</li>
            </ul>
            <p>If you have any questions or need assistance, please don't hesitate to contact our support team.</p>
            <p>Best regards,<br>
            The Resolve AI Team</p>
        </div>
        <div class="footer">
            <p>&copy; Resolve AI - Legal Support for Australian Tradespeople</p>
            <p>Contact: hello@resolveai.com</p>
            <p>This email was sent regarding {reference}.</p>
        </div>
    </div>
</body>
</html>
"""


def render_documentation_email(request: SendDocumentationRequest) -> str:
    """HTML body for a documentation email; user-supplied text is escaped."""
    custom_message = (
        f"<p><em>{html.escape(request.custom_message)}</em></p>" if request.custom_message else ""
    )
    download_button = (
        f'<p><a href="{html.escape(request.document_url, quote=True)}" class="button">'
        "Download Your Document</a></p>"
        if request.document_url
        else ""
    )
    reference = f"Case #{request.case_id}" if request.case_id else "your documentation request"
    return _DOCUMENTATION_TEMPLATE.format(
        recipient_name=html.escape(request.recipient_name),
        document_title=html.escape(request.document_title),
        custom_message=custom_message,
        download_button=download_button,
        reference=reference,
    )


def documentation_subject(document_title: str) -> str:
    return f"Your {document_title} - Resolve AI"


_APPLICATION_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>{subject}</title></head>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
    <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
        <div style="background: #1e40af; color: white; padding: 20px; text-align: center;">
            <h1>{heading}</h1>
        </div>
        <div style="padding: 30px 20px; background: #f9fafb;">
            <h2>Hi {full_name},</h2>
            {body}
        </div>
        <div style="padding: 20px; text-align: center; font-size: 14px; color: #666;">
            <p>&copy; Resolve AI - Legal Support for Australian Tradespeople</p>
            <p>This platform provides information services, not legal advice.</p>
        </div>
    </div>
</body>
</html>
"""

APPLICATION_RECEIVED_SUBJECT = "Application Received - Resolve AI"
APPLICATION_APPROVED_SUBJECT = "Case Approved - Resolve AI"
APPLICATION_REJECTED_SUBJECT = "Application Update - Resolve AI"
DEFAULT_REJECTION_REASON = "Application did not meet criteria"


def render_application_email(application: Application, reason: Optional[str] = None) -> Tuple[str, str]:
    """Subject and HTML for the email matching the application's status."""
    full_name = html.escape(application.full_name)
    if application.status == ApplicationStatus.APPROVED.value:
        link = html.escape(f"{settings.FRONTEND_URL.rstrip('/')}/application/{application.id}/complete", quote=True)
        subject, heading = APPLICATION_APPROVED_SUBJECT, "Case Approved!"
        body = (
            "<p>Your case has been reviewed and approved by our team.</p>"
            f'<p><a href="{link}">Complete Application - $299</a></p>'
            "<p>This link will expire in 7 days.</p>"
        )
    elif application.status == ApplicationStatus.REJECTED.value:
        subject, heading = APPLICATION_REJECTED_SUBJECT, "Application Update"
        body = (
            "<p>After careful review we cannot proceed with your application at this time.</p>"
            f"<p><strong>Reason:</strong> {html.escape(reason or DEFAULT_REJECTION_REASON)}</p>"
            "<p>Legal Aid and community legal centres in your state can offer free advice.</p>"
        )
    else:
        subject, heading = APPLICATION_RECEIVED_SUBJECT, "Resolve AI"
        body = (
            f"<p>Thank you for submitting application #{application.id}. "
            "Our team is reviewing your case details.</p>"
            "<p>We'll email you as soon as your case has been approved.</p>"
        )
    return subject, _APPLICATION_TEMPLATE.format(subject=subject, heading=heading, full_name=full_name, body=body)


class Mailer:
    """Blocking SMTP sender; call the async helpers from request handlers."""

    def send(
        self,
        to_email: str,
        subject: str,
        html_body: str,
        text_body: Optional[str] = None,
    ) -> bool:
        """
        Send one message. Returns True on success (or in development mode),
        False when the SMTP exchange fails.
        """
        if not settings.smtp_configured:
            logger.info("[DEV MODE] Email would be sent to %s: %s", to_email, subject)
            logger.debug("[DEV MODE] Email body: %s", (text_body or html_body)[:200])
            return True

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = settings.SMTP_FROM
        msg["To"] = to_email
        if text_body:
            msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(settings.SMTP_HOST, settings.SMTP_PORT) as server:
                if settings.SMTP_USE_TLS:
                    server.starttls()
                server.login(settings.SMTP_USER, settings.SMTP_PASSWORD)
                server.sendmail(settings.SMTP_FROM, to_email, msg.as_string())
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send email to %s: %s", to_email, exc)
            return False

        logger.info("Email sent successfully to %s", to_email)
        return True

    async def send_documentation(self, request: SendDocumentationRequest) -> SendDocumentationResponse:
        sent = await run_in_threadpool(
            self.send,
            request.recipient_email,
            documentation_subject(request.document_title),
            render_documentation_email(request),
        )
        if not sent:
            return SendDocumentationResponse(success=False, message="Failed to send documentation email")
        return SendDocumentationResponse(success=True, message="Documentation email sent successfully")

    async def send_application_update(self, application: Application, reason: Optional[str] = None) -> bool:
        """Email the applicant about a new or re-decided application."""
        subject, body = render_application_email(application, reason)
        return await run_in_threadpool(self.send, application.email, subject, body)


def get_mailer() -> Mailer:
    """FastAPI dependency; overridden in tests."""
    return Mailer()
