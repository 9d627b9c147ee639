"""
Guardian notifications.

Admissions mail goes out through Resend. Without a RESEND_API_KEY the
message is logged and treated as delivered so development and CI never
need provider credentials. Delivery failures are reported through the
return value; callers decide whether that matters.
"""

import asyncio
import logging
from html import escape

import resend

from gsos.core.config import settings

logger = logging.getLogger(__name__)

resend.api_key = settings.resend_api_key

EMAIL_FROM = settings.email_from
PORTAL_URL = settings.portal_url.rstrip("/")

_BASE_STYLES = """
            body { font-family: system-ui, -apple-system, sans-serif; line-height: 1.6; color: #1f2937; }
            .container { max-width: 600px; margin: 0 auto; padding: 40px 20px; }
            .header { color: #1a365d; margin-bottom: 24px; }
            .info-box { background-color: #eff6ff; border: 1px solid #bfdbfe; padding: 16px; border-radius: 8px; margin: 16px 0; }
            .button { display: inline-block; background-color: #1a365d; color: white; padding: 14px 28px; text-decoration: none; border-radius: 8px; margin: 24px 0; }
            .footer { margin-top: 40px; padding-top: 20px; border-top: 1px solid #e5e7eb; color: #6b7280; font-size: 14px; }
"""


async def send_email(to_email: str, subject: str, html_content: str) -> bool:
    """Deliver one HTML message, returning False when the provider rejects it."""
    if not resend.api_key:
        logger.info(f"Email delivery disabled, dropping '{subject}'")
        return True

    params: resend.Emails.SendParams = {
        "from": EMAIL_FROM,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    }
    try:
        # The Resend SDK is synchronous
        sent = await asyncio.to_thread(resend.Emails.send, params)
    except Exception as e:
        logger.error(f"Resend rejected '{subject}': {e}")
        return False
    logger.info(f"Queued '{subject}' as {sent['id']}")
    return True


def _render(title: str, body: str) -> str:
    return f"""
    <!DOCTYPE html>
    <html>
    <head>
        <style>{_BASE_STYLES}</style>
    </head>
    <body>
        <div class="container">
            <h1 class="header">{title}</h1>
            {body}
            <div class="footer">
                <p>GSOS - School Operations</p>
            </div>
        </div>
    </body>
    </html>
    """


async def send_application_received(
    to_email: str,
    guardian_name: str,
    applicant_name: str,
    application_number: str,
) -> bool:
    """Acknowledge a new admission application to the primary guardian."""
    safe_guardian_name = escape(guardian_name)
    safe_applicant_name = escape(applicant_name)
    safe_number = escape(application_number)

    track_url = f"{PORTAL_URL}/admissions/track?number={safe_number}"
    body = f"""
            <p>Hello {safe_guardian_name},</p>

            <p>We have received the application for <strong>{safe_applicant_name}</strong>.</p>

            <div class="info-box">
                <strong>Application number:</strong> {safe_number}
            </div>

            <p>Keep this number. You can use it with your email address to check the application status:</p>

            <a href="{track_url}" class="button">Track Application</a>
    """

    return await send_email(
        to_email=to_email,
        subject=f"Application {safe_number} received",
        html_content=_render("Application Received", body),
    )


async def send_admission_status_update(
    to_email: str,
    guardian_name: str,
    applicant_name: str,
    application_number: str,
    status_label: str,
    message: str | None = None,
) -> bool:
    """Tell the primary guardian that the application moved to a new stage."""
    safe_guardian_name = escape(guardian_name)
    safe_applicant_name = escape(applicant_name)
    safe_number = escape(application_number)
    safe_label = escape(status_label)

    message_block = ""
    if message:
        message_block = f'<div class="info-box">{escape(message)}</div>'

    track_url = f"{PORTAL_URL}/admissions/track?number={safe_number}"
    body = f"""
            <p>Hello {safe_guardian_name},</p>

            <p>The application for <strong>{safe_applicant_name}</strong> ({safe_number}) is now:
            <strong>{safe_label}</strong>.</p>

            {message_block}

            <a href="{track_url}" class="button">View Application</a>
    """

    return await send_email(
        to_email=to_email,
        subject=f"Application {safe_number}: {safe_label}",
        html_content=_render("Application Update", body),
    )
