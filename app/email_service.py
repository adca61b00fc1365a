"""
Email Service using Resend
MJML templates are compiled to HTML before sending
"""

import logging
from typing import Optional, Union

import resend
from mjml import mjml_to_html

from .config import EMAIL_FROM_ADDRESS, RESEND_API_KEY
from .email_templates import (
    account_frozen_template,
    account_unfrozen_template,
    new_message_template,
    preferred_cleaner_declined_template,
    service_area_changed_template,
    warning_issued_template,
)

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


class EmailError(Exception):
    """Resend rejected the message or the template failed to compile"""


def compile_mjml_to_html(mjml_content: str) -> str:
    """Compile MJML template to production-ready HTML"""
    try:
        result = mjml_to_html(mjml_content)
    except Exception as e:
        logger.error(f"MJML compilation error: {e}")
        raise EmailError(f"Failed to compile MJML template: {str(e)}") from e
    # mjml_to_html returns an object with .html and .errors
    errors = getattr(result, "errors", None)
    if errors:
        logger.warning(f"MJML compilation warnings: {errors}")
    return getattr(result, "html", None) or str(result)


async def send_email(
    to: Union[str, list[str]],
    subject: str,
    mjml_content: str,
    from_address: Optional[str] = None,
) -> dict:
    """
    Send an email through Resend.

    Without RESEND_API_KEY the call is skipped and reported as such, so
    development and test environments never reach the network.
    """
    recipients = [to] if isinstance(to, str) else to

    if not RESEND_API_KEY:
        logger.warning(f"⚠️ RESEND_API_KEY not set - skipping email '{subject}' to {recipients}")
        return {"skipped": True}

    html_content = compile_mjml_to_html(mjml_content)

    try:
        logger.info(f"📧 Sending email via Resend to: {recipients}")
        response = resend.Emails.send(
            {
                "from": from_address or EMAIL_FROM_ADDRESS,
                "to": recipients,
                "subject": subject,
                "html": html_content,
            }
        )
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return response
    except Exception as e:
        logger.error(f"❌ Email send error to {recipients}: {e}")
        raise EmailError(f"Failed to send email: {str(e)}") from e


# ============================================
# Pre-built emails
# ============================================


async def send_new_message_email(
    to: str, recipient_name: str, sender_name: str, preview: str, conversation_title: str
) -> dict:
    return await send_email(
        to=to,
        subject=f"New message from {sender_name}",
        mjml_content=new_message_template(recipient_name, sender_name, preview[:200], conversation_title),
    )


async def send_account_frozen_email(to: str, cleaner_name: str, reason: str) -> dict:
    return await send_email(
        to=to,
        subject="Your Kleanr account has been frozen",
        mjml_content=account_frozen_template(cleaner_name, reason),
    )


async def send_account_unfrozen_email(to: str, cleaner_name: str) -> dict:
    return await send_email(
        to=to,
        subject="Your Kleanr account is active again",
        mjml_content=account_unfrozen_template(cleaner_name),
    )


async def send_warning_email(to: str, cleaner_name: str, reason: str, severity: str, warning_count: int) -> dict:
    return await send_email(
        to=to,
        subject="Kleanr account warning",
        mjml_content=warning_issued_template(cleaner_name, reason, severity, warning_count),
    )


async def send_preferred_cleaner_declined_email(
    to: str, client_name: str, cleaner_name: str, appointment_date: str
) -> dict:
    return await send_email(
        to=to,
        subject="Your cleaner declined an appointment",
        mjml_content=preferred_cleaner_declined_template(client_name, cleaner_name, appointment_date),
    )


async def send_service_area_changed_email(to: str, client_name: str, in_area: bool, message: str) -> dict:
    return await send_email(
        to=to,
        subject="Kleanr service area update",
        mjml_content=service_area_changed_template(client_name, in_area, message),
    )
