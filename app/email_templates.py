"""
MJML Email Templates
Kleanr transactional emails, compiled to HTML by email_service
"""

from html import escape
from typing import Optional

from .config import FRONTEND_URL

# Kleanr brand colors
THEME = {
    "primary": "#0ea5e9",
    "primary_dark": "#0369a1",
    "background": "#f8fafc",
    "text_primary": "#0f172a",
    "text_secondary": "#334155",
    "text_muted": "#64748b",
    "border": "#e2e8f0",
    "warning": "#f59e0b",
    "danger": "#ef4444",
}


def get_base_template(
    title: str,
    preview_text: str,
    content_sections: str,
    cta_url: Optional[str] = None,
    cta_label: Optional[str] = None,
) -> str:
    """Base MJML template wrapper for all emails"""

    cta_section = ""
    if cta_url and cta_label:
        cta_section = f"""
        <mj-section padding="20px 0">
          <mj-column>
            <mj-button
              href="{cta_url}"
              background-color="{THEME['primary']}"
              color="#ffffff"
              font-weight="600"
              border-radius="8px"
              padding="18px 40px"
              font-size="16px">
              {cta_label}
            </mj-button>
          </mj-column>
        </mj-section>
        """

    return f"""
    <mjml>
      <mj-head>
        <mj-title>{title}</mj-title>
        <mj-preview>{preview_text}</mj-preview>
        <mj-attributes>
          <mj-all font-family="-apple-system, BlinkMacSystemFont, 'Segoe UI', 'Helvetica Neue', Arial, sans-serif" />
          <mj-text font-size="16px" line-height="1.6" color="{THEME['text_secondary']}" />
        </mj-attributes>
      </mj-head>
      <mj-body background-color="{THEME['background']}">
        <mj-section background-color="#ffffff" padding="32px 40px 0 40px">
          <mj-column>
            <mj-text font-size="22px" font-weight="700" color="{THEME['primary_dark']}" padding="0 0 24px 0">
              Kleanr
            </mj-text>
            <mj-divider border-color="{THEME['border']}" border-width="1px" padding="0 0 24px 0" />
          </mj-column>
        </mj-section>

        <mj-section background-color="#ffffff" padding="0 40px 40px 40px">
          <mj-column>
            <mj-text font-size="24px" font-weight="600" color="{THEME['text_primary']}" line-height="1.3" padding="0 0 16px 0">
              {title}
            </mj-text>

            {content_sections}
          </mj-column>
        </mj-section>

        {cta_section}

        <mj-section padding="32px 20px">
          <mj-column>
            <mj-text align="center" font-size="13px" color="#94a3b8" padding="0">
              You're receiving this because you have a Kleanr account.
            </mj-text>
          </mj-column>
        </mj-section>
      </mj-body>
    </mjml>
    """


def new_message_template(recipient_name: str, sender_name: str, preview: str, conversation_title: str) -> str:
    """First message in a conversation"""
    content = f"""
    <mj-text>Hi {escape(recipient_name)},</mj-text>
    <mj-text>
      {escape(sender_name)} started a conversation: <strong>{escape(conversation_title)}</strong>
    </mj-text>
    <mj-text color="{THEME['text_muted']}" padding="0 0 0 20px">
      "{escape(preview)}"
    </mj-text>
    """
    return get_base_template(
        title="You have a new message",
        preview_text=f"New message from {sender_name}",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/messages",
        cta_label="Open Messages",
    )


def account_frozen_template(cleaner_name: str, reason: str) -> str:
    content = f"""
    <mj-text>Hi {escape(cleaner_name)},</mj-text>
    <mj-text>
      Your Kleanr cleaner account has been frozen. While frozen you cannot request new jobs.
    </mj-text>
    <mj-text color="{THEME['danger']}">Reason: {escape(reason)}</mj-text>
    <mj-text>If you believe this is a mistake, please reply to support from the app.</mj-text>
    """
    return get_base_template(
        title="Your account has been frozen",
        preview_text="Your Kleanr account has been frozen",
        content_sections=content,
    )


def account_unfrozen_template(cleaner_name: str) -> str:
    content = f"""
    <mj-text>Hi {escape(cleaner_name)},</mj-text>
    <mj-text>Your Kleanr cleaner account is active again. You can request jobs as usual.</mj-text>
    """
    return get_base_template(
        title="Your account is active again",
        preview_text="Your Kleanr account has been unfrozen",
        content_sections=content,
        cta_url=FRONTEND_URL,
        cta_label="Find Jobs",
    )


def warning_issued_template(cleaner_name: str, reason: str, severity: str, warning_count: int) -> str:
    color = THEME["danger"] if severity == "major" else THEME["warning"]
    content = f"""
    <mj-text>Hi {escape(cleaner_name)},</mj-text>
    <mj-text>
      You have received a <strong style="color: {color};">{severity}</strong> warning on your Kleanr account.
    </mj-text>
    <mj-text>Reason: {escape(reason)}</mj-text>
    <mj-text color="{THEME['text_muted']}">Total warnings on your account: {warning_count}</mj-text>
    """
    return get_base_template(
        title="Account warning",
        preview_text=f"You have received a {severity} warning",
        content_sections=content,
    )


def preferred_cleaner_declined_template(client_name: str, cleaner_name: str, appointment_date: str) -> str:
    content = f"""
    <mj-text>Hi {escape(client_name)},</mj-text>
    <mj-text>
      {escape(cleaner_name)} can't make your cleaning on <strong>{appointment_date}</strong>.
    </mj-text>
    <mj-text>
      You can cancel the appointment or open it to other Kleanr cleaners at the platform price.
    </mj-text>
    """
    return get_base_template(
        title="Your cleaner declined an appointment",
        preview_text=f"{cleaner_name} declined your {appointment_date} appointment",
        content_sections=content,
        cta_url=f"{FRONTEND_URL}/appointments",
        cta_label="Choose What To Do",
    )


def service_area_changed_template(client_name: str, in_area: bool, message: str) -> str:
    if in_area:
        body = "Good news! Your home is now inside the Kleanr service area and can be booked."
    else:
        body = escape(message)
    content = f"""
    <mj-text>Hi {escape(client_name)},</mj-text>
    <mj-text>{body}</mj-text>
    """
    return get_base_template(
        title="Service area update",
        preview_text="Your home's service area status changed",
        content_sections=content,
    )
