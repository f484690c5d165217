# civictrack/services/notify_email.py

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart

import resend

from civictrack.core.config import settings

logger = logging.getLogger(__name__)

FROM_NAME = settings.email_from_name
FROM_ADDR = settings.email_from_address
EMAIL_PROVIDER = settings.email_provider.lower()

SMTP_HOST = settings.smtp_host
SMTP_PORT = settings.smtp_port
SMTP_USERNAME = settings.smtp_username
SMTP_PASSWORD = settings.smtp_password
SMTP_USE_SSL = settings.smtp_use_ssl
RESEND_API_KEY = settings.resend_api_key

# ===================================================================
# BASE TEMPLATE
# ===================================================================

TPL_BASE = """
<table width="100%%" cellpadding="0" cellspacing="0" style="background:#eef2f7;padding:24px;">
  <tr><td align="center">
    <table width="600" cellpadding="0" cellspacing="0"
           style="background:#ffffff;border-radius:12px;padding:24px;
                  font-family:Arial,Helvetica,sans-serif;color:#111827;border:1px solid #e5e7eb;">
      <tr>
        <td align="center" style="padding-bottom:16px;font-size:20px;font-weight:700;">
          Civic Issue Desk
        </td>
      </tr>
      <tr>
        <td style="font-size:14px;line-height:1.6;">
          %s
        </td>
      </tr>
      <tr>
        <td style="padding-top:16px;font-size:11px;color:#6b7280;border-top:1px solid #e5e7eb;">
          This is an automated message from the municipal issue tracker.
          <div style="margin-top:4px;">&copy; {YEAR} Municipal Corporation</div>
        </td>
      </tr>
    </table>
  </td></tr>
</table>
"""

def _get_template_base() -> str:
    return TPL_BASE.replace("{YEAR}", str(datetime.now(timezone.utc).year))


# ===================================================================
# Transport
# ===================================================================

def _send_email_via_smtp(to_email: str, subject: str, html_content: str):
    if not SMTP_HOST or not SMTP_USERNAME or not SMTP_PASSWORD or not FROM_ADDR:
        logger.debug("SMTP not configured, dropping mail to %s", to_email)
        return

    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{FROM_NAME} <{FROM_ADDR}>" if FROM_NAME else FROM_ADDR
    msg["To"] = to_email
    msg.attach(MIMEText(html_content, "html"))

    if SMTP_USE_SSL:
        server = smtplib.SMTP_SSL(SMTP_HOST, SMTP_PORT, timeout=15)
    else:
        server = smtplib.SMTP(SMTP_HOST, SMTP_PORT, timeout=15)
        server.starttls()
    try:
        server.login(SMTP_USERNAME, SMTP_PASSWORD)
        server.send_message(msg)
    finally:
        server.quit()


def _send_email_via_resend(to_email: str, subject: str, html_content: str):
    if not RESEND_API_KEY or not FROM_ADDR:
        logger.debug("Resend not configured, dropping mail to %s", to_email)
        return

    resend.api_key = RESEND_API_KEY
    resend.Emails.send({
        "from": f"{FROM_NAME} <{FROM_ADDR}>" if FROM_NAME else FROM_ADDR,
        "to": [to_email],
        "subject": subject,
        "html": html_content,
    })


def _send_email(to_email: str, subject: str, html_content: str):
    """Send through the configured provider. Raises on transport errors;
    callers in the notification layer decide what to swallow."""
    if EMAIL_PROVIDER == "resend":
        _send_email_via_resend(to_email, subject, html_content)
    else:
        _send_email_via_smtp(to_email, subject, html_content)


def _build_url(path: str) -> str:
    base = (settings.frontend_base_url or "").strip().rstrip("/")
    path = path.lstrip("/")
    if base:
        if not base.startswith("http://") and not base.startswith("https://"):
            base = f"https://{base}"
        return f"{base}/{path}"
    return f"/{path}"


def _link(link: str, text: str) -> str:
    return f"""
    <div style="margin:12px 0 8px 0;">
      <a href="{link}" style="display:inline-block;padding:10px 20px;background:#1d4ed8;
         color:#ffffff;border-radius:6px;font-weight:600;text-decoration:none;">{text}</a>
    </div>
    """


# ===================================================================
# Assignment notification
# ===================================================================

def send_assignment_notification(to_email: str, issue_id: int, ticket_number: str,
                                 category_name: str, sla_target_at, assigned_by: str):
    """Tell an engineer an issue landed on them."""
    link = _build_url(f"issues/{issue_id}")
    due = sla_target_at.strftime("%d %b %Y %H:%M UTC") if sla_target_at else "not set"

    html_content = f"""
    <p>Hello,</p>
    <p>Ticket <strong>{ticket_number}</strong> has been assigned to you.</p>
    <p style="margin:6px 0;">
      <strong>Category:</strong> {category_name}<br/>
      <strong>Assigned by:</strong> {assigned_by}<br/>
      <strong>Resolve by:</strong> {due}
    </p>
    {_link(link, "Open ticket")}
    """

    html = _get_template_base() % html_content
    _send_email(to_email, f"{ticket_number} assigned to you", html)


# ===================================================================
# Status update
# ===================================================================

def send_status_update(to_email: str, issue_id: int, ticket_number: str, status: str):
    readable_status = status.replace("_", " ").title()
    link = _build_url(f"issues/{issue_id}")

    html_content = f"""
    <p>Hello,</p>
    <p>Ticket <strong>{ticket_number}</strong> is now
       <strong style="color:#1d4ed8;">{readable_status}</strong>.</p>
    {_link(link, "View ticket")}
    """

    html = _get_template_base() % html_content
    _send_email(to_email, f"{ticket_number} status update", html)
