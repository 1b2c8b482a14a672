import asyncio
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

from salonbook.core.config import settings

logger = logging.getLogger(__name__)


def _html_escape(s: str) -> str:
    return (
        s.replace("&", "&amp;")
        .replace("<", "&lt;")
        .replace(">", "&gt;")
        .replace('"', "&quot;")
    )


def build_notification_html(title: str, body: str) -> str:
    """Wrap a plain-text notification body in the branded email layout."""
    paragraphs = "".join(
        f'<p style="margin:0 0 16px 0;font-size:15px;color:#374151;">{_html_escape(p).replace(chr(10), "<br>")}</p>'
        for p in body.split("\n\n")
        if p.strip()
    )
    return f"""
<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>{_html_escape(title)}</title>
</head>
<body style="margin:0;padding:0;font-family:-apple-system,BlinkMacSystemFont,'Segoe UI',Roboto,sans-serif;background-color:#f3f4f6;">
  <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="background-color:#f3f4f6;">
    <tr>
      <td align="center" style="padding:40px 16px;">
        <table role="presentation" width="100%" cellspacing="0" cellpadding="0" style="max-width:560px;background:#ffffff;border-radius:12px;overflow:hidden;">
          <tr>
            <td style="padding:32px 32px 24px 32px;">
              <h1 style="margin:0 0 16px 0;font-size:22px;font-weight:600;color:#111827;">{_html_escape(title)}</h1>
              {paragraphs}
            </td>
          </tr>
          <tr>
            <td style="padding:24px 32px 32px 32px;background:#f9fafb;border-top:1px solid #e5e7eb;">
              <p style="margin:0 0 4px 0;font-size:13px;font-weight:600;color:#111827;">{_html_escape(settings.site_name)}</p>
              <p style="margin:0;font-size:13px;color:#6b7280;">
                {_html_escape(settings.contact_email)} &nbsp;·&nbsp; {_html_escape(settings.contact_phone)}<br>
                {_html_escape(settings.contact_address)}
              </p>
            </td>
          </tr>
        </table>
      </td>
    </tr>
  </table>
</body>
</html>
"""


def _send_email_sync(to_email: str, subject: str, html_body: str, text_body: str) -> bool:
    """Send email via SMTP (blocking). Run it in a worker thread."""
    if not settings.email_enabled:
        logger.warning("Email disabled (SMTP not configured), not sending to %s", to_email)
        return False
    msg = MIMEMultipart("alternative")
    msg["Subject"] = subject
    msg["From"] = f"{settings.from_name} <{settings.from_email}>"
    msg["To"] = to_email
    msg.attach(MIMEText(text_body, "plain", "utf-8"))
    msg.attach(MIMEText(html_body, "html", "utf-8"))
    with smtplib.SMTP(settings.smtp_host, settings.smtp_port, timeout=settings.transport_timeout_seconds) as server:
        server.starttls()
        server.login(settings.smtp_user, settings.smtp_password)
        server.sendmail(settings.from_email, [to_email], msg.as_string())
    logger.info("Email sent to %s", to_email)
    return True


async def send_email(to_email: str, subject: str, body: str) -> bool:
    html = build_notification_html(subject, body)
    return await asyncio.to_thread(_send_email_sync, to_email, subject, html, body)
