"""
Outgoing email.

When SMTP_HOST is not configured, messages are logged instead of sent, which
is how development and test environments run.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Dict, List, Optional

from fastapi.concurrency import run_in_threadpool

from isodoc.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

_LAYOUT = """
<div style="font-family: Arial, sans-serif; max-width: 640px; margin: 0 auto;">
    <div style="background: #1e293b; color: white; padding: 16px 24px;">
        <h2 style="margin: 0; font-size: 18px;">ISO Document Manager</h2>
    </div>
    <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
        {body}
    </div>
</div>
"""

TEMPLATES: Dict[str, Dict[str, str]] = {
    "password_reset": {
        "subject": "Password recovery - ISO Document Manager",
        "html": """
        <p>A password reset was requested for your account.</p>
        <p><a href="{reset_url}">Reset your password</a></p>
        <p>The link expires in one hour. If you did not request it, ignore this email.</p>
        """,
    },
    "contact_request": {
        "subject": "Support request from {name}",
        "html": """
        <p><strong>From:</strong> {name} &lt;{email}&gt;</p>
        <p style="white-space: pre-wrap;">{message}</p>
        """,
    },
    "documents_expired": {
        "subject": "URGENT: {count} documents expired",
        "html": """
        <p>The following documents of <strong>{client_name}</strong> have expired:</p>
        {table}
        """,
    },
    "documents_expiring": {
        "subject": "Notice: {count} documents expiring",
        "html": """
        <p>The following documents of <strong>{client_name}</strong> are about to expire:</p>
        {table}
        """,
    },
}


class EmailService:
    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        return bool(self.settings.SMTP_HOST)

    def render(self, template_name: str, **context) -> Dict[str, str]:
        template = TEMPLATES[template_name]
        return {
            "subject": template["subject"].format(**context),
            "html": _LAYOUT.format(body=template["html"].format(**context)),
        }

    async def send(self, to: List[str], subject: str, html: str, reply_to: Optional[str] = None) -> bool:
        if not to:
            return False
        if not self.is_configured:
            logger.info(f"[EMAIL-LOG] To: {', '.join(to)} | Subject: {subject}")
            return True
        try:
            await run_in_threadpool(self._send_smtp, to, subject, html, reply_to)
            logger.info(f"Email sent to {', '.join(to)}: {subject}")
            return True
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {', '.join(to)}: {e}", exc_info=True)
            return False

    async def send_template(self, template_name: str, to: List[str], reply_to: Optional[str] = None, **context) -> bool:
        rendered = self.render(template_name, **context)
        return await self.send(to, rendered["subject"], rendered["html"], reply_to=reply_to)

    def _send_smtp(self, to: List[str], subject: str, html: str, reply_to: Optional[str]) -> None:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.settings.MAIL_FROM
        msg["To"] = ", ".join(to)
        if reply_to:
            msg["Reply-To"] = reply_to
        msg.attach(MIMEText(html, "html", "utf-8"))

        with smtplib.SMTP(self.settings.SMTP_HOST, self.settings.SMTP_PORT, timeout=30) as smtp:
            if self.settings.SMTP_USE_TLS:
                smtp.starttls()
            if self.settings.SMTP_USERNAME and self.settings.SMTP_PASSWORD:
                smtp.login(self.settings.SMTP_USERNAME, self.settings.SMTP_PASSWORD)
            smtp.sendmail(self.settings.MAIL_FROM, to, msg.as_string())
