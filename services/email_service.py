import logging
from typing import Any, Dict, Optional

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail, From

from core.config import settings
from services.email_templates import render_template

logger = logging.getLogger(__name__)


class EmailService:
    """
    Centralized email utility for add-on notifications.
    Renders a template by id and delivers it via SendGrid.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        sender_email: Optional[str] = None,
        sender_name: Optional[str] = None,
        client: Optional[SendGridAPIClient] = None,
    ):
        self.sendgrid_api_key = api_key if api_key is not None else settings.SENDGRID_API_KEY
        self.sender_email = sender_email if sender_email is not None else str(settings.MAIL_FROM)
        self.sender_name = sender_name or settings.MAIL_FROM_NAME

        self.enabled = bool(self.sendgrid_api_key and self.sender_email)
        if not self.enabled:
            logger.warning("📧 Email service not configured. Missing SENDGRID_API_KEY or MAIL_FROM.")
            self.client = client
        else:
            self.client = client or SendGridAPIClient(self.sendgrid_api_key)
            logger.info(f"📧 Email service configured and ready. Sender: {self.sender_email}")

    # ============================================================
    # ✅ Send a templated email (never raises)
    # ============================================================
    def send(self, to_email: str, template_id: str, data: Dict[str, Any]) -> bool:
        """Render `template_id` with `data` and send it. Returns False on any failure."""
        try:
            rendered = render_template(template_id, data)
        except Exception as e:
            logger.exception("❌ Failed to render email template %s: %s", template_id, e)
            return False

        if not self.enabled:
            # Development fallback (no SendGrid setup)
            logger.info(f"📨 [Mock Email] To: {to_email}")
            logger.info(f"Template: {template_id} | Subject: {rendered.subject}")
            return True

        try:
            message = Mail(
                from_email=From(self.sender_email, self.sender_name),
                to_emails=to_email,
                subject=rendered.subject,
                html_content=rendered.html,
                plain_text_content=rendered.text,
            )
            response = self.client.send(message)
            if response.status_code >= 400:
                logger.error(f"❌ SendGrid rejected {template_id} email to {to_email}. Status: {response.status_code}")
                return False
            logger.info(f"✅ {template_id} email sent to {to_email}. Status: {response.status_code}")
            return True
        except Exception as e:
            logger.exception("❌ Failed to send %s email to %s: %s", template_id, to_email, e)
            return False


# ============================================================
# ✅ Global instance for app-wide import
# ============================================================
email_service = EmailService()
