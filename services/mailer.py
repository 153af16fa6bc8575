import smtplib
import os
import logging
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from typing import Dict, Any, Iterable

from standup_order.config import load_config

logger = logging.getLogger(__name__)


def _smtp_config() -> Dict[str, Any]:
    cfg = load_config()
    smtp = cfg.get("smtp", {})
    return smtp if isinstance(smtp, dict) else {}

def _get_smtp_credentials(smtp: Dict[str, Any]):
    """Retrieve SMTP credentials from environment variables."""
    email = os.environ.get(smtp.get("sender_email_env_var", "SMTP_EMAIL"))
    password = os.environ.get(smtp.get("password_env_var", "SMTP_PASSWORD"))
    return email, password

def send_email(to_emails: Iterable[str], subject: str, body: str) -> Dict[str, Any]:
    """Send a plain-text email to every address in `to_emails`."""
    recipients = [str(e).strip() for e in to_emails if str(e or "").strip()]
    if not recipients:
        return {"success": False, "message": "No recipients."}

    smtp = _smtp_config()
    if not smtp.get("enabled", False):
        return {"success": False, "message": "SMTP is disabled in config.yaml."}

    sender_email, password = _get_smtp_credentials(smtp)
    if not sender_email or not password:
        return {"success": False, "message": "SMTP credentials not found in .env."}

    try:
        msg = MIMEMultipart()
        msg['From'] = sender_email
        msg['To'] = ", ".join(recipients)
        msg['Subject'] = subject
        msg.attach(MIMEText(body, 'plain'))

        server = smtplib.SMTP(smtp.get("host", "smtp.gmail.com"), int(smtp.get("port", 587)))
        try:
            server.starttls()
            server.login(sender_email, password)
            server.sendmail(sender_email, recipients, msg.as_string())
        finally:
            server.quit()

        logger.info("Email '%s' sent to %d recipient(s)", subject, len(recipients))
        return {"success": True, "message": f"Email sent successfully to {len(recipients)} recipient(s)"}

    except (smtplib.SMTPException, OSError) as e:
        logger.error("Failed to send email: %s", e)
        return {"success": False, "message": f"Failed to send email: {e}"}
