"""
Envoi d'emails via SMTP (aiosmtplib).
"""
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional
import logging

import aiosmtplib

from backend.config import EMAIL_HOST, EMAIL_PORT, EMAIL_USER, EMAIL_PASSWORD, EMAIL_USE_TLS

logger = logging.getLogger(__name__)


class EmailService:
    def __init__(
        self,
        host: str = EMAIL_HOST,
        port: int = EMAIL_PORT,
        username: str = EMAIL_USER,
        password: str = EMAIL_PASSWORD,
        use_tls: bool = EMAIL_USE_TLS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def build_message(self, to_email: str, subject: str, body: str, html_body: Optional[str] = None) -> MIMEMultipart:
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"Elite Healthspan <{self.username}>"
        message["To"] = to_email
        message.attach(MIMEText(body, "plain"))
        if html_body:
            message.attach(MIMEText(html_body, "html"))
        return message

    async def send_email(self, to_email: str, subject: str, body: str, html_body: Optional[str] = None) -> None:
        """Envoie un email texte (+ HTML optionnel). Lève l'exception SMTP en cas d'échec."""
        message = self.build_message(to_email, subject, body, html_body)
        try:
            async with aiosmtplib.SMTP(hostname=self.host, port=self.port, use_tls=self.use_tls) as smtp:
                if self.username:
                    await smtp.login(self.username, self.password)
                await smtp.send_message(message)
        except Exception:
            logger.exception("notifications.email failed to=%s", to_email)
            raise
        logger.info("notifications.email sent to=%s", to_email)


_email_service: Optional[EmailService] = None

def get_email_service() -> EmailService:
    global _email_service
    if _email_service is None:
        _email_service = EmailService()
    return _email_service
