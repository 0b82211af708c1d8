"""Mail transports used by the email channel."""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.message import EmailMessage

import aiosmtplib

from ..core.config import Settings


logger = logging.getLogger(__name__)


@dataclass
class EmailConfig:
    """Email delivery configuration."""
    smtp_host: str = "localhost"
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "notifications@example.com"
    from_name: str = "Fleet Notifications"
    use_tls: bool = True
    timeout_seconds: float = 30

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailConfig":
        return cls(
            smtp_host=settings.smtp_host,
            smtp_port=settings.smtp_port,
            smtp_user=settings.smtp_user,
            smtp_password=settings.smtp_password,
            from_email=settings.mail_from_address,
            from_name=settings.mail_from_name,
            use_tls=settings.smtp_use_tls,
            timeout_seconds=settings.smtp_timeout_seconds,
        )


class MailTransport(ABC):
    """Something that can hand a message to a mail server."""

    @abstractmethod
    async def send_mail(
        self,
        to_address: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> bool:
        pass


class SmtpMailTransport(MailTransport):
    """Sends mail over SMTP with aiosmtplib."""

    def __init__(self, config: EmailConfig):
        self._config = config

    async def send_mail(
        self,
        to_address: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> bool:
        message = EmailMessage()
        message["From"] = f"{self._config.from_name} <{self._config.from_email}>"
        message["To"] = to_address
        message["Subject"] = subject
        message.set_content(text_body or subject)
        message.add_alternative(html_body, subtype="html")

        # Errors propagate; the channel turns them into a failed delivery
        await aiosmtplib.send(
            message,
            hostname=self._config.smtp_host,
            port=self._config.smtp_port,
            username=self._config.smtp_user,
            password=self._config.smtp_password,
            start_tls=self._config.use_tls,
            timeout=self._config.timeout_seconds,
        )
        return True


class LogMailTransport(MailTransport):
    """Logs mail instead of sending it (non-production)."""

    async def send_mail(
        self,
        to_address: str,
        subject: str,
        html_body: str,
        text_body: str | None = None,
    ) -> bool:
        logger.info(f"[EMAIL] To: {to_address}, Subject: {subject}")
        return True


def build_mail_transport(settings: Settings) -> MailTransport:
    if settings.mail_driver == "smtp":
        return SmtpMailTransport(EmailConfig.from_settings(settings))
    return LogMailTransport()
