"""
Email Provider Service
Adapter pattern for sending emails (dev logging vs production SMTP)
"""
import html
import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional

from ..config import Config
from ..exceptions import DeliveryError

logger = logging.getLogger(__name__)


@dataclass
class EmailMessage:
    """Email message structure"""
    to: str
    subject: str
    text_body: str
    html_body: Optional[str] = None
    from_address: Optional[str] = None


class EmailProvider(ABC):
    """
    Abstract email provider interface

    Implementations:
    - DevEmailProvider: Logs emails to console (development)
    - SMTPEmailProvider: Sends via SMTP (production)
    """

    @abstractmethod
    def send(self, message: EmailMessage) -> None:
        """
        Send an email

        Raises:
            DeliveryError: if the message could not be handed over
        """
        pass

    @abstractmethod
    def is_available(self) -> bool:
        """True if the provider is configured and ready to send"""
        pass


class DevEmailProvider(EmailProvider):
    """Development email provider - logs emails instead of sending"""

    def send(self, message: EmailMessage) -> None:
        logger.info("=" * 60)
        logger.info("EMAIL (DEV MODE - NOT ACTUALLY SENT)")
        logger.info(f"To: {message.to}")
        logger.info(f"From: {message.from_address or 'noreply@example.com'}")
        logger.info(f"Subject: {message.subject}")
        logger.info("-" * 60)
        logger.info(message.text_body)
        logger.info("=" * 60)

    def is_available(self) -> bool:
        return True


class SMTPEmailProvider(EmailProvider):
    """SMTP email provider for production"""

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        from_address: str,
        use_tls: bool = True,
        timeout: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.from_address = from_address
        self.use_tls = use_tls
        self.timeout = timeout

    def _build(self, message: EmailMessage) -> MIMEMultipart:
        msg = MIMEMultipart('alternative')
        msg['Subject'] = message.subject
        msg['From'] = message.from_address or self.from_address
        msg['To'] = message.to
        msg.attach(MIMEText(message.text_body, 'plain'))
        if message.html_body:
            msg.attach(MIMEText(message.html_body, 'html'))
        return msg

    def send(self, message: EmailMessage) -> None:
        try:
            msg = self._build(message)
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.use_tls:
                    server.starttls()
                server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError, UnicodeError) as e:
            logger.error(f"Failed to send email to {message.to}: {e}", exc_info=True)
            raise DeliveryError("There was an error sending the email") from e

        logger.info(f"Email sent to {message.to}: {message.subject}")

    def is_available(self) -> bool:
        return all([self.host, self.port, self.user, self.password, self.from_address])


def create_email_provider(config: Config) -> EmailProvider:
    """SMTP when configured, otherwise the logging dev provider"""
    if config.smtp_configured:
        logger.info(f"Email provider: SMTP ({config.SMTP_HOST}:{config.SMTP_PORT})")
        return SMTPEmailProvider(
            host=config.SMTP_HOST,
            port=config.SMTP_PORT,
            user=config.SMTP_USER,
            password=config.SMTP_PASSWORD,
            from_address=config.SMTP_FROM_ADDRESS,
        )

    logger.info("Email provider: DevEmailProvider (logs to console only)")
    return DevEmailProvider()


def build_password_reset_email(email: str, code: str, ttl_minutes: int) -> EmailMessage:
    """Password reset message carrying the one-time code"""
    text_body = (
        "Forgot your password?\n\n"
        f"Enter this code on the site: {code}\n\n"
        f"The code expires in {ttl_minutes} minutes. "
        "If you didn't request a password reset, you can safely ignore this email."
    )
    html_body = f"""
    <html>
    <body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
        <h2>Forgot your password?</h2>
        <p>Enter this code on the site:</p>
        <p style="font-size: 22px; letter-spacing: 3px;"><strong>{html.escape(code)}</strong></p>
        <p style="font-size: 12px; color: #666;">
            The code expires in {ttl_minutes} minutes.
            If you didn't request a password reset, you can safely ignore this email.
        </p>
    </body>
    </html>
    """
    return EmailMessage(
        to=email,
        subject="Forgot your password?",
        text_body=text_body,
        html_body=html_body,
    )
