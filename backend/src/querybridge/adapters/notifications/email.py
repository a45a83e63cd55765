"""SMTP email adapter for account emails."""

import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import structlog

logger = structlog.get_logger()


@dataclass
class EmailConfig:
    """Email configuration."""

    smtp_host: str
    smtp_port: int = 587
    smtp_user: str | None = None
    smtp_password: str | None = None
    from_email: str = "no-reply@querybridge.local"
    from_name: str = "Querybridge"
    use_tls: bool = True
    timeout_seconds: float = 10.0


class EmailNotifier:
    """Delivers account emails via SMTP.

    ``send`` blocks; async callers hand it to an executor.
    """

    def __init__(self, config: EmailConfig):
        """Initialize the email notifier.

        Args:
            config: Email configuration settings.
        """
        self.config = config

    def build_message(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> MIMEMultipart:
        """Build a multipart message with optional plain-text part."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.config.from_name} <{self.config.from_email}>"
        msg["To"] = ", ".join(to_emails)

        if body_text:
            msg.attach(MIMEText(body_text, "plain"))
        msg.attach(MIMEText(body_html, "html"))
        return msg

    def send(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        body_text: str | None = None,
    ) -> bool:
        """Send an email. Returns True if the server accepted it."""
        msg = self.build_message(to_emails, subject, body_html, body_text)
        try:
            with smtplib.SMTP(
                self.config.smtp_host,
                self.config.smtp_port,
                timeout=self.config.timeout_seconds,
            ) as server:
                if self.config.use_tls:
                    server.starttls()

                if self.config.smtp_user and self.config.smtp_password:
                    server.login(self.config.smtp_user, self.config.smtp_password)

                server.sendmail(self.config.from_email, to_emails, msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            logger.error("email_error", recipients=len(to_emails), subject=subject, error=str(e))
            return False

        logger.info("email_sent", recipients=len(to_emails), subject=subject)
        return True
