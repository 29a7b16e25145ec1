import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage

from starlette.concurrency import run_in_threadpool

from config import Settings

logger = logging.getLogger(__name__)

RESET_TEMPLATE = """\
Hi there,

We received a request to reset the password for your EduSpace account.
Open the link below to set a new password:

{reset_url}

This link will expire in {minutes} minutes.

If you didn't request a password reset, you can safely ignore this email.
Your password will remain unchanged.

(c) {year} EduSpace
"""


class Mailer:
    """SMTP sender for transactional mail. Built once per application."""

    def __init__(self, host: str, port: int, username: str, password: str, expire_minutes: int = 15):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.expire_minutes = expire_minutes

    @classmethod
    def from_settings(cls, settings: Settings) -> "Mailer":
        return cls(
            settings.smtp_host,
            settings.smtp_port,
            settings.smtp_email,
            settings.smtp_password,
            settings.reset_token_expire_minutes,
        )

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP_SSL(self.host, self.port, timeout=30) as smtp:
            smtp.login(self.username, self.password)
            smtp.send_message(message)

    async def send_password_reset(self, to: str, reset_url: str) -> None:
        message = EmailMessage()
        message["From"] = f"EduSpace <{self.username}>"
        message["To"] = to
        message["Subject"] = "EduSpace - Password Reset Request"
        message.set_content(
            RESET_TEMPLATE.format(reset_url=reset_url, minutes=self.expire_minutes, year=datetime.utcnow().year)
        )
        await run_in_threadpool(self._deliver, message)
        logger.info("Password reset email sent to %s", to)
