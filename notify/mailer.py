"""
notify/mailer.py -- Outbound registration confirmation email.

Sent after a successful self-registration, from a FastAPI BackgroundTasks
job so the HTTP response does not wait on the SMTP server. Delivery is best
effort: a failure is logged and never undoes or fails the registration.

With MAIL_ENABLED=false (the default) nothing is sent; the message that would
have gone out is logged at DEBUG instead.

Layer rule: no imports from api/ or org/.
"""

from __future__ import annotations

import logging
import smtplib
from collections.abc import Callable
from email.message import EmailMessage

from auth.models import User
from core.config import Settings

logger = logging.getLogger("orgregistry.notify")

SUBJECT = "Registration Successful"


class RegistrationMailer:
    def __init__(self, settings: Settings, smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP) -> None:
        self.settings = settings
        self._smtp_factory = smtp_factory

    def build_message(self, user: User) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.mail_from
        message["To"] = user.email
        message["Subject"] = SUBJECT
        message.set_content(f"Dear {user.first_name},\n\nThank you for registering!")
        return message

    def send_registration_confirmation(self, user: User) -> bool:
        """Send the confirmation email. Returns True if the SMTP server accepted it."""
        message = self.build_message(user)
        if not self.settings.mail_enabled:
            logger.debug("Mail disabled, not sending confirmation to %s", user.email)
            return False
        try:
            with self._smtp_factory(self.settings.smtp_host, self.settings.smtp_port, timeout=10) as smtp:
                if self.settings.smtp_starttls:
                    smtp.starttls()
                if self.settings.smtp_username:
                    smtp.login(self.settings.smtp_username, self.settings.smtp_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Failed to send registration confirmation email to %s: %s", user.email, exc)
            return False
        logger.info("Registration confirmation email sent to %s", user.email)
        return True
