# tutorworld/utils/email.py
import logging
import smtplib
from datetime import datetime
from email.message import EmailMessage
from email.utils import formataddr
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from tutorworld.core.config import Settings, settings

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    TEACHER_INVITE = "teacher_invite"
    VERIFICATION_CODE = "verification_code"
    PASSWORD_RESET_CODE = "password_reset_code"
    QUIZ_ASSIGNMENT = "quiz_assignment"


_LAYOUT = """<!DOCTYPE html>
<html>
<body style="font-family: Arial, sans-serif; line-height: 1.6; color: #333;">
  <div style="max-width: 600px; margin: 0 auto; padding: 20px;">
    <h1 style="color: #667eea;">{heading}</h1>
    {body}
    <p style="color: #666; font-size: 12px;">&copy; {year} Tutor World. All rights reserved.</p>
  </div>
</body>
</html>
"""


def render_template(kind: NotificationKind, data: Dict[str, Any], frontend_url: str) -> Tuple[str, str, str]:
    """Return (subject, plain text, html) for a notification kind."""
    name = data.get("first_name") or "there"

    if kind is NotificationKind.VERIFICATION_CODE:
        subject = "Verify Your Email - Tutor World"
        heading = "Welcome to Tutor World!"
        lines = [
            f"Hi {name},",
            "Use the code below to verify your email address:",
            data["code"],
            "This code will expire in 24 hours.",
        ]
    elif kind is NotificationKind.PASSWORD_RESET_CODE:
        subject = "Reset Your Password - Tutor World"
        heading = "Reset Your Password"
        lines = [
            f"Hi {name},",
            "We received a request to reset your password. Your reset code is:",
            data["code"],
            "This code will expire in 1 hour. If you didn't request this, ignore this email.",
        ]
    elif kind is NotificationKind.TEACHER_INVITE:
        subject = "You're invited to teach on Tutor World"
        heading = "Welcome aboard!"
        lines = [
            f"Hi {name},",
            "An administrator created a teacher account for you.",
            f"Email: {data['email']}",
            f"Temporary password: {data['temporary_password']}",
            f"Sign in at {frontend_url}/auth/login and change your password.",
        ]
    elif kind is NotificationKind.QUIZ_ASSIGNMENT:
        subject = f"New Quiz Assigned: {data['quiz_title']}"
        heading = "New Quiz Available!"
        lines = [
            f"Hi {name},",
            f"A new quiz has been assigned to you: {data['quiz_title']}",
            f"Open your dashboard to start it: {frontend_url}/dashboard",
        ]
    else:
        raise ValueError(f"Unknown notification kind: {kind!r}")

    text = "\n\n".join(lines)
    html = _LAYOUT.format(
        heading=heading,
        body="\n    ".join(f"<p>{line}</p>" for line in lines),
        year=datetime.now().year,
    )
    return subject, text, html


class EmailNotifier:
    """
    Best-effort notification sink over SMTP.

    notify() never raises: delivery failures are logged and reported as False
    so callers can carry on with the operation that triggered them.
    """

    def __init__(self, config: Optional[Settings] = None):
        self.config = config or settings

    def notify(self, recipient: str, kind: NotificationKind, data: Dict[str, Any]) -> bool:
        try:
            subject, text, html = render_template(kind, data, self.config.frontend_url)
        except (KeyError, ValueError) as e:
            logger.error(f"Failed to render {kind} notification for {recipient}: {e}")
            return False

        if not self.config.mail_enabled:
            logger.info(f"Mail disabled, skipping {kind.value} email to {recipient}: {subject}")
            return True

        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = formataddr((self.config.mail_from_name, self.config.mail_from_address))
        message["To"] = recipient
        message.set_content(text)
        message.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.config.mail_host, self.config.mail_port, timeout=10) as smtp:
                if self.config.mail_use_tls:
                    smtp.starttls()
                if self.config.mail_username:
                    smtp.login(self.config.mail_username, self.config.mail_password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send {kind.value} email to {recipient}: {e}")
            return False

        logger.info(f"{kind.value} email sent to {recipient}")
        return True
