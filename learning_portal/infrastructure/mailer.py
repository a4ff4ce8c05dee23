import smtplib
from email.message import EmailMessage

import structlog

from ..config import Settings
from ..domain.entities import Student

logger = structlog.get_logger(__name__)

WELCOME_SUBJECT = "Welcome to SkillForge Free Academy!"


def welcome_body(student: Student, app_url: str) -> str:
    return (
        f"Hi {student.full_name},\n\n"
        f"Thank you for registering for the {student.track.value} track.\n"
        "You can now access your exclusive handbooks by logging into your student portal:\n"
        f"{app_url.rstrip('/')}/login.html\n\n"
        "Best regards,\n"
        "The SkillForge Team\n"
    )


class SmtpMailer:
    def __init__(self, settings: Settings):
        self.enabled = settings.EMAIL_ENABLED
        self.host = settings.EMAIL_HOST
        self.port = settings.EMAIL_PORT
        self.user = settings.EMAIL_USER
        self.password = settings.EMAIL_PASSWORD
        self.sender = settings.EMAIL_FROM or settings.EMAIL_USER
        self.app_url = settings.APP_URL

    def send_welcome(self, student: Student) -> bool:
        """Delivery problems are logged and reported as False, never raised."""
        if not self.enabled or not self.host:
            logger.info("welcome_email_skipped", reason="email disabled")
            return False

        msg = EmailMessage()
        msg["Subject"] = WELCOME_SUBJECT
        msg["From"] = self.sender or ""
        msg["To"] = student.email
        msg.set_content(welcome_body(student, self.app_url))

        try:
            with smtplib.SMTP(self.host, self.port, timeout=10) as server:
                server.starttls()
                if self.user and self.password:
                    server.login(self.user, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("welcome_email_failed", to=student.email, error=str(e))
            return False
        logger.info("welcome_email_sent", to=student.email)
        return True
