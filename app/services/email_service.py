import asyncio
import smtplib
from email.message import EmailMessage
from typing import Optional

from app.logging_config import get_logger
from app.services.result import Result

logger = get_logger("email_service")


class EmailSender:
    """SMTP mail relay; the blocking smtplib session runs in a worker thread."""

    def __init__(
        self,
        host: Optional[str],
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        sender: str = "no-reply@shiftline.local",
        timeout_seconds: float = 10.0,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender
        self.timeout_seconds = timeout_seconds

    def build_message(self, to: str, subject: str, body: str) -> EmailMessage:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = f"Employee Scheduling System <{self.sender}>"
        msg["To"] = to
        msg.set_content(body)
        return msg

    def _deliver(self, msg: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(msg)

    async def send(self, to: str, subject: str, body: str) -> Result[bool]:
        if not self.host:
            logger.error("SMTP host is missing")
            return Result.failure("Email is not configured", code="dependency_unavailable")
        if not to:
            return Result.failure("Recipient has no email address", code="validation")

        msg = self.build_message(to, subject, body)
        try:
            await asyncio.wait_for(asyncio.to_thread(self._deliver, msg), timeout=self.timeout_seconds)
        except asyncio.TimeoutError:
            logger.warning("Email send timed out", extra={"context": {"subject": subject}})
            return Result.failure("Email send timed out", code="timeout")
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Email send failed", extra={"context": {"subject": subject, "error": str(exc)}})
            return Result.failure(str(exc), code="provider_rejected")
        return Result.success(True)
