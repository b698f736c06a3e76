from __future__ import annotations

import logging
import smtplib
import threading
import time
from collections import deque
from contextlib import contextmanager
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid, parseaddr
from typing import Any, List, Mapping

from app.contexts.notifications.domain.gateway import EmailGateway, EmailMessage, SendResult


logger = logging.getLogger("app.notifications.email")

DEFAULT_SENDER = "Civcon Office <noreply@civcon.example.com>"
DEFAULT_OUTBOX_LIMIT = 200


def build_mime_message(sender: str, message: EmailMessage) -> MIMEMultipart:
    mime = MIMEMultipart("mixed")
    mime["From"] = sender
    mime["To"] = ", ".join(message.to)
    mime["Subject"] = message.subject
    mime["Date"] = formatdate(localtime=True)
    mime["Message-ID"] = make_msgid(domain=(parseaddr(sender)[1].partition("@")[2] or None))

    body = MIMEMultipart("alternative")
    body.attach(MIMEText(message.text or "", "plain", "utf-8"))
    if message.html:
        body.attach(MIMEText(message.html, "html", "utf-8"))
    mime.attach(body)

    for attachment in message.attachments:
        maintype, _, subtype = (attachment.content_type or "application/octet-stream").partition("/")
        part = MIMEBase(maintype, subtype or "octet-stream")
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        mime.attach(part)
    return mime


class SmtpEmailGateway(EmailGateway):
    """SMTP delivery with bounded retries; authentication failures are not retried."""

    def __init__(
        self,
        *,
        host: str,
        port: int,
        username: str | None = None,
        password: str | None = None,
        use_ssl: bool = False,
        sender: str = DEFAULT_SENDER,
        timeout_seconds: float = 20.0,
        max_retries: int = 2,
        retry_delay_seconds: float = 1.0,
    ) -> None:
        self.host = host
        self.port = int(port)
        self.username = username
        self.password = password
        self.use_ssl = bool(use_ssl)
        self.sender = sender or DEFAULT_SENDER
        self.timeout_seconds = float(timeout_seconds)
        self.max_retries = max(1, int(max_retries))
        self.retry_delay_seconds = max(0.0, float(retry_delay_seconds))

    @contextmanager
    def _connection(self):
        server = None
        try:
            if self.use_ssl:
                server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout_seconds)
            else:
                server = smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds)
                server.starttls()
            if self.username:
                server.login(self.username, self.password or "")
            yield server
        finally:
            if server is not None:
                try:
                    server.quit()
                except (smtplib.SMTPException, OSError) as exc:
                    logger.warning("smtp_quit_failed", extra={"error": str(exc)})

    def send(self, message: EmailMessage) -> SendResult:
        recipients = [address for address in message.to if address]
        if not recipients:
            return SendResult(success=False, error="no recipients")
        mime = build_mime_message(self.sender, message)

        last_error = "unknown error"
        for attempt in range(1, self.max_retries + 1):
            try:
                with self._connection() as server:
                    server.sendmail(parseaddr(self.sender)[1] or self.sender, recipients, mime.as_string())
                logger.info(
                    "email_sent",
                    extra={"recipients": recipients, "subject": message.subject, "attempt": attempt},
                )
                return SendResult(success=True)
            except smtplib.SMTPAuthenticationError as exc:
                last_error = f"authentication failed: {exc}"
                logger.error("email_auth_failed", extra={"error": str(exc)})
                break
            except (smtplib.SMTPException, OSError) as exc:
                last_error = str(exc) or exc.__class__.__name__
                logger.warning(
                    "email_attempt_failed",
                    extra={"recipients": recipients, "attempt": attempt, "error": last_error},
                )
                if attempt < self.max_retries and self.retry_delay_seconds:
                    time.sleep(self.retry_delay_seconds)

        return SendResult(success=False, error=last_error)


class OutboxEmailGateway(EmailGateway):
    """Keeps messages in memory and logs them instead of talking to SMTP."""

    def __init__(self, sender: str = DEFAULT_SENDER, limit: int = DEFAULT_OUTBOX_LIMIT) -> None:
        self.sender = sender or DEFAULT_SENDER
        self._lock = threading.Lock()
        self._messages: deque[EmailMessage] = deque(maxlen=max(1, int(limit or DEFAULT_OUTBOX_LIMIT)))

    def send(self, message: EmailMessage) -> SendResult:
        recipients = [address for address in message.to if address]
        if not recipients:
            return SendResult(success=False, error="no recipients")
        with self._lock:
            self._messages.append(message)
        logger.info(
            "email_queued_to_outbox",
            extra={
                "recipients": recipients,
                "subject": message.subject,
                "attachments": [attachment.filename for attachment in message.attachments],
            },
        )
        return SendResult(success=True)

    @property
    def messages(self) -> List[EmailMessage]:
        with self._lock:
            return list(self._messages)

    def clear(self) -> None:
        with self._lock:
            self._messages.clear()


def build_email_gateway(config: Mapping[str, Any]) -> EmailGateway:
    mode = str(config.get("EMAIL_MODE") or "outbox").strip().lower()
    sender = str(config.get("EMAIL_FROM") or DEFAULT_SENDER)
    if mode == "outbox":
        return OutboxEmailGateway(sender=sender, limit=int(config.get("EMAIL_OUTBOX_LIMIT") or DEFAULT_OUTBOX_LIMIT))
    if mode == "smtp":
        host = str(config.get("EMAIL_HOST") or "").strip()
        if not host:
            raise RuntimeError("EMAIL_HOST is required when EMAIL_MODE=smtp.")
        return SmtpEmailGateway(
            host=host,
            port=int(config.get("EMAIL_PORT") or 587),
            username=config.get("EMAIL_USER") or None,
            password=config.get("EMAIL_PASS") or None,
            use_ssl=bool(config.get("EMAIL_USE_SSL")),
            sender=sender,
            timeout_seconds=float(config.get("EMAIL_TIMEOUT_SECONDS") or 20),
            max_retries=int(config.get("EMAIL_MAX_RETRIES") or 2),
        )
    raise RuntimeError(f"Unsupported EMAIL_MODE: {mode!r}")
