from __future__ import annotations

import smtplib
from email.message import EmailMessage
from typing import List, Optional, Protocol

from .domain import Notification
from .errors import InternalError
from .logging import ServiceLogger
from .providers import Clock


class Notifier(Protocol):
    def send(self, recipient: str, subject: str, body: str) -> Notification: ...


class OutboxNotifier:
    """Keeps messages in memory; used when no SMTP server is configured."""

    def __init__(self, clock: Clock) -> None:
        self._clock = clock
        self._log = ServiceLogger("notifications")
        self.outbox: List[Notification] = []

    def send(self, recipient: str, subject: str, body: str) -> Notification:
        notification = Notification(recipient=recipient, subject=subject, body=body, sent_at=self._clock.now())
        self.outbox.append(notification)
        self._log.info("Mail kept in outbox", recipient=recipient, subject=subject)
        return notification

    def last_to(self, recipient: str) -> Optional[Notification]:
        for notification in reversed(self.outbox):
            if notification.recipient == recipient:
                return notification
        return None


class SmtpNotifier:
    def __init__(
        self,
        *,
        host: str,
        port: int,
        sender: str,
        clock: Clock,
        user: str = "",
        password: str = "",
        starttls: bool = True,
        timeout: int = 30,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._clock = clock
        self._user = user
        self._password = password
        self._starttls = starttls
        self._timeout = timeout
        self._log = ServiceLogger("notifications")

    def send(self, recipient: str, subject: str, body: str) -> Notification:
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._sender
        message["To"] = recipient
        message.set_content(body, charset="utf-8")

        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._starttls:
                    smtp.starttls()
                if self._user:
                    smtp.login(self._user, self._password)
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            self._log.exception("Mail delivery failed", recipient=recipient, host=self._host)
            raise InternalError("Mail delivery failed") from exc

        self._log.info("Mail sent", recipient=recipient, subject=subject)
        return Notification(recipient=recipient, subject=subject, body=body, sent_at=self._clock.now())
