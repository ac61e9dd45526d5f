"""
Outgoing email senders: SMTP for production, in-memory for tests/dev.
"""

from __future__ import annotations

import smtplib
import ssl
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Optional, Protocol


class EmailDeliveryError(RuntimeError):
    """The provider refused or failed to accept a message."""


class EmailSender(Protocol):
    def send(self, to: str, subject: str, html: str) -> None:
        ...


@dataclass
class SentEmail:
    to: str
    subject: str
    html: str


@dataclass
class InMemoryEmailSender:
    """Test double that records messages instead of sending them."""

    sent: list[SentEmail] = field(default_factory=list)
    fail_with: Optional[str] = None

    def send(self, to: str, subject: str, html: str) -> None:
        if self.fail_with:
            raise EmailDeliveryError(self.fail_with)
        self.sent.append(SentEmail(to=to, subject=subject, html=html))


@dataclass
class SmtpEmailSender:
    host: str
    port: int
    from_address: str
    username: Optional[str] = None
    password: Optional[str] = None
    use_ssl: bool = True
    timeout: float = 30.0

    def _build(self, to: str, subject: str, html: str) -> EmailMessage:
        em = EmailMessage()
        em["From"] = self.from_address
        em["To"] = to
        em["Subject"] = subject
        em.set_content(html, subtype="html")
        return em

    def send(self, to: str, subject: str, html: str) -> None:
        em = self._build(to, subject, html)
        try:
            if self.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(
                    self.host, self.port, context=context, timeout=self.timeout
                ) as smtp:
                    self._deliver(smtp, em)
            else:
                with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                    smtp.starttls(context=ssl.create_default_context())
                    self._deliver(smtp, em)
        except (smtplib.SMTPException, OSError) as exc:
            raise EmailDeliveryError(str(exc)) from exc

    def _deliver(self, smtp: smtplib.SMTP, em: EmailMessage) -> None:
        if self.username:
            smtp.login(self.username, self.password or "")
        smtp.send_message(em)
