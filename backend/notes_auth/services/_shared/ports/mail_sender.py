from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Protocol

log = logging.getLogger(__name__)


class MailSender(Protocol):
    """
    Port for outbound email carrying single-use links.

    Rendering and delivery belong to the mail collaborator; the token
    lifecycle only decides *when* a link is sent and *which* token it holds.
    """

    def send_email_verification(self, *, email: str, token: str) -> None: ...

    def send_password_reset(self, *, email: str, token: str) -> None: ...


class LoggingMailSender(MailSender):
    """Default sender when no delivery backend is wired: records the intent only."""

    def send_email_verification(self, *, email: str, token: str) -> None:
        log.info("mail.email_verification queued", extra={"event": "mail_queued"})

    def send_password_reset(self, *, email: str, token: str) -> None:
        log.info("mail.password_reset queued", extra={"event": "mail_queued"})


@dataclass(slots=True)
class SentMail:
    template: str
    email: str
    token: str


@dataclass(slots=True)
class RecordingMailSender(MailSender):
    """Outbox double used in tests."""

    outbox: list[SentMail] = field(default_factory=list)

    def send_email_verification(self, *, email: str, token: str) -> None:
        self.outbox.append(SentMail("email_verification", email, token))

    def send_password_reset(self, *, email: str, token: str) -> None:
        self.outbox.append(SentMail("password_reset", email, token))

    def last(self, template: str) -> SentMail | None:
        return next((m for m in reversed(self.outbox) if m.template == template), None)
