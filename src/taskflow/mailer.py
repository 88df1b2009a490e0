"""
Outgoing mail

Related classes:
  - accounts.service.AuthService: password reset / password changed mails
  - notifications.channels.EmailChannel: task reminder mails
"""

import logging
import smtplib
import threading
from dataclasses import dataclass
from email.message import EmailMessage
from email.utils import formataddr
from typing import List

from .config import MailConfig


@dataclass
class MailMessage:
    """A plain-text mail"""

    to: str
    subject: str
    body: str


class Mailer:
    """Base mailer"""

    def __init__(self, config: MailConfig):
        self.config = config
        self.logger = logging.getLogger(__name__)

    def send(self, message: MailMessage) -> None:
        raise NotImplementedError


class LogMailer(Mailer):
    """Writes mails to the log and keeps them in memory (development / tests)"""

    def __init__(self, config: MailConfig):
        super().__init__(config)
        self._lock = threading.Lock()
        self.outbox: List[MailMessage] = []

    def send(self, message: MailMessage) -> None:
        with self._lock:
            self.outbox.append(message)
        self.logger.info("Mail to %s: %s", message.to, message.subject)
        self.logger.debug("Mail body:\n%s", message.body)


class SmtpMailer(Mailer):
    """Delivers through an SMTP relay"""

    def send(self, message: MailMessage) -> None:
        email = EmailMessage()
        email["From"] = formataddr((self.config.from_name, self.config.from_address))
        email["To"] = message.to
        email["Subject"] = message.subject
        email.set_content(message.body)

        with smtplib.SMTP(self.config.host, self.config.port, timeout=30) as smtp:
            if self.config.use_tls:
                smtp.starttls()
            if self.config.username:
                smtp.login(self.config.username, self.config.password or "")
            smtp.send_message(email)
        self.logger.info("Mail sent to %s: %s", message.to, message.subject)


def create_mailer(config: MailConfig) -> Mailer:
    """Pick the mailer for the configured driver"""
    if config.driver == "smtp":
        return SmtpMailer(config)
    if config.driver != "log":
        raise ValueError(f"Unknown mail driver: {config.driver}")
    return LogMailer(config)
