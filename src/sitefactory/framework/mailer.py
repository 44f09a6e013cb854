"""SMTP mailer for site messages and administrator mail."""

from __future__ import annotations

import smtplib
from collections.abc import Callable, Sequence
from email.message import EmailMessage
from typing import Any

from sitefactory.core.errors import MailError, MissingConfigError
from sitefactory.core.logging import get_logger

log = get_logger(__name__)

Renderer = Callable[[str, dict[str, Any]], str]


class Mailer:
    """Sends plain-text mail through one SMTP server.

    Args:
        smtp_server: Mail host.
        smtp_port: Mail port.
        mail_from: Sender address; defaults to *admin_email*.
        admin_email: Recipient of :meth:`email_admin`.
        renderer: ``(template, data) -> str``, used when a message body
            comes from a template.
    """

    def __init__(
        self,
        smtp_server: str = "localhost",
        smtp_port: int = 25,
        mail_from: str | None = None,
        admin_email: str | None = None,
        *,
        renderer: Renderer | None = None,
        timeout: float = 30.0,
    ):
        self.smtp_server = smtp_server
        self.smtp_port = smtp_port
        self.admin_email = admin_email
        self.mail_from = mail_from or admin_email or "sitefactory@localhost"
        self.renderer = renderer
        self.timeout = timeout

    def build_message(self, to: str | Sequence[str], subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.mail_from
        message["To"] = to if isinstance(to, str) else ", ".join(to)
        message["Subject"] = subject
        message.set_content(body)
        return message

    def send_message(
        self,
        to: str | Sequence[str],
        subject: str,
        body: str | None = None,
        *,
        template: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> EmailMessage:
        """Send one message; the body is rendered from *template* when given.

        Raises:
            MailError: The SMTP conversation failed.
        """
        if template is not None:
            if self.renderer is None:
                raise MailError(f"cannot render mail template '{template}' without a renderer")
            body = self.renderer(template, data or {})
        message = self.build_message(to, subject, body or "")
        try:
            with smtplib.SMTP(self.smtp_server, self.smtp_port, timeout=self.timeout) as smtp:
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as exc:
            raise MailError(
                f"could not send mail via {self.smtp_server}:{self.smtp_port}: {exc}", cause=exc
            ) from exc
        log.info("mail.sent", to=message["To"], subject=subject)
        return message

    def email_admin(self, subject: str, body: str) -> EmailMessage:
        if not self.admin_email:
            raise MissingConfigError("admin_email")
        return self.send_message(self.admin_email, subject, body)

    def __repr__(self) -> str:
        return f"Mailer({self.smtp_server!r}, {self.smtp_port})"
