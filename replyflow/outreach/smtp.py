from __future__ import annotations

import logging
import os
import smtplib
import ssl
from email.message import EmailMessage
from email.utils import make_msgid

from .base import DeliveryChannel, DeliveryError, OutboundMessage

logger = logging.getLogger(__name__)

SECRET_PATH = "/run/secrets/smtp_password"


class SmtpChannel(DeliveryChannel):
    """
    SMTP-backed outreach delivery.

    Configuration via environment variables:
      - SMTP_HOST (required)
      - SMTP_PORT (optional, default 587)
      - SMTP_USER (optional)
      - SMTP_PASSWORD (optional; read from /run/secrets/smtp_password if not set)
      - SMTP_FROM (required)
      - SMTP_USE_TLS (optional, default 'true')
      - SMTP_USE_SSL (optional, default 'false')
    """

    name = "smtp"

    def __init__(
        self,
        smtp_host: str | None = None,
        smtp_port: int | None = None,
        smtp_user: str | None = None,
        smtp_password: str | None = None,
        sender: str | None = None,
        use_tls: bool | None = None,
        use_ssl: bool | None = None,
    ) -> None:
        self.smtp_host = smtp_host or os.getenv("SMTP_HOST")
        port_str = os.getenv("SMTP_PORT", "587")
        try:
            self.smtp_port = smtp_port or int(port_str)
        except ValueError as err:
            raise ValueError(f"SMTP_PORT must be numeric, got: {port_str}") from err
        self.smtp_user = smtp_user or os.getenv("SMTP_USER")
        self.smtp_password = smtp_password or self._resolve_password()
        self.sender = sender or os.getenv("SMTP_FROM")
        self.use_tls = use_tls if use_tls is not None else os.getenv("SMTP_USE_TLS", "true").lower() == "true"
        self.use_ssl = use_ssl if use_ssl is not None else os.getenv("SMTP_USE_SSL", "false").lower() == "true"

        if not self.smtp_host:
            raise ValueError("SMTP_HOST must be configured")
        if not self.sender:
            raise ValueError("SMTP_FROM must be configured")

    def _resolve_password(self) -> str | None:
        """
        Resolve the SMTP password from SMTP_PASSWORD or the Docker secret file.

        The secret file is read as UTF-8, falling back to UTF-16.
        """
        password = os.getenv("SMTP_PASSWORD")
        if password:
            return password
        if os.path.exists(SECRET_PATH):
            try:
                with open(SECRET_PATH, encoding="utf-8") as f:
                    return f.read().strip()
            except UnicodeDecodeError:
                with open(SECRET_PATH, encoding="utf-16") as f:
                    return f.read().strip()
        return None

    def build_message(self, message: OutboundMessage) -> EmailMessage:
        email = EmailMessage()
        email["Subject"] = message.subject
        email["From"] = self.sender
        email["To"] = message.to
        if message.reply_to:
            email["Reply-To"] = message.reply_to
        email["Message-ID"] = make_msgid(domain=self.sender.split("@")[-1])

        # multipart/alternative when HTML is present
        email.set_content(message.text)
        if message.html:
            email.add_alternative(message.html, subtype="html")
        return email

    def send(self, message: OutboundMessage) -> str:
        """
        Send one outreach email via SMTP.

        Returns:
            The Message-ID header of the sent email

        Raises:
            DeliveryError: If the SMTP server rejects the message or is unreachable
        """
        email = self.build_message(message)

        try:
            if self.use_ssl:
                context = ssl.create_default_context()
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context) as server:
                    self._maybe_login(server)
                    server.send_message(email)
            else:
                with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                    if self.use_tls:
                        context = ssl.create_default_context()
                        server.starttls(context=context)
                    self._maybe_login(server)
                    server.send_message(email)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(f"SMTP authentication failed: {e}", code="AUTH_FAILED") from e
        except smtplib.SMTPRecipientsRefused as e:
            raise DeliveryError(f"Recipient refused: {message.to}", code="RECIPIENT_REFUSED") from e
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP delivery failed: {e}", code="SMTP_ERROR") from e

        logger.info(
            "Sent outreach email",
            extra={"to": message.to, "message_id": email["Message-ID"]},
        )
        return email["Message-ID"]

    def _maybe_login(self, server: smtplib.SMTP) -> None:
        """Authenticate only when both SMTP_USER and SMTP_PASSWORD are configured."""
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)


def get_delivery_channel() -> SmtpChannel | None:
    """Build the SMTP channel from the environment; None when SMTP is not configured."""
    try:
        return SmtpChannel()
    except ValueError as e:
        logger.warning(f"Email delivery disabled: {e}")
        return None
