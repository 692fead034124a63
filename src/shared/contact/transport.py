"""
SMTP transport and dispatcher for contact notifications.

The transport is built once from settings; if credentials are missing no
transport exists and every dispatch reports TransportUnavailable without
touching the network.
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, formatdate, make_msgid
from typing import Optional

from src.shared.config.settings import Settings
from src.shared.contact.exceptions import ConfigurationError, TransportError
from src.shared.contact.schemas import (
    DispatchOutcome,
    RenderedNotification,
    Sent,
    TransportFailure,
    TransportUnavailable,
)

logger = logging.getLogger(__name__)


class SmtpTransport:
    """Sends notifications through an authenticated SMTP server."""

    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender_name: str,
        secure: bool = False,
        timeout: float = 30.0
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender_name = sender_name
        self.secure = secure
        self.timeout = timeout

    @property
    def from_address(self) -> str:
        return formataddr((self.sender_name, self.username))

    def _connect(self) -> smtplib.SMTP:
        """Open an authenticated session (implicit TLS or STARTTLS)."""
        context = ssl.create_default_context()
        if self.secure:
            server = smtplib.SMTP_SSL(self.host, self.port, timeout=self.timeout, context=context)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=self.timeout)
        try:
            if not self.secure:
                server.starttls(context=context)
            server.login(self.username, self.password)
        except Exception:
            server.close()
            raise
        return server

    def build_message(self, notification: RenderedNotification, destination: str) -> MIMEMultipart:
        """Assemble the multipart/alternative email for a notification."""
        msg = MIMEMultipart("alternative")
        msg['From'] = self.from_address
        msg['To'] = destination
        msg['Reply-To'] = notification.reply_to  # Lets the recipient answer the submitter directly
        msg['Subject'] = notification.subject_line
        msg['Date'] = formatdate(notification.sent_at.timestamp(), localtime=False)
        msg['Message-ID'] = make_msgid(domain=self.username.rpartition("@")[2] or None)

        msg.attach(MIMEText(notification.text_body, 'plain', 'utf-8'))
        msg.attach(MIMEText(notification.html_body, 'html', 'utf-8'))
        return msg

    def send(self, notification: RenderedNotification, destination: str) -> str:
        """
        Send a notification.

        Returns:
            The Message-ID of the sent email

        Raises:
            TransportError: On any connection, authentication or delivery failure
        """
        msg = self.build_message(notification, destination)
        try:
            with self._connect() as server:
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        return msg['Message-ID']

    def verify(self) -> None:
        """
        Check that the server accepts a connection and our credentials.

        Raises:
            TransportError: If the session cannot be established
        """
        try:
            with self._connect() as server:
                server.noop()
        except (smtplib.SMTPException, OSError) as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e


def build_transport(settings: Settings) -> SmtpTransport:
    """
    Build the SMTP transport from settings.

    Raises:
        ConfigurationError: If SMTP credentials are not configured
    """
    if not settings.smtp_configured:
        raise ConfigurationError(
            "SMTP credentials not found; set SMTP_EMAIL and SMTP_PASSWORD"
        )
    return SmtpTransport(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_email,
        password=settings.smtp_password,
        sender_name=settings.sender_name,
        secure=settings.smtp_secure,
        timeout=settings.smtp_timeout,
    )


def create_transport(settings: Settings) -> Optional[SmtpTransport]:
    """Build the transport once, logging and returning None if misconfigured."""
    try:
        return build_transport(settings)
    except ConfigurationError as e:
        logger.error(f"Email transport unavailable: {e}")
        return None


class TransportDispatcher:
    """Hands rendered notifications to the transport and classifies the result."""

    def __init__(self, transport: Optional[SmtpTransport]):
        self.transport = transport

    @property
    def available(self) -> bool:
        return self.transport is not None

    def dispatch(self, notification: RenderedNotification, destination: str) -> DispatchOutcome:
        """
        Make a single send attempt.

        Returns:
            Sent with the receipt id, TransportUnavailable if no transport
            is configured, or TransportFailure with the error detail
        """
        if self.transport is None:
            return TransportUnavailable()

        try:
            receipt_id = self.transport.send(notification, destination)
        except TransportError as e:
            logger.error(f"Failed to send contact form email: {e}", exc_info=True)
            return TransportFailure(detail=str(e))
        except Exception as e:
            logger.error(f"Unexpected error sending contact form email: {str(e)}", exc_info=True)
            return TransportFailure(detail=f"{type(e).__name__}: {e}")

        return Sent(receipt_id=receipt_id)
