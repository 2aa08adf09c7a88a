# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Account notifications sent by email over async SMTP.

Configuration (via environment variables):
- SMTP_HOST: SMTP server hostname
- SMTP_PORT: SMTP server port (default: 587)
- SMTP_USERNAME: SMTP authentication username
- SMTP_PASSWORD: SMTP authentication password
- SMTP_USE_TLS: Use STARTTLS (default: true)
- SMTP_FROM_EMAIL: Sender email address
- SMTP_FROM_NAME: Sender display name
- SMTP_FRONTEND_URL: Base URL for links in messages
"""

from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText

import aiosmtplib

from authcore.core.config.settings import SMTPSettings
from authcore.infrastructure.notifications.base import AuthMessage, BaseNotifier
from authcore.utils.logging import mask_email


class SMTPNotifier(BaseNotifier):
    """Sends account messages through an SMTP server.

    When SMTP is not configured, messages are skipped with a warning.

    Example:
        >>> notifier = SMTPNotifier(settings.smtp)
        >>> await notifier.send_welcome_message("user@example.com", "Ada")
    """

    def __init__(self, settings: SMTPSettings) -> None:
        super().__init__(settings.frontend_url, settings.from_name)
        self._settings = settings

    async def deliver(self, message: AuthMessage) -> None:
        """Send a message via SMTP.

        Raises:
            aiosmtplib.SMTPException: If the server rejects the message.
        """
        if not self._settings.is_configured:
            self.logger.warning(
                "Email delivery disabled: SMTP_HOST or SMTP_FROM_EMAIL not set, "
                "dropping %s message",
                message.kind,
            )
            return

        await aiosmtplib.send(
            self._build_mime(message),
            hostname=self._settings.host,
            port=self._settings.port,
            username=self._settings.username or None,
            password=self._settings.password.get_secret_value() or None,
            start_tls=self._settings.use_tls,
        )
        self.logger.info("Email sent to %s: %s", mask_email(message.to), message.kind)

    def _build_mime(self, message: AuthMessage) -> MIMEMultipart:
        mime = MIMEMultipart("alternative")
        mime["From"] = f"{self._settings.from_name} <{self._settings.from_email}>"
        mime["To"] = message.to
        mime["Subject"] = message.subject
        mime.attach(MIMEText(message.text, "plain", "utf-8"))
        mime.attach(MIMEText(message.html, "html", "utf-8"))
        return mime
