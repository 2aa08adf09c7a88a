# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Base classes for account notifications.

A notifier turns the three account events (verification, password reset,
welcome) into an AuthMessage and hands it to ``deliver``. Subclasses only
implement delivery. Links carry the single-use token in their query
string, so message bodies are never logged.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from urllib.parse import urlencode

from authcore.utils.logging import mask_email


@dataclass(frozen=True)
class AuthMessage:
    """An outbound account message.

    Attributes:
        kind: Event name, e.g. "verification".
        to: Recipient address.
        subject: Subject line.
        text: Plain text body.
        html: HTML body.
    """

    kind: str
    to: str
    subject: str
    text: str
    html: str


class BaseNotifier(ABC):
    """Builds account messages and delegates delivery.

    Attributes:
        _frontend_url: Base URL of the client application.
        _product_name: Name used in subjects and greetings.
    """

    def __init__(self, frontend_url: str, product_name: str = "authcore") -> None:
        self._frontend_url = frontend_url.rstrip("/")
        self._product_name = product_name
        self.logger = logging.getLogger(f"{__name__}.{self.__class__.__name__}")

    @abstractmethod
    async def deliver(self, message: AuthMessage) -> None:
        """Send a message.

        Raises:
            Exception: Delivery failures propagate; callers decide whether
                they are fatal.
        """

    async def send_verification_message(self, to: str, token: str, name: str) -> None:
        link = self._link("/verify-email", token)
        await self.deliver(
            self._build(
                "verification",
                to,
                f"Verify your {self._product_name} email address",
                name,
                "Please confirm your email address by opening the link below.",
                link,
            )
        )

    async def send_reset_message(self, to: str, token: str, name: str) -> None:
        link = self._link("/reset-password", token)
        await self.deliver(
            self._build(
                "password_reset",
                to,
                f"Reset your {self._product_name} password",
                name,
                "A password reset was requested for your account. "
                "If this was not you, ignore this message.",
                link,
            )
        )

    async def send_welcome_message(self, to: str, name: str) -> None:
        await self.deliver(
            self._build(
                "welcome",
                to,
                f"Welcome to {self._product_name}",
                name,
                "Your email address is confirmed and your account is ready.",
                self._frontend_url,
            )
        )

    def _link(self, path: str, token: str) -> str:
        return f"{self._frontend_url}{path}?{urlencode({'token': token})}"

    def _build(
        self,
        kind: str,
        to: str,
        subject: str,
        name: str,
        body: str,
        link: str,
    ) -> AuthMessage:
        greeting = f"Hello {name}," if name else "Hello,"
        text = "\n".join([greeting, "", body, "", link, ""])
        html = (
            f"<p>{greeting}</p>"
            f"<p>{body}</p>"
            f'<p><a href="{link}">{link}</a></p>'
        )
        return AuthMessage(kind=kind, to=to, subject=subject, text=text, html=html)


class LoggingNotifier(BaseNotifier):
    """Notifier for development that only logs what would be sent."""

    async def deliver(self, message: AuthMessage) -> None:
        self.logger.info(
            "Skipping delivery of %s message to %s (no mail transport)",
            message.kind,
            mask_email(message.to),
        )
