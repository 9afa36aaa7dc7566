"""Participant notifications for review decisions.

This module provides:
- The Notifier protocol (the outbound notification collaborator)
- EmailNotifier, an SMTP implementation rendering Jinja2 templates
- NullNotifier and build_notifier, which picks one of the two from settings
- NotificationTrigger, which fires a notifier after a committed approval or
  rejection and turns every failure into a NotifyResult instead of raising

Notification failures never undo a review decision; they surface to the
caller as a NOTIFY_FAILED warning.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import smtplib
import ssl
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from enum import Enum
from typing import TYPE_CHECKING, Protocol

from jinja2 import Environment, PackageLoader, select_autoescape

if TYPE_CHECKING:
    from carshow.core.config import NotificationSettings
    from carshow.db.models.events import Event, Registration

logger = logging.getLogger(__name__)

NOTIFY_FAILED = "NOTIFY_FAILED"


class NotificationKind(str, Enum):
    """Review decisions that notify the participant."""

    APPROVED = "approved"
    REJECTED = "rejected"


@dataclass(frozen=True, slots=True)
class NotifyResult:
    """Outcome of a notification attempt.

    Attributes:
        success: Whether the participant was (or did not need to be) notified.
        error: Error message if the notification failed.
        skipped: True when nothing was sent (disabled, no address).
    """

    success: bool
    error: str | None = None
    skipped: bool = False

    def as_dict(self) -> dict[str, object]:
        return {"success": self.success, "error": self.error, "skipped": self.skipped}


class Notifier(Protocol):
    """Outbound notification collaborator."""

    async def notify(
        self,
        kind: NotificationKind,
        registration: Registration,
        event: Event | None,
    ) -> NotifyResult: ...


class NotificationError(Exception):
    """Raised when a notification cannot be delivered."""

    pass


class EmailNotifier:
    """Sends approval/rejection emails over SMTP.

    Templates live in ``carshow/templates/email`` as ``<kind>.txt`` and
    ``<kind>.html``. SMTP I/O runs in a worker thread.
    """

    def __init__(self, settings: NotificationSettings) -> None:
        """Initialize the notifier.

        Args:
            settings: SMTP and sender configuration.
        """
        self.settings = settings
        self._env = Environment(
            loader=PackageLoader("carshow", "templates/email"),
            autoescape=select_autoescape(["html", "xml"]),
        )

    async def notify(
        self,
        kind: NotificationKind,
        registration: Registration,
        event: Event | None,
    ) -> NotifyResult:
        """Email the participant about a review decision.

        Returns:
            NotifyResult; skipped when the registration has no address.

        Raises:
            NotificationError: If SMTP delivery fails.
        """
        if not registration.email:
            logger.info(
                "No email on registration, notification skipped",
                extra={"registration_id": str(registration.registration_id)},
            )
            return NotifyResult(success=True, skipped=True)

        subject, text_body, html_body = self._render(kind, registration, event)
        await asyncio.to_thread(
            self._send_email,
            to_email=registration.email,
            subject=subject,
            text_body=text_body,
            html_body=html_body,
        )

        logger.info(
            "Participant notified",
            extra={"registration_id": str(registration.registration_id), "kind": kind.value},
        )
        return NotifyResult(success=True)

    def _render(
        self,
        kind: NotificationKind,
        registration: Registration,
        event: Event | None,
    ) -> tuple[str, str, str]:
        event_name = event.name if event else "the event"
        event_date = event.event_date if event else None
        car_parts = (registration.car_year, registration.car_make, registration.car_model)
        context = {
            "full_name": registration.full_name,
            "registration_number": registration.registration_number,
            "rejection_reason": registration.rejection_reason,
            "event_name": event_name,
            "event_date": event_date.strftime("%d %B %Y") if event_date else "TBA",
            "location": event.location if event and event.location else "TBA",
            "car": " ".join(str(part) for part in car_parts if part),
        }
        text_body = self._env.get_template(f"{kind.value}.txt").render(**context)
        html_body = self._env.get_template(f"{kind.value}.html").render(**context)

        if kind is NotificationKind.APPROVED:
            subject = f"{event_name}: registration approved ({registration.registration_number})"
        else:
            subject = f"{event_name}: registration update"
        return subject, text_body, html_body

    def _send_email(
        self,
        *,
        to_email: str,
        subject: str,
        text_body: str,
        html_body: str,
    ) -> str:
        """Send an email via SMTP.

        Returns:
            SMTP message ID.

        Raises:
            NotificationError: If the email cannot be sent.
        """
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.from_name} <{self.settings.from_address}>"
        msg["To"] = to_email

        domain = self.settings.from_address.rsplit("@", 1)[-1]
        message_id = f"<{secrets.token_hex(16)}@{domain}>"
        msg["Message-ID"] = message_id

        msg.attach(MIMEText(text_body, "plain", "utf-8"))
        msg.attach(MIMEText(html_body, "html", "utf-8"))

        try:
            with smtplib.SMTP(
                self.settings.host,
                self.settings.port,
                timeout=self.settings.timeout,
            ) as server:
                if self.settings.use_tls:
                    server.starttls(context=ssl.create_default_context())
                if self.settings.username and self.settings.password:
                    server.login(
                        self.settings.username,
                        self.settings.password.get_secret_value(),
                    )
                server.sendmail(self.settings.from_address, [to_email], msg.as_string())
        except smtplib.SMTPException as e:
            msg_text = f"SMTP error: {e}"
            raise NotificationError(msg_text) from e
        except OSError as e:
            msg_text = f"Connection error: {e}"
            raise NotificationError(msg_text) from e

        return message_id


class NullNotifier:
    """Notifier that sends nothing; the default while notifications are disabled."""

    async def notify(
        self,
        kind: NotificationKind,
        registration: Registration,
        event: Event | None,
    ) -> NotifyResult:
        return NotifyResult(success=True, skipped=True)


def build_notifier(settings: NotificationSettings) -> Notifier:
    """Pick the notifier for the configured settings."""
    if not settings.enabled:
        return NullNotifier()
    return EmailNotifier(settings)


class NotificationTrigger:
    """Fires the notifier after a committed review decision.

    ``fire`` never raises: exceptions and unsuccessful results are logged and
    returned as a failed NotifyResult.
    """

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier

    async def fire(
        self,
        kind: NotificationKind,
        registration: Registration,
        event: Event | None,
    ) -> NotifyResult:
        """Notify the participant of a decision.

        Args:
            kind: approved or rejected.
            registration: Registration after the transition.
            event: Event the registration belongs to, if loaded.

        Returns:
            The notifier's result, or a failed result if it raised.
        """
        try:
            result = await self._notifier.notify(kind, registration, event)
        except Exception as e:
            logger.warning(
                "Notification failed",
                extra={
                    "registration_id": str(registration.registration_id),
                    "kind": kind.value,
                    "error": str(e),
                },
            )
            return NotifyResult(success=False, error=str(e) or e.__class__.__name__)

        if not result.success:
            logger.warning(
                "Notifier reported failure",
                extra={
                    "registration_id": str(registration.registration_id),
                    "kind": kind.value,
                    "error": result.error,
                },
            )
        return result
