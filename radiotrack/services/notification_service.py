"""
RadioTrack Backend — Notification Dispatcher
==============================================

What:  Tells a patient that one of their radiographs is ready for review.
How:   Composes a fixed message and hands it to the channel(s) matching the
       patient's preference (sms, email, or ambos). Channels are small
       strategy objects behind the `NotificationChannel` interface:
           - TwilioSmsChannel:  SMS through the Twilio REST API
           - SmtpEmailChannel:  email through an SMTP server
           - ConsoleChannel:    writes the message to the application log
Who:   Called by PatientService.update_radiograph_state when a radiograph
       enters the "lista" state and has not been notified yet.

Delivery rules:
    - Each channel is independent. A failing channel is caught and logged
      here and never undoes the other channel or the caller's state change.
      This holds for any exception a channel raises, not only
      NotificationError.
    - There is no retry. The caller learns from `DispatchResult.delivered`
      whether at least one channel succeeded and only then marks the
      radiograph as notified, so a later update to "lista" tries again.
    - Blocking transports (twilio's HTTP client, smtplib) run in the
      Starlette threadpool.

Lifecycle:
    `build_dispatcher(settings)` is called by the app factory; the resulting
    dispatcher lives on `app.state.dispatcher` and reaches route handlers
    through the `get_dispatcher` dependency.
"""

import logging
import smtplib
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from email.message import EmailMessage
from typing import Dict, List, Optional

from fastapi import Request
from starlette.concurrency import run_in_threadpool
from twilio.rest import Client

from radiotrack.config import Settings
from radiotrack.exceptions import NotificationError
from radiotrack.models.patient import Patient, Radiograph

logger = logging.getLogger(__name__)

MESSAGE_TEMPLATE = "Dear {name}, your {kind} radiograph is ready for review."
EMAIL_SUBJECT = "Radiograph ready."

SMS_PREFERENCES = {"sms", "ambos"}
EMAIL_PREFERENCES = {"email", "ambos"}


def mask_recipient(recipient: str) -> str:
    """Keep only the tail of a phone number or the domain of an address for logs."""
    if "@" in recipient:
        return "***@" + recipient.split("@", 1)[1]
    return "***" + recipient[-3:] if len(recipient) > 3 else "***"


def compose_message(patient: Patient, radiograph: Radiograph) -> str:
    return MESSAGE_TEMPLATE.format(name=patient.name, kind=radiograph.kind)


# ══════════════════════════════════════════════════════════════════════════
# Channels
# ══════════════════════════════════════════════════════════════════════════


class NotificationChannel(ABC):
    """
    Abstract delivery channel.

    Contract:
        - send() delivers one message to one recipient or raises
          NotificationError; it never returns a failure value
        - implementations translate their provider errors into
          NotificationError
    """

    name: str = "channel"

    @abstractmethod
    async def send(self, recipient: str, subject: str, body: str) -> None:
        ...


class ConsoleChannel(NotificationChannel):
    """Writes the notification to the log instead of contacting anyone."""

    def __init__(self, name: str = "console"):
        self.name = name

    async def send(self, recipient: str, subject: str, body: str) -> None:
        logger.info(
            "[Notificación] (%s to %s) %s",
            self.name,
            mask_recipient(recipient),
            body,
        )


class TwilioSmsChannel(NotificationChannel):
    """
    SMS through Twilio's Messages API.

    Args:
        account_sid / auth_token: Twilio credentials
        from_number: Sender number registered with Twilio (E.164)
        client: Pre-built twilio Client (tests pass a mock)
    """

    name = "sms"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        client: Optional[Client] = None,
    ):
        self.from_number = from_number
        self.client = client or Client(account_sid, auth_token)

    async def send(self, recipient: str, subject: str, body: str) -> None:
        try:
            message = await run_in_threadpool(
                self.client.messages.create,
                body=body,
                from_=self.from_number,
                to=recipient,
            )
        except Exception as e:
            logger.error("Error sending SMS to %s: %s", mask_recipient(recipient), e)
            raise NotificationError(
                message=f"SMS delivery failed: {e}",
                channel=self.name,
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("SMS sent to %s (sid=%s)", mask_recipient(recipient), message.sid)


class SmtpEmailChannel(NotificationChannel):
    """
    Email through an SMTP server with STARTTLS and login.

    The sender address is the authenticated user, as with a Gmail account.
    """

    name = "email"

    def __init__(
        self,
        host: str,
        port: int,
        user: str,
        password: str,
        use_tls: bool = True,
        timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def _build_message(self, recipient: str, subject: str, body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.user
        message["To"] = recipient
        message["Subject"] = subject
        message.set_content(body)
        return message

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            smtp.login(self.user, self.password)
            smtp.send_message(message)

    async def send(self, recipient: str, subject: str, body: str) -> None:
        """
        Build and deliver one message.

        Any failure, including a malformed header while building the message
        or an encoding error during login, surfaces as NotificationError.
        """
        try:
            message = self._build_message(recipient, subject, body)
            await run_in_threadpool(self._deliver, message)
        except Exception as e:
            logger.error("Error sending email to %s: %s", mask_recipient(recipient), e)
            raise NotificationError(
                message=f"Email delivery failed: {e}",
                channel=self.name,
                context={"error_type": type(e).__name__},
            ) from e

        logger.info("Email sent to %s", mask_recipient(recipient))


# ══════════════════════════════════════════════════════════════════════════
# Dispatcher
# ══════════════════════════════════════════════════════════════════════════


@dataclass
class DispatchResult:
    """Outcome of one ready notification, per channel."""

    sent: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

    @property
    def delivered(self) -> bool:
        return bool(self.sent)


class NotificationDispatcher:
    """
    Routes a ready notification to the patient's preferred channels.

    Preference → channels:
        sms   → sms
        email → email
        ambos → sms, then email
    """

    def __init__(self, sms: NotificationChannel, email: NotificationChannel):
        self.sms = sms
        self.email = email

    async def notify_ready(self, patient: Patient, radiograph: Radiograph) -> DispatchResult:
        """
        Send "radiograph ready" to the patient.

        Returns:
            DispatchResult listing the channels that sent and the ones that
            failed with their error message. Never raises for a channel
            failure.
        """
        body = compose_message(patient, radiograph)
        preference = patient.notification_preference
        result = DispatchResult()

        targets = []
        if preference in SMS_PREFERENCES:
            targets.append((self.sms, patient.phone))
        if preference in EMAIL_PREFERENCES:
            targets.append((self.email, patient.email))

        if not targets:
            logger.warning(
                "Patient %s has unknown notification preference '%s'; nothing sent",
                patient.id_paciente,
                preference,
            )

        for channel, recipient in targets:
            try:
                if not recipient:
                    raise NotificationError(
                        message=f"Patient has no contact for channel '{channel.name}'",
                        channel=channel.name,
                    )
                await channel.send(recipient, EMAIL_SUBJECT, body)
                result.sent.append(channel.name)
            except NotificationError as e:
                logger.warning(
                    "Notification for radiograph %s of patient %s failed on %s: %s",
                    radiograph.id_radiografia,
                    patient.id_paciente,
                    channel.name,
                    e.message,
                )
                result.failed[channel.name] = e.message
            except Exception as e:
                # A channel that breaks its contract still only fails itself
                logger.error(
                    "Unexpected error notifying radiograph %s of patient %s on %s: %s",
                    radiograph.id_radiografia,
                    patient.id_paciente,
                    channel.name,
                    e,
                    exc_info=True,
                )
                result.failed[channel.name] = f"{type(e).__name__}: {e}"

        return result


def build_dispatcher(settings: Settings) -> NotificationDispatcher:
    """
    Construct the dispatcher for the configured transport.

    console → both channels log only.
    live    → Twilio and SMTP, each falling back to the console channel
              (with a warning) when its credentials are missing.
    """
    if settings.notification_transport == "console":
        return NotificationDispatcher(sms=ConsoleChannel("sms"), email=ConsoleChannel("email"))

    if settings.sms_configured:
        sms: NotificationChannel = TwilioSmsChannel(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_phone_number,
        )
    else:
        logger.warning("Twilio credentials missing; SMS notifications go to the log")
        sms = ConsoleChannel("sms")

    if settings.email_configured:
        email: NotificationChannel = SmtpEmailChannel(
            host=settings.email_host,
            port=settings.email_port,
            user=settings.email_user,
            password=settings.email_pass,
            use_tls=settings.email_use_tls,
            timeout=settings.email_timeout,
        )
    else:
        logger.warning("SMTP credentials missing; email notifications go to the log")
        email = ConsoleChannel("email")

    return NotificationDispatcher(sms=sms, email=email)


def get_dispatcher(request: Request) -> NotificationDispatcher:
    """FastAPI dependency returning the application's dispatcher."""
    return request.app.state.dispatcher
