"""
Email notifications for emotional alerts.

Senders:
- ResendEmailSender: delivers through the Resend HTTP API
- LoggingEmailSender: used when no API key is configured; logs and pretends
"""

import html
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..core.config import Settings, get_settings
from ..models import AlertSeverity, EmociogramaAlert, EmociogramaSubmission, User

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class NotificationError(Exception):
    """Base exception for notification delivery."""
    pass


class EmailDeliveryError(NotificationError):
    """Provider rejected the message or could not be reached."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


# =============================================================================
# SENDERS
# =============================================================================


@dataclass
class EmailMessage:
    to: str
    subject: str
    html: str
    text: str | None = None


class EmailSender(Protocol):
    async def send(self, message: EmailMessage) -> str:
        """Deliver a message and return the provider's id. Raises on failure."""
        ...


class ResendEmailSender:
    """Email sender backed by the Resend API."""

    def __init__(
        self,
        api_key: str,
        from_address: str,
        api_url: str = "https://api.resend.com/emails",
        timeout: float = 10.0,
        client: httpx.AsyncClient | None = None,
    ):
        self._api_key = api_key
        self._from = from_address
        self._api_url = api_url
        self._timeout = timeout
        self._client = client

    async def send(self, message: EmailMessage) -> str:
        payload = {
            "from": self._from,
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text

        headers = {"Authorization": f"Bearer {self._api_key}"}

        try:
            if self._client is not None:
                response = await self._client.post(
                    self._api_url, json=payload, headers=headers, timeout=self._timeout
                )
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.post(self._api_url, json=payload, headers=headers)
        except httpx.HTTPError as e:
            raise EmailDeliveryError(f"Email provider unreachable: {e}") from e

        if response.status_code >= 400:
            raise EmailDeliveryError(
                f"Email provider returned {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )

        email_id = response.json().get("id", "")
        logger.info(f"[EMAIL] Sent to {message.to}, id={email_id}")
        return email_id


class LoggingEmailSender:
    """Stand-in used when no provider key is configured."""

    async def send(self, message: EmailMessage) -> str:
        logger.warning(
            f"[EMAIL] Provider not configured, not sending. "
            f"To: {message.to}, Subject: {message.subject}"
        )
        return "mock-id"


def get_email_sender(settings: Settings | None = None) -> EmailSender:
    """Pick the sender for the current configuration."""
    settings = settings or get_settings()
    if settings.email_enabled:
        return ResendEmailSender(
            api_key=settings.resend_api_key,
            from_address=settings.email_from,
            api_url=settings.resend_api_url,
            timeout=settings.email_timeout_seconds,
        )
    return LoggingEmailSender()


# =============================================================================
# ALERT EMAIL CONTENT
# =============================================================================

SUBJECT_PREFIXES: dict[str, str] = {
    AlertSeverity.CRITICAL.value: "[CRÍTICO]",
    AlertSeverity.HIGH.value: "[URGENTE]",
    AlertSeverity.MEDIUM.value: "[ATENÇÃO]",
    AlertSeverity.LOW.value: "[INFO]",
}

SEVERITY_LABELS: dict[str, str] = {
    AlertSeverity.CRITICAL.value: "Crítico",
    AlertSeverity.HIGH.value: "Alto",
    AlertSeverity.MEDIUM.value: "Médio",
    AlertSeverity.LOW.value: "Baixo",
}

SEVERITY_COLORS: dict[str, str] = {
    AlertSeverity.CRITICAL.value: "#DC2626",  # Red
    AlertSeverity.HIGH.value: "#EA580C",  # Orange
    AlertSeverity.MEDIUM.value: "#F59E0B",  # Amber
    AlertSeverity.LOW.value: "#3B82F6",  # Blue
}


def alert_subject(severity: str) -> str:
    prefix = SUBJECT_PREFIXES.get(severity, "[INFO]")
    return f"{prefix} Alerta Emocional - PsicoZen"


def build_alert_email(
    alert: EmociogramaAlert,
    submission: EmociogramaSubmission,
    recipient: User,
    frontend_url: str,
) -> EmailMessage:
    """Render the alert email for one manager.

    The comment is rendered as stored: submissions sanitize it on the way in.
    """
    severity = alert.severity
    color = SEVERITY_COLORS.get(severity, "#3B82F6")
    label = SEVERITY_LABELS.get(severity, severity)
    alert_url = f"{frontend_url.rstrip('/')}/alerts/{alert.id}"
    location = submission.team or submission.department

    comment_block = ""
    if submission.comment:
        comment_block = f"""
            <p style="margin: 16px 0 4px; color: #6B7280; font-size: 13px;">Comentário</p>
            <blockquote style="margin: 0; padding: 12px; background-color: #F9FAFB;
                               border-left: 4px solid {color};">
                {submission.comment}
            </blockquote>
        """

    location_row = ""
    if location:
        location_row = f"""
                <tr>
                    <td style="padding: 4px 0; color: #6B7280;">Local</td>
                    <td style="padding: 4px 0;">{html.escape(location)}</td>
                </tr>
        """

    html_body = f"""
<!DOCTYPE html>
<html>
<body style="font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif;
             background-color: #F3F4F6; margin: 0; padding: 24px;">
    <div style="max-width: 600px; margin: 0 auto; background-color: #FFFFFF;
                border-radius: 8px; overflow: hidden;">
        <div style="background-color: {color}; color: #FFFFFF; padding: 16px 24px;">
            <strong>Alerta Emocional: {html.escape(label)}</strong>
        </div>
        <div style="padding: 24px;">
            <p>Olá, {html.escape(recipient.first_name)}.</p>
            <p>{html.escape(alert.message)}</p>
            <table style="width: 100%; font-size: 14px;">
                <tr>
                    <td style="padding: 4px 0; color: #6B7280;">Severidade</td>
                    <td style="padding: 4px 0;">{html.escape(label)}</td>
                </tr>
                <tr>
                    <td style="padding: 4px 0; color: #6B7280;">Nível</td>
                    <td style="padding: 4px 0;">{submission.emotion_level}/10 {submission.emotion_emoji}</td>
                </tr>
                {location_row}
            </table>
            {comment_block}
            <p style="margin-top: 24px;">
                <a href="{alert_url}" style="background-color: {color}; color: #FFFFFF;
                   padding: 10px 16px; border-radius: 6px; text-decoration: none;">
                    Ver alerta
                </a>
            </p>
        </div>
    </div>
</body>
</html>
"""

    text_body = (
        f"Alerta Emocional ({label})\n\n"
        f"{alert.message}\n"
        f"Nível: {submission.emotion_level}/10\n"
        f"Ver alerta: {alert_url}\n"
    )

    return EmailMessage(
        to=recipient.email,
        subject=alert_subject(severity),
        html=html_body,
        text=text_body,
    )
