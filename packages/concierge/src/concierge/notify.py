"""Best-effort notification fan-out.

Handles the side-channel alerts for the qualification pipeline:
- New lead captured (with booking link)
- Meeting booked (webhook closed the loop)

Delivery runs as background asyncio tasks. Callers schedule and move on;
every delivery error is logged here and never reaches the request path.
"""

import asyncio
import logging
import os
from collections.abc import Coroutine
from dataclasses import dataclass, field
from datetime import datetime
from html import escape
from typing import Any, Protocol

import httpx
import resend

from concierge.schemas import LeadSummary

logger = logging.getLogger("concierge-notify")


# =============================================================================
# Configuration
# =============================================================================


@dataclass
class NotifyConfig:
    """Notification channel configuration."""

    slack_webhook_url: str = ""
    resend_api_key: str = ""
    from_email: str = "noreply@example.com"
    to_email: str = ""
    timeout_seconds: float = 5.0

    @classmethod
    def from_env(cls) -> "NotifyConfig":
        """Load notification config from environment variables."""
        slack_webhook_url = os.getenv("SLACK_WEBHOOK_URL", "")
        resend_api_key = os.getenv("RESEND_API_KEY", "")

        if not slack_webhook_url:
            logger.warning("SLACK_WEBHOOK_URL not set - Slack alerts disabled")

        return cls(
            slack_webhook_url=slack_webhook_url,
            resend_api_key=resend_api_key,
            from_email=os.getenv("RESEND_FROM_EMAIL", "noreply@example.com"),
            to_email=os.getenv("NOTIFY_EMAIL_TO", ""),
            timeout_seconds=float(os.getenv("NOTIFY_TIMEOUT_SECONDS", "5")),
        )

    @property
    def email_enabled(self) -> bool:
        return bool(self.resend_api_key and self.to_email)


# =============================================================================
# Messages
# =============================================================================


@dataclass
class Notification:
    """Channel-neutral alert."""

    title: str
    fields: dict[str, str] = field(default_factory=dict)
    body: str = ""
    footer: str = ""


def _format_time(value: datetime | None) -> str:
    if value is None:
        return "Not provided"
    return value.strftime("%A, %B %d, %Y at %I:%M %p %Z").strip()


def lead_captured_message(lead: LeadSummary, booking_link: str | None) -> Notification:
    """Alert for a lead that just finished qualification."""
    badge = "HIGH INTENT" if lead.is_high_intent else "Standard"
    fields = {
        "Lead": lead.name,
        "Company": lead.company,
        "Email": lead.email or "Not provided",
        "Company Size": lead.company_size or "unknown",
        "Path": (lead.lead_type or "business_upgrade").replace("_", " ").title(),
        "Intent": badge,
    }
    return Notification(
        title="NEW QUALIFIED LEAD",
        fields=fields,
        body=f"*Pain Point:*\n{lead.pain_point}",
        footer=f"Booking link sent: {booking_link}" if booking_link else "",
    )


def meeting_booked_message(
    lead: LeadSummary, scheduled_at: datetime | None
) -> Notification:
    """Alert for a lead whose booking was reconciled."""
    return Notification(
        title="MEETING BOOKED",
        fields={
            "Lead": lead.name,
            "Company": lead.company,
            "Email": lead.email,
            "Pain Point": lead.pain_point,
        },
        body=f"*Scheduled Time:*\n{_format_time(scheduled_at)}",
        footer="Loop closed. Lead converted to scheduled call.",
    )


def slack_payload(notification: Notification) -> dict[str, Any]:
    """Render a notification as Slack Block Kit."""
    blocks: list[dict[str, Any]] = [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": notification.title, "emoji": True},
        }
    ]
    if notification.fields:
        blocks.append(
            {
                "type": "section",
                "fields": [
                    {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}
                    for label, value in notification.fields.items()
                ],
            }
        )
    if notification.body:
        blocks.append(
            {"type": "section", "text": {"type": "mrkdwn", "text": notification.body}}
        )
    if notification.footer:
        blocks.append(
            {
                "type": "context",
                "elements": [{"type": "mrkdwn", "text": notification.footer}],
            }
        )
    return {"text": notification.title, "blocks": blocks}


def email_html(notification: Notification) -> str:
    """Render a notification as a small HTML email."""
    rows = "".join(
        f"<p><strong>{escape(label)}:</strong> {escape(str(value))}</p>"
        for label, value in notification.fields.items()
    )
    body = escape(notification.body.replace("*", "")).replace("\n", "<br>")
    title = escape(notification.title)
    html = f"""
    <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
        <h2 style="color: #333;">{title}</h2>
        <div style="background: #f5f5f5; padding: 15px; border-radius: 8px; margin: 20px 0;">
            {rows}
            <p>{body}</p>
        </div>
    """
    if notification.footer:
        html += f"""
        <p style="color: #999; font-size: 12px;">{escape(notification.footer)}</p>
        """
    html += """
    </div>
    """
    return html


# =============================================================================
# Channels
# =============================================================================


class Channel(Protocol):
    name: str

    async def send(self, notification: Notification) -> None: ...


class SlackChannel:
    """Slack incoming-webhook channel."""

    name = "slack"

    def __init__(self, webhook_url: str, timeout_seconds: float = 5.0, transport=None):
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    async def send(self, notification: Notification) -> None:
        async with httpx.AsyncClient(
            timeout=self.timeout_seconds, transport=self._transport
        ) as client:
            response = await client.post(
                self.webhook_url, json=slack_payload(notification)
            )
        response.raise_for_status()


class EmailChannel:
    """Owner alert email via Resend."""

    name = "email"

    def __init__(self, api_key: str, from_email: str, to_email: str):
        self.from_email = from_email
        self.to_email = to_email
        resend.api_key = api_key

    def _send_sync(self, notification: Notification) -> None:
        params: resend.Emails.SendParams = {
            "from": f"Referral Concierge <{self.from_email}>",
            "to": [self.to_email],
            "subject": notification.title.title(),
            "html": email_html(notification),
        }
        email_response = resend.Emails.send(params)
        logger.debug(f"Resend accepted email {email_response.get('id')}")

    async def send(self, notification: Notification) -> None:
        # The Resend SDK is synchronous
        await asyncio.to_thread(self._send_sync, notification)


def channels_from_config(config: NotifyConfig) -> list[Channel]:
    """Build every channel the config enables."""
    channels: list[Channel] = []
    if config.slack_webhook_url:
        channels.append(
            SlackChannel(config.slack_webhook_url, timeout_seconds=config.timeout_seconds)
        )
    if config.email_enabled:
        channels.append(
            EmailChannel(config.resend_api_key, config.from_email, config.to_email)
        )
    return channels


# =============================================================================
# Fan-out
# =============================================================================


class Notifier(Protocol):
    """What the pipeline needs from a notifier."""

    def lead_captured(self, lead: LeadSummary, booking_link: str | None) -> None: ...

    def meeting_booked(self, lead: LeadSummary, scheduled_at: datetime | None) -> None: ...

    async def aclose(self) -> None: ...


class NotificationFanout:
    """Schedules fire-and-forget deliveries to every configured channel.

    Pending tasks are held in a set so they are not garbage collected
    mid-flight; aclose() waits for them on shutdown.
    """

    def __init__(self, channels: list[Channel]):
        self.channels = channels
        self._pending: set[asyncio.Task] = set()

    @classmethod
    def from_config(cls, config: NotifyConfig) -> "NotificationFanout":
        return cls(channels_from_config(config))

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def lead_captured(self, lead: LeadSummary, booking_link: str | None) -> None:
        self.publish(lead_captured_message(lead, booking_link))

    def meeting_booked(self, lead: LeadSummary, scheduled_at: datetime | None) -> None:
        self.publish(meeting_booked_message(lead, scheduled_at))

    def publish(self, notification: Notification) -> None:
        """Schedule delivery on every channel. Never raises."""
        if not self.channels:
            logger.debug(f"No notification channels configured, skipping '{notification.title}'")
            return
        for channel in self.channels:
            self._spawn(self._deliver(channel, notification))

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        try:
            task = asyncio.get_running_loop().create_task(coro)
        except RuntimeError:
            coro.close()
            logger.error("No running event loop, notification dropped")
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, channel: Channel, notification: Notification) -> None:
        try:
            await channel.send(notification)
            logger.info(f"{channel.name} notification '{notification.title}' sent")
        except Exception:
            logger.exception(
                f"Failed to send {channel.name} notification '{notification.title}'"
            )

    async def drain(self) -> None:
        """Wait for every delivery scheduled so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        await self.drain()
