"""
services/notification_service.py
--------------------------------
Builds reminder content and fans it out to the notification channels.

Each channel send is isolated: a failure, an exception or a timeout on
one channel becomes a failed NotificationResult for that channel and
never stops the others. The dispatcher does not retry; the next wake-up
of the scheduler is the only retry mechanism.
"""

import asyncio
from datetime import tzinfo
from typing import Optional

from config import NOTIFICATION_TIMEOUT_SECONDS
from models.errors import NotificationFailure
from models.notification import (
    ChannelConfig,
    NotificationConfig,
    NotificationContent,
    NotificationResult,
)
from models.subscription import CHANNEL_ORDER, NotificationChannel, Subscription
from services.senders import ChannelSender, default_senders
from services.status_service import remaining_days
from utils.dates import MS_PER_DAY, format_date, now_ms, reference_tz
from utils.logger import get_logger
from utils.lunar import lunar_date

logger = get_logger(__name__)


def format_notification_content(sub: Subscription, now: int, tz: Optional[tzinfo] = None,
                                show_lunar: bool = False) -> NotificationContent:
    """
    Build the reminder message for a subscription.

    Args:
        sub: The subscription to remind about.
        now: Reference instant (epoch ms) for the remaining-days count.
        tz: Timezone for day counting and the rendered date.
        show_lunar: Add the lunar date after the expiry date in the body.

    Returns:
        A NotificationContent with title, body and the raw fields.
    """
    tz = tz or reference_tz()
    days = remaining_days(sub.expiry_date, now, tz)
    expiry_str = format_date(sub.expiry_date, tz)
    shown_date = expiry_str
    if show_lunar:
        lunar = lunar_date(sub.expiry_date, tz)
        if lunar:
            shown_date = f"{expiry_str} ({lunar})"

    if days < 0:
        title = f"⚠️ Subscription expired: {sub.name}"
        body = f"Your subscription \"{sub.name}\" expired on {shown_date}, {abs(days)} day(s) ago."
    elif days == 0:
        title = f"🔔 Subscription expires today: {sub.name}"
        body = f"Your subscription \"{sub.name}\" expires today ({shown_date}). Please renew it in time."
    else:
        title = f"📅 Subscription expiring soon: {sub.name}"
        body = f"Your subscription \"{sub.name}\" expires on {shown_date}, {days} day(s) left."

    return NotificationContent(
        title=title,
        body=body,
        subscription_name=sub.name,
        expiry_date=expiry_str,
        remaining_days=days,
    )


def _test_content() -> NotificationContent:
    expiry = now_ms() + 7 * MS_PER_DAY
    return NotificationContent(
        title="🔔 Test notification",
        body="This is a test notification to check the channel configuration.",
        subscription_name="Test subscription",
        expiry_date=format_date(expiry),
        remaining_days=7,
    )


class NotificationDispatcher:
    """
    Sends one reminder per target channel, concurrently, each under a time limit.

    Args:
        senders: Channel to sender mapping (defaults to the real senders).
        timeout: Seconds each channel send may take before it counts as failed.
    """

    def __init__(self, senders: Optional[dict[NotificationChannel, ChannelSender]] = None,
                 timeout: float = NOTIFICATION_TIMEOUT_SECONDS):
        self.senders = senders if senders is not None else default_senders()
        self.timeout = timeout

    @staticmethod
    def target_channels(sub: Subscription, config: NotificationConfig) -> list[NotificationChannel]:
        """Channels selected on the subscription and enabled in the global config."""
        return [
            c for c in CHANNEL_ORDER
            if c in sub.notification_channels and config.for_channel(c).enabled
        ]

    async def dispatch(self, sub: Subscription, config: NotificationConfig, now: int,
                       tz: Optional[tzinfo] = None, show_lunar: bool = False) -> list[NotificationResult]:
        """
        Send a reminder for `sub` to every target channel.

        Returns:
            One NotificationResult per target channel, in canonical channel order.
            Empty when no channel is both selected and enabled.
        """
        channels = self.target_channels(sub, config)
        if not channels:
            logger.info(f"No enabled channel selected for '{sub.name}', nothing sent")
            return []

        content = format_notification_content(sub, now, tz, show_lunar)
        results = await asyncio.gather(*(
            self._send_one(channel, content, config.for_channel(channel))
            for channel in channels
        ))
        return list(results)

    async def send_test(self, channel: NotificationChannel,
                        channel_config: ChannelConfig) -> NotificationResult:
        """Send a fixed test message through a single channel, enabled or not."""
        return await self._send_one(NotificationChannel(channel), _test_content(), channel_config)

    async def _send_one(self, channel: NotificationChannel, content: NotificationContent,
                        channel_config: ChannelConfig) -> NotificationResult:
        sender = self.senders.get(channel)
        if sender is None:
            return NotificationResult(channel=channel.value, success=False, error="no sender registered")

        try:
            await asyncio.wait_for(sender.send(content, channel_config), timeout=self.timeout)
        except NotificationFailure as e:
            logger.warning(f"{channel.value} notification for '{content.subscription_name}' failed: {e.reason}")
            return NotificationResult(channel=channel.value, success=False, error=e.reason)
        except asyncio.TimeoutError:
            logger.warning(f"{channel.value} notification for '{content.subscription_name}' timed out")
            return NotificationResult(
                channel=channel.value, success=False, error=f"timed out after {self.timeout:g}s"
            )
        except Exception as e:
            logger.exception(f"{channel.value} sender crashed for '{content.subscription_name}'")
            return NotificationResult(channel=channel.value, success=False, error=str(e) or repr(e))

        logger.info(f"Sent {channel.value} notification for '{content.subscription_name}'")
        return NotificationResult(channel=channel.value, success=True)
