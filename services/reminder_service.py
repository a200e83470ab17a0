"""
services/reminder_service.py
----------------------------
The scheduling driver. Invoked by the periodic wake-up job; each cycle:

    1. Load a snapshot of enabled subscriptions, channel config and settings.
    2. Keep the ones that should be reminded now.
    3. Drop those already reminded (per the persisted ReminderMark).
    4. Dispatch the reminder to their channels.
    5. Persist a new ReminderMark right after each dispatch.

Nothing is kept in memory between cycles: the process may be suspended
or restarted at any point, so the marks in storage are the whole state.
A crash between step 4 and 5 costs at most one duplicate reminder for
that subscription.
"""

from dataclasses import dataclass, field
from datetime import tzinfo
from typing import Optional

from models.errors import StorageFailure
from models.notification import NotificationResult, SubscriptionSettings
from models.subscription import ReminderMark, Subscription
from repositories.config_repo import ConfigRepository
from repositories.reminder_repo import ReminderRepository
from repositories.subscription_repo import SubscriptionRepository
from services.notification_service import NotificationDispatcher
from services.status_service import should_remind
from utils.dates import local_day_number, now_ms, reference_tz
from utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class CycleReport:
    """What one wake-up cycle did."""
    started_at: int
    evaluated: int = 0
    reminded: dict[str, list[NotificationResult]] = field(default_factory=dict)
    suppressed: int = 0
    no_channel: int = 0
    aborted: bool = False
    error: Optional[str] = None

    @property
    def failures(self) -> int:
        return sum(1 for results in self.reminded.values() for r in results if not r.success)

    def summary(self) -> str:
        text = (
            f"Reminder cycle: {self.evaluated} evaluated, {len(self.reminded)} reminded, "
            f"{self.suppressed} already reminded, {self.failures} channel failure(s)"
        )
        if self.aborted:
            text += f", aborted: {self.error}"
        return text


class ReminderScheduler:
    """
    Runs reminder cycles against the repositories.

    Args:
        subscription_repo: Source of subscriptions.
        reminder_repo: Store for reminder marks.
        config_repo: Source of channel config and settings.
        dispatcher: Sends the reminders.
        tz: Reference timezone (default: TIMEZONE from config).
    """

    def __init__(self, subscription_repo: Optional[SubscriptionRepository] = None,
                 reminder_repo: Optional[ReminderRepository] = None,
                 config_repo: Optional[ConfigRepository] = None,
                 dispatcher: Optional[NotificationDispatcher] = None,
                 tz: Optional[tzinfo] = None):
        self.subscription_repo = subscription_repo or SubscriptionRepository()
        self.reminder_repo = reminder_repo or ReminderRepository()
        self.config_repo = config_repo or ConfigRepository()
        self.dispatcher = dispatcher or NotificationDispatcher()
        self.tz = tz or reference_tz()

    def already_reminded(self, sub: Subscription, mark: Optional[ReminderMark],
                         settings: SubscriptionSettings, now: int) -> bool:
        """
        Decide whether a due subscription was already reminded for this window.

        A mark only counts when it was written for the current expiry; a
        renewed subscription has a new expiry and starts a new window.

        daily_reminder off: one reminder per window.
        daily_reminder on: one reminder per local calendar day inside the
        window. Host wake-ups may come hourly, coalesced or replayed, so
        "every wake-up" is deliberately not the unit; repeated runs on
        the same day send nothing new.
        """
        if mark is None or mark.expiry_date != sub.expiry_date:
            return False
        if not settings.daily_reminder:
            return True
        return local_day_number(mark.notified_at, self.tz) == local_day_number(now, self.tz)

    async def run_cycle(self, now: Optional[int] = None) -> CycleReport:
        """
        Run one wake-up cycle at instant `now` (default: current time).

        Storage failures end the cycle early; reminders already sent and
        marks already written stand.
        """
        now = now_ms() if now is None else now
        report = CycleReport(started_at=now)

        try:
            subs = [s for s in self.subscription_repo.list_all() if s.is_enabled]
            config = self.config_repo.get_notification_config()
            settings = self.config_repo.get_settings()
        except StorageFailure as e:
            return self._abort(report, e)

        for sub in subs:
            report.evaluated += 1
            if not should_remind(sub, now, self.tz):
                continue

            try:
                mark = self.reminder_repo.get(sub.id)
            except StorageFailure as e:
                return self._abort(report, e)
            if self.already_reminded(sub, mark, settings, now):
                report.suppressed += 1
                continue

            if not self.dispatcher.target_channels(sub, config):
                report.no_channel += 1
                logger.info(f"'{sub.name}' is due but has no enabled channel selected")
                continue

            results = await self.dispatcher.dispatch(sub, config, now, self.tz, settings.show_lunar_date)
            report.reminded[sub.id] = results

            # Marked whatever the per-channel outcome: failures are reported, not retried
            try:
                self.reminder_repo.put(ReminderMark(sub.id, now, sub.expiry_date))
            except StorageFailure as e:
                return self._abort(report, e)

        logger.info(report.summary())
        return report

    @staticmethod
    def _abort(report: CycleReport, error: StorageFailure) -> CycleReport:
        report.aborted = True
        report.error = error.message
        logger.error(report.summary())
        return report


async def reminder_job(context) -> None:
    """
    Scheduled job: run one reminder cycle.
    Registered on the bot's JobQueue with the scheduler as job data.
    """
    scheduler: ReminderScheduler = context.job.data
    await scheduler.run_cycle()
