"""
plugins/restart_announcer/daemon.py

Scheduled restart daemon.

Polls the local wall clock once a minute. While the daily restart time is
more than an hour away it posts a reminder every N hours (on the hour).
Once within the final hour it hands the timeline to the RestartEngine with
a 10-minute announcement interval and stops polling. It stays stopped until
started again, e.g. by a config reload.
"""

import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from .collaborators import DisplaySink
from .engine import RestartEngine
from .messages import MessageCatalog
from .session import DisplayMode, InvalidScheduleConfig, ScheduleConfig
from .settings import AnnouncerConfig
from .timers import TimerHandle, TimerService


POLL_INTERVAL_SECONDS = 60
ONE_HOUR_SECONDS = 3600
TEN_MINUTES_SECONDS = 600
DAY_SECONDS = 86400


class DaemonPhase(Enum):
    IDLE = "idle"
    WATCHING = "watching"
    DELEGATED = "delegated"


def local_now() -> datetime:
    """Current local time with the system timezone attached."""
    return datetime.now().astimezone()


def seconds_until(now: datetime, hour: int, minute: int) -> int:
    """
    Whole seconds from now until the next hour:minute wall-clock time.

    Returns:
        Value in [0, 86400). A target already passed today means tomorrow.
    """
    now_seconds = (
        now.hour * 3600 + now.minute * 60 + now.second + now.microsecond / 1_000_000
    )
    target_seconds = hour * 3600 + minute * 60
    delta = int(target_seconds - now_seconds)
    if delta < 0:
        delta += DAY_SECONDS
    return delta


class ScheduledRestartDaemon:
    """
    Starts the daily scheduled restart.

    Args:
        engine: Countdown engine to delegate to.
        display: Where reminders are broadcast.
        messages: Message templates.
        settings: Announcer configuration.
        timers: Timer service (default: real asyncio timers).
        clock: Returns the current local time (default: system clock).
    """

    def __init__(
        self,
        engine: RestartEngine,
        display: DisplaySink,
        messages: MessageCatalog,
        settings: AnnouncerConfig,
        timers: Optional[TimerService] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.engine = engine
        self.display = display
        self.messages = messages
        self.settings = settings
        self.timers = timers or TimerService()
        self.clock = clock or local_now

        self.schedule: Optional[ScheduleConfig] = None
        self.last_reminder_hour: Optional[int] = None
        self._poll_timer: Optional[TimerHandle] = None
        self._delegated = False
        self.logger = logging.getLogger(f"{__name__}.ScheduledRestartDaemon")

    @property
    def phase(self) -> DaemonPhase:
        if self._poll_timer is not None:
            return DaemonPhase.WATCHING
        if self._delegated:
            return DaemonPhase.DELEGATED
        return DaemonPhase.IDLE

    def is_active(self) -> bool:
        """True while polling."""
        return self._poll_timer is not None

    def start(self) -> bool:
        """
        Start polling if scheduled restarts are enabled.

        An invalid restart time is logged and leaves the daemon idle.

        Returns:
            True if the daemon is polling.
        """
        if self._poll_timer is not None:
            return True

        self._delegated = False
        if not self.settings.is_scheduled_restart_enabled():
            self.logger.debug("Scheduled restart disabled")
            return False

        try:
            self.schedule = ScheduleConfig.from_settings(self.settings)
        except InvalidScheduleConfig as e:
            self.logger.warning(f"{e}. Disabling scheduled restart.")
            self.schedule = None
            return False

        self._poll_timer = self.timers.call_every(
            POLL_INTERVAL_SECONDS, self.poll, name="scheduled-restart-poll"
        )
        self.logger.info(
            f"Scheduled restart enabled for {self.schedule.target_label} "
            f"(reminders every {self.schedule.reminder_interval_hours}h)"
        )
        return True

    def stop(self) -> None:
        """Stop polling and forget the last reminder."""
        if self._poll_timer is not None:
            self._poll_timer.cancel()
            self._poll_timer = None
        self.last_reminder_hour = None

    async def poll(self, now: Optional[datetime] = None) -> None:
        """
        Run one scheduler check.

        Args:
            now: Current local time (default: the daemon's clock).
        """
        if not self.settings.is_scheduled_restart_enabled():
            self.logger.info("Scheduled restart disabled, stopping scheduler")
            self.stop()
            return

        schedule = self.schedule
        if schedule is None:
            return

        # Already in a countdown
        if self.engine.is_running():
            return

        now = now or self.clock()
        remaining = seconds_until(now, schedule.target_hour, schedule.target_minute)

        if 0 < remaining <= ONE_HOUR_SECONDS:
            await self._delegate(schedule, remaining)
            return

        if remaining > ONE_HOUR_SECONDS and self._reminder_due(schedule, now):
            self.last_reminder_hour = now.hour
            await self._send_reminder(schedule, now)

    async def _delegate(self, schedule: ScheduleConfig, remaining: int) -> None:
        self.logger.info(
            f"Scheduled restart at {schedule.target_label} - "
            f"starting 1hr countdown (in {remaining}s)"
        )
        await self.engine.start(
            remaining,
            TEN_MINUTES_SECONDS,
            DisplayMode.CHAT,
            wait_for_backup=schedule.wait_for_backup,
            backup_wait_delay=schedule.wait_for_backup_delay_seconds,
        )
        # The engine owns the timeline from here
        self.stop()
        self._delegated = True

    def _reminder_due(self, schedule: ScheduleConfig, now: datetime) -> bool:
        return (
            now.minute == 0
            and now.hour % schedule.reminder_interval_hours == 0
            and now.hour != self.last_reminder_hour
        )

    async def _send_reminder(self, schedule: ScheduleConfig, now: datetime) -> None:
        message = self.messages.render_fixed_message(
            "scheduled-restart.reminder",
            time=schedule.target_label,
            timezone=now.strftime("%Z"),
        )
        self.logger.info(f"Scheduled restart reminder sent for {schedule.target_label}")
        await self.display.broadcast_text(message)
