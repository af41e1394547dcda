"""
Session and schedule models for the restart announcer.

RestartSession is the mutable state of one in-flight countdown.
ScheduleConfig is the read-only description of the daily scheduled restart.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union
import re


class DisplayMode(Enum):
    """Presentation used for countdown announcements."""
    CHAT = "chat"
    PROGRESS_BAR = "bossbar"
    TITLE = "title"

    @classmethod
    def parse(cls, value: str) -> 'DisplayMode':
        """
        Parse a display mode from user or config input.

        Accepts "chat", "bossbar" (or "progress"), and "title",
        case-insensitive.

        Raises:
            InvalidDisplayMode: If the value is not a known mode.
        """
        text = str(value or "").strip().lower()
        if text == "progress":
            return cls.PROGRESS_BAR
        try:
            return cls(text)
        except ValueError:
            raise InvalidDisplayMode(
                f"Unknown display type '{value}'. Use: chat, bossbar or title"
            )


class ShutdownMethod(Enum):
    """How the host should go down once the countdown completes."""
    SHUTDOWN = "shutdown"
    STOP = "stop"
    RESTART = "restart"

    @classmethod
    def from_config(cls, value: Optional[str]) -> 'ShutdownMethod':
        """Unknown or missing values fall back to SHUTDOWN."""
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return cls.SHUTDOWN


class InvalidDisplayMode(ValueError):
    """Raised for an unknown display type."""


class InvalidScheduleConfig(ValueError):
    """Raised when the scheduled restart time cannot be normalized."""


@dataclass
class RestartSession:
    """
    One restart countdown, from start until stop or expiry.

    Attributes:
        total_seconds: Initial duration, used only for the progress fraction.
        remaining_seconds: Seconds left; reaching 0 triggers the restart.
        base_interval_seconds: Announcement cadence while over a minute remains.
        display_mode: Presentation for announcements, fixed for the session.
        wait_for_backup: Hold the shutdown while a backup is running.
        backup_wait_delay_seconds: Seconds between backup polls.
        active: True until the session is stopped or expires.
    """
    total_seconds: int
    base_interval_seconds: int
    display_mode: DisplayMode = DisplayMode.CHAT
    wait_for_backup: bool = False
    backup_wait_delay_seconds: int = 60
    remaining_seconds: int = field(default=-1)
    active: bool = True

    def __post_init__(self):
        if self.remaining_seconds < 0:
            self.remaining_seconds = self.total_seconds

    @property
    def progress(self) -> float:
        """Fraction of time left, clamped to [0, 1]."""
        if self.total_seconds <= 0:
            return 1.0
        return max(0.0, min(1.0, self.remaining_seconds / self.total_seconds))

    @property
    def expired(self) -> bool:
        return self.remaining_seconds <= 0


DEFAULT_SCHEDULE_TIME = "0400"


def normalize_schedule_time(value: Union[int, str, None]) -> str:
    """
    Normalize a configured restart time to a 4-digit "HHmm" string.

    Accepts an integer (400), a digit string ("0400", "400") or a colon
    form ("04:00"). Empty values mean the default "0400".

    Raises:
        InvalidScheduleConfig: If the value is not numeric or too long.
    """
    if value is None:
        return DEFAULT_SCHEDULE_TIME
    if isinstance(value, bool):
        raise InvalidScheduleConfig(f"Invalid scheduled restart time: {value!r}")
    if isinstance(value, int):
        text = str(value)
    else:
        text = str(value).strip().replace(":", "")
        if not text:
            return DEFAULT_SCHEDULE_TIME

    if not re.match(r'^\d{1,4}$', text):
        raise InvalidScheduleConfig(
            f"Invalid scheduled restart time: {value!r}. "
            "Use 4-digit 24hr format HHmm, e.g. 0400 or 1600"
        )
    return text.zfill(4)


def parse_schedule_time(value: Union[int, str, None]) -> tuple:
    """
    Parse a configured restart time into (hour, minute).

    Raises:
        InvalidScheduleConfig: If the time is malformed or out of range.
    """
    text = normalize_schedule_time(value)
    hour, minute = int(text[:2]), int(text[2:])
    if not (0 <= hour <= 23) or not (0 <= minute <= 59):
        raise InvalidScheduleConfig(
            f"Scheduled restart time {text} is out of range. "
            "Use 4-digit 24hr format HHmm, e.g. 0400 or 1600"
        )
    return hour, minute


@dataclass(frozen=True)
class ScheduleConfig:
    """
    Daily scheduled restart settings.

    Attributes:
        enabled: Whether the daily restart is active.
        target_hour: Hour of the restart (0-23).
        target_minute: Minute of the restart (0-59).
        reminder_interval_hours: Hours between "restart is coming" reminders.
        wait_for_backup: Hold the shutdown while a backup is running.
        wait_for_backup_delay_seconds: Seconds between backup polls.
    """
    enabled: bool
    target_hour: int
    target_minute: int
    reminder_interval_hours: int = 4
    wait_for_backup: bool = True
    wait_for_backup_delay_seconds: int = 60

    @property
    def target_label(self) -> str:
        """Target time as "HH:MM"."""
        return f"{self.target_hour:02d}:{self.target_minute:02d}"

    @classmethod
    def from_settings(cls, settings) -> 'ScheduleConfig':
        """
        Build from an AnnouncerConfig.

        Raises:
            InvalidScheduleConfig: If the configured time is malformed.
        """
        hour, minute = parse_schedule_time(settings.scheduled_restart_time())
        reminder_hours = settings.scheduled_restart_reminder_interval_hours()
        if reminder_hours <= 0:
            reminder_hours = 4
        return cls(
            enabled=settings.is_scheduled_restart_enabled(),
            target_hour=hour,
            target_minute=minute,
            reminder_interval_hours=reminder_hours,
            wait_for_backup=settings.should_wait_for_backup(),
            wait_for_backup_delay_seconds=settings.wait_for_backup_delay_seconds(),
        )
