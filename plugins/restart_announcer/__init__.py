"""
plugins/restart_announcer/__init__.py

Restart announcer plugin for Rosey.

Provides server restart countdowns with:
- Adaptive announcement cadence (emergency tiers in the final minute)
- Chat, progress bar or title announcements
- Daily scheduled restarts with "restart is coming" reminders
- Optional hold on shutdown while a backup is running
"""

from .cadence import emergency_tier, next_announcement_interval
from .collaborators import BackupSignal, DisplaySink, NullBackupSignal, ShutdownAction
from .daemon import DaemonPhase, ScheduledRestartDaemon
from .engine import RestartEngine
from .messages import MessageCatalog
from .plugin import RestartAnnouncerPlugin
from .session import (
    DisplayMode,
    InvalidDisplayMode,
    InvalidScheduleConfig,
    RestartSession,
    ScheduleConfig,
    ShutdownMethod,
)
from .settings import AnnouncerConfig
from .timers import TimerHandle, TimerService
from .timespec import InvalidTimeFormat, format_duration, parse_time_spec

__all__ = [
    "AnnouncerConfig",
    "BackupSignal",
    "DaemonPhase",
    "DisplayMode",
    "DisplaySink",
    "InvalidDisplayMode",
    "InvalidScheduleConfig",
    "InvalidTimeFormat",
    "MessageCatalog",
    "NullBackupSignal",
    "RestartAnnouncerPlugin",
    "RestartEngine",
    "RestartSession",
    "ScheduleConfig",
    "ScheduledRestartDaemon",
    "ShutdownAction",
    "ShutdownMethod",
    "TimerHandle",
    "TimerService",
    "emergency_tier",
    "format_duration",
    "next_announcement_interval",
    "parse_time_spec",
]
__version__ = "1.0.0"
