"""
Read-only settings for the restart announcer.

Wraps the plugin config dictionary. Keys mirror the announcer's YAML layout:

    defaults:
      restart-time: 10             # minutes
      announcement-interval: 60    # seconds
    shutdown-method: shutdown      # shutdown | stop | restart
    execute-shutdown: true
    scheduled-restart:
      enabled: false
      time: "0400"                 # HHmm, 24hr
      reminder-interval-hours: 4
      wait-for-backup: true
      wait-for-backup-delay: 60    # seconds
"""

from typing import Any, Dict, Optional

from .session import ShutdownMethod, normalize_schedule_time


_MISSING = object()


class AnnouncerConfig:
    """
    Typed accessors over the plugin config dictionary.

    Args:
        config: Plugin configuration (may be empty).
    """

    def __init__(self, config: Optional[Dict[str, Any]] = None):
        self.config = config if config is not None else {}

    def get(self, path: str, default: Any = None) -> Any:
        """
        Look up a dotted path like "scheduled-restart.time".

        Returns:
            The value, or default if any part of the path is missing.
        """
        node: Any = self.config
        for part in path.split("."):
            if not isinstance(node, dict):
                return default
            node = node.get(part, _MISSING)
            if node is _MISSING:
                return default
        return node

    def _get_int(self, path: str, default: int) -> int:
        value = self.get(path, default)
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def _get_bool(self, path: str, default: bool) -> bool:
        value = self.get(path, default)
        if isinstance(value, str):
            return value.strip().lower() in ("true", "yes", "on", "1")
        return bool(value)

    # Defaults

    def default_restart_time(self) -> int:
        """Default countdown length in minutes."""
        return self._get_int("defaults.restart-time", 10)

    def default_announcement_interval(self) -> int:
        """Default announcement interval in seconds."""
        return self._get_int("defaults.announcement-interval", 60)

    # Shutdown

    def shutdown_method(self) -> ShutdownMethod:
        return ShutdownMethod.from_config(self.get("shutdown-method", "shutdown"))

    def should_execute_shutdown(self) -> bool:
        return self._get_bool("execute-shutdown", True)

    # Scheduled restart (system time, 24hr format)

    def is_scheduled_restart_enabled(self) -> bool:
        return self._get_bool("scheduled-restart.enabled", False)

    def scheduled_restart_time(self) -> str:
        """
        Target time as "HHmm".

        Raises:
            InvalidScheduleConfig: If the configured value is malformed.
        """
        return normalize_schedule_time(self.get("scheduled-restart.time"))

    def scheduled_restart_reminder_interval_hours(self) -> int:
        return self._get_int("scheduled-restart.reminder-interval-hours", 4)

    def should_wait_for_backup(self) -> bool:
        return self._get_bool("scheduled-restart.wait-for-backup", True)

    def wait_for_backup_delay_seconds(self) -> int:
        """Seconds between backup checks, at least 1."""
        return max(1, self._get_int("scheduled-restart.wait-for-backup-delay", 60))

    # Messages

    def message_overrides(self) -> Dict[str, str]:
        messages = self.get("messages", {})
        return messages if isinstance(messages, dict) else {}
