"""
User-facing message templates for the restart announcer.

Templates use %name% placeholders. Defaults can be overridden through the
"messages" section of the plugin config.
"""

import logging
from typing import Dict, Optional


DEFAULT_MESSAGES = {
    "restart-message": "⚠️ Server restarting in %time%!",
    "restart-now": "🔄 Server is restarting now!",
    "scheduled-restart.reminder": "⏰ Scheduled server restart at %time% %timezone%.",
    "commands.start.success": "⏰ Restart countdown started: %time%, announcing every %interval% (%display%).",
    "commands.start.already-running": "⏰ A restart countdown is already running.",
    "commands.start.invalid-time": "⏰ Invalid restart time. Use a format like 90s, 5m, 2h or 10.",
    "commands.start.invalid-interval": "⏰ Invalid announcement interval. Use a format like 30s or 5m.",
    "commands.start.invalid-display": "⏰ Invalid display type. Use: chat, bossbar or title.",
    "commands.stop.success": "⏰ Restart countdown cancelled.",
    "commands.stop.not-running": "⏰ No restart countdown is running.",
    "commands.status.running": "⏰ Server restart in %time%.",
    "commands.status.not-running": "⏰ No restart countdown is running.",
    "commands.reload.success": "⏰ Restart announcer configuration reloaded.",
    "commands.toggle.success": "⏰ Server shutdown after a countdown is now %status%.",
    "commands.set.success": "⏰ Restart message updated: %message%",
    "commands.set.usage": "⏰ Usage: !restart set message <text>",
    "commands.set.empty": "⏰ The restart message cannot be empty.",
}


class MessageCatalog:
    """
    Renders announcer messages from templates.

    Args:
        overrides: Template overrides keyed like DEFAULT_MESSAGES.
    """

    def __init__(self, overrides: Optional[Dict[str, str]] = None):
        self.templates = dict(DEFAULT_MESSAGES)
        self.logger = logging.getLogger(f"{__name__}.MessageCatalog")
        self.load(overrides)

    def load(self, overrides: Optional[Dict[str, str]] = None) -> None:
        """Reset to defaults and apply overrides."""
        self.templates = dict(DEFAULT_MESSAGES)
        for key, value in (overrides or {}).items():
            if not isinstance(value, str):
                self.logger.warning(f"Ignoring non-string message template: {key}")
                continue
            self.templates[key] = value

    def render_fixed_message(self, key: str, **placeholders) -> str:
        """
        Render a template by key.

        Unknown keys render as the key itself so a missing template is
        visible rather than silent.
        """
        text = self.templates.get(key, key)
        for name, value in placeholders.items():
            text = text.replace(f"%{name}%", str(value))
        return text

    def render_restart_message(self, time_text: str) -> str:
        """Render the countdown announcement for the given remaining time."""
        return self.render_fixed_message("restart-message", time=time_text)

    def set_restart_message(self, template: str) -> None:
        """
        Replace the countdown announcement template.

        Raises:
            ValueError: If the template is empty.
        """
        if not template or not template.strip():
            raise ValueError("Restart message cannot be empty")
        self.templates["restart-message"] = template.strip()
