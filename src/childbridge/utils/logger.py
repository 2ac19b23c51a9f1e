from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from rich.console import Console
from rich.markup import escape

from childbridge.core.models import BridgeOptions


@dataclass(frozen=True)
class LogSettings:
    """Logging flags inherited from the parent bridge."""

    timestamps: bool = True
    debug: bool = False
    force_color: bool = False

    @classmethod
    def from_options(cls, options: BridgeOptions) -> "LogSettings":
        return cls(
            timestamps=not options.no_log_timestamps,
            debug=options.debug_mode_enabled,
            force_color=options.force_colour_logging,
        )


_SEVERITY_STYLES = {
    "debug": "dim",
    "info": "white",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "critical": "bold red",
}


def build_console(settings: LogSettings) -> Console:
    """Create the stderr console used for all child bridge logs; stdout is reserved for IPC."""
    if settings.force_color:
        return Console(stderr=True, force_terminal=True, highlight=False)
    return Console(stderr=True, highlight=False)


class PluginLogger:
    """
    Prefixed logger handed to plugins and used internally by the runtime.

    Calling the logger directly logs at info level, so plugins can write ``log("message")``.
    """

    def __init__(
        self,
        prefix: Optional[str] = None,
        settings: Optional[LogSettings] = None,
        console: Optional[Console] = None,
    ) -> None:
        self.prefix = prefix
        self.settings = settings or LogSettings()
        self.console = console or build_console(self.settings)

    def with_prefix(self, prefix: str) -> "PluginLogger":
        """Return a logger sharing this console and settings with a different prefix."""
        return PluginLogger(prefix=prefix, settings=self.settings, console=self.console)

    def __call__(self, message: str, *args: Any) -> None:
        self.log("info", message, *args)

    def debug(self, message: str, *args: Any) -> None:
        self.log("debug", message, *args)

    def info(self, message: str, *args: Any) -> None:
        self.log("info", message, *args)

    def success(self, message: str, *args: Any) -> None:
        self.log("success", message, *args)

    def warning(self, message: str, *args: Any) -> None:
        self.log("warning", message, *args)

    warn = warning

    def error(self, message: str, *args: Any) -> None:
        self.log("error", message, *args)

    def log(self, severity: str, message: str, *args: Any) -> None:
        """Format and print one line to stderr; debug lines are dropped unless debug mode is on."""
        if severity == "debug" and not self.settings.debug:
            return

        if args:
            message = message % args

        style = _SEVERITY_STYLES.get(severity, "white")
        parts = []
        if self.settings.timestamps:
            parts.append(f"[{datetime.now().strftime('%d/%m/%Y, %H:%M:%S')}]")
        if self.prefix:
            parts.append(f"[{self.prefix}]")
        parts.append(message)

        self.console.print(f"[{style}]{escape(' '.join(parts))}[/{style}]")


def get_internal_logger(settings: Optional[LogSettings] = None) -> PluginLogger:
    """Logger used for the runtime's own messages (no prefix)."""
    return PluginLogger(settings=settings)
