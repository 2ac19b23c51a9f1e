from __future__ import annotations

import asyncio
import signal
from typing import Callable, Optional

from childbridge.runtime.contracts import signal_exit_code
from childbridge.runtime.process import ExitFunction
from childbridge.utils.logger import PluginLogger, get_internal_logger

HANDLED_SIGNALS = (signal.SIGINT, signal.SIGTERM)


class SignalHandler:
    """Runs graceful shutdown on the first termination signal, then forces exit after a grace period."""

    def __init__(
        self,
        shutdown: Callable[[], object],
        exit_process: ExitFunction,
        grace_period_seconds: float = 5.0,
        logger: Optional[PluginLogger] = None,
    ) -> None:
        self.shutdown = shutdown
        self.exit_process = exit_process
        self.grace_period_seconds = grace_period_seconds
        self.logger = logger or get_internal_logger()

        self.shutting_down = False
        self.forced_exit: Optional[asyncio.TimerHandle] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None

    def install(self, loop: asyncio.AbstractEventLoop) -> None:
        """Route SIGINT and SIGTERM through the event loop to ``handle``."""
        self._loop = loop
        for sig in HANDLED_SIGNALS:
            loop.add_signal_handler(sig, self.handle, sig.name, int(sig))

    def uninstall(self) -> None:
        if self._loop is None:
            return
        for sig in HANDLED_SIGNALS:
            self._loop.remove_signal_handler(sig)

    def handle(self, signal_name: str, signal_number: int) -> bool:
        """Handle one delivered signal; returns False for signals after the first."""
        if self.shutting_down:
            return False
        self.shutting_down = True

        self.logger.info("Got %s, shutting down child bridge process...", signal_name)

        try:
            self.shutdown()
        except Exception as exc:
            self.logger.debug("Shutdown raised while handling %s: %s", signal_name, exc)

        loop = self._loop or asyncio.get_running_loop()
        self.forced_exit = loop.call_later(
            self.grace_period_seconds,
            self.exit_process,
            signal_exit_code(signal_number),
        )
        return True
