from __future__ import annotations

import asyncio
from typing import Optional

from childbridge.runtime.channel import MessageChannel
from childbridge.runtime.contracts import ExitCode
from childbridge.runtime.process import ExitFunction
from childbridge.utils.logger import PluginLogger, get_internal_logger


class LivenessMonitor:
    """Periodically checks the parent channel and exits the process once it is gone."""

    def __init__(
        self,
        channel: MessageChannel,
        exit_process: ExitFunction,
        interval_seconds: float = 5.0,
        logger: Optional[PluginLogger] = None,
    ) -> None:
        self.channel = channel
        self.exit_process = exit_process
        self.interval_seconds = interval_seconds
        self.logger = logger or get_internal_logger()
        self._task: Optional[asyncio.Task] = None

    def check_once(self) -> bool:
        """Run one liveness check; returns False after triggering an orphan exit."""
        if self.channel.connected:
            return True

        self.logger.info("Parent process not connected, terminating process...")
        self.exit_process(ExitCode.ORPHANED)
        return False

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def stop(self) -> None:
        if self._task is not None:
            self._task.cancel()
            self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            if not self.check_once():
                return
