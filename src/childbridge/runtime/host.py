from __future__ import annotations

import asyncio
from typing import Optional

from childbridge.core.models import ChildBridgeSettings
from childbridge.runtime.channel import MessageChannel, StdioTransport, Transport
from childbridge.runtime.contracts import ExitCode
from childbridge.runtime.controller import LifecycleController
from childbridge.runtime.liveness import LivenessMonitor
from childbridge.runtime.messages import Envelope, MessageKind
from childbridge.runtime.process import ExitFunction, set_process_title, terminate_process
from childbridge.runtime.signals import SignalHandler
from childbridge.utils.diagnostics import PluginLoadError
from childbridge.utils.logger import PluginLogger, get_internal_logger


class ChildBridgeHost:
    """
    Event loop owner for one child process.

    Parent messages, OS signals and the liveness timer all run on the same
    loop; envelopes are dispatched one at a time from a single queue.
    """

    def __init__(
        self,
        settings: Optional[ChildBridgeSettings] = None,
        transport: Optional[Transport] = None,
        exit_process: ExitFunction = terminate_process,
        logger: Optional[PluginLogger] = None,
        install_signal_handlers: bool = True,
    ) -> None:
        self.settings = settings or ChildBridgeSettings()
        self.logger = logger or get_internal_logger()
        self.channel = MessageChannel(transport or StdioTransport(), logger=self.logger)
        self.controller = LifecycleController(self.channel, settings=self.settings, logger=self.logger)
        self.signals = SignalHandler(
            self.controller.shutdown,
            self.exit,
            grace_period_seconds=self.settings.grace_period_seconds,
            logger=self.logger,
        )
        self.liveness = LivenessMonitor(
            self.channel,
            self.exit,
            interval_seconds=self.settings.liveness_interval_seconds,
            logger=self.logger,
        )
        self.install_signal_handlers = install_signal_handlers
        self.exit_code: Optional[int] = None

        self._exit_process = exit_process
        self._inbox: Optional[asyncio.Queue[Envelope]] = None
        self._done: Optional[asyncio.Event] = None

    def exit(self, code: int) -> None:
        """Record the exit code, wake ``run`` and hand off to the process exit function."""
        if self.exit_code is None:
            self.exit_code = int(code)
        if self._done is not None:
            self._done.set()
        self._exit_process(int(code))

    def submit(self, envelope: Envelope) -> None:
        """Queue an inbound envelope for dispatch; must be called on the loop thread."""
        if self._inbox is not None:
            self._inbox.put_nowait(envelope)

    async def run(self) -> int:
        """Run until an exit is requested; returns the recorded exit code."""
        loop = asyncio.get_running_loop()
        self._inbox = asyncio.Queue()
        self._done = asyncio.Event()

        set_process_title(f"{self.settings.process_title_prefix}: child bridge")

        if self.install_signal_handlers:
            self.signals.install(loop)
        self.channel.start_reader(self.submit, loop)
        self.liveness.start()

        self.controller.on_ready()

        dispatcher = loop.create_task(self._dispatch_loop())
        try:
            await self._done.wait()
        finally:
            dispatcher.cancel()
            self.liveness.stop()
            if self.install_signal_handlers:
                self.signals.uninstall()
            if self.signals.forced_exit is not None and self.exit_code is not None:
                self.signals.forced_exit.cancel()

        return self.exit_code if self.exit_code is not None else ExitCode.OK

    async def _dispatch_loop(self) -> None:
        while True:
            envelope = await self._inbox.get()
            await self.dispatch(envelope)

    async def dispatch(self, envelope: Envelope) -> None:
        """Handle one inbound envelope; START is awaited so later messages see its outcome."""
        if envelope.id == MessageKind.LOAD:
            try:
                self.controller.load(envelope.data)
            except PluginLoadError as exc:
                self.logger.error("%s", exc)
                self.exit(ExitCode.LOAD_FAILURE)
            except Exception as exc:
                self.logger.error("Failed to load the child bridge: %s", exc)
                self.exit(ExitCode.LOAD_FAILURE)
        elif envelope.id == MessageKind.START:
            await self._run_start()

    async def _run_start(self) -> None:
        try:
            await self.controller.start()
        except Exception as exc:
            self.logger.error("Failed to start the child bridge: %s", exc)
            self.exit(ExitCode.LOAD_FAILURE)


def run_child_bridge(settings: Optional[ChildBridgeSettings] = None) -> int:
    """Entry point used by the CLI: run the host on a fresh event loop."""
    host = ChildBridgeHost(settings=settings)
    return asyncio.run(host.run())
