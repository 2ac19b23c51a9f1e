from __future__ import annotations

import asyncio
import sys
import threading
from typing import IO, Any, Callable, Optional, Protocol

from childbridge.runtime.messages import INBOUND_KINDS, Envelope, MessageKind, parse_envelope
from childbridge.utils.logger import PluginLogger, get_internal_logger


class Transport(Protocol):
    """Line-oriented duplex conduit to the parent process."""

    @property
    def connected(self) -> bool:
        ...

    def write_line(self, line: str) -> None:
        ...

    def read_line(self) -> str:
        ...


class StdioTransport:
    """Newline-delimited JSON over the child's stdin (commands) and stdout (envelopes)."""

    def __init__(self, stdin: Optional[IO[str]] = None, stdout: Optional[IO[str]] = None) -> None:
        self.stdin = stdin if stdin is not None else sys.stdin
        self.stdout = stdout if stdout is not None else sys.stdout
        self._connected = True
        self._write_lock = threading.Lock()

    @property
    def connected(self) -> bool:
        return self._connected

    def write_line(self, line: str) -> None:
        with self._write_lock:
            try:
                self.stdout.write(line)
                self.stdout.flush()
            except (BrokenPipeError, ValueError, OSError):
                self._connected = False
                raise

    def read_line(self) -> str:
        """Block for the next line; returns an empty string once the parent closed the pipe."""
        try:
            line = self.stdin.readline()
        except (ValueError, OSError):
            line = ""
        if not line:
            self._connected = False
        return line


class MessageChannel:
    """Typed envelope adapter on top of a Transport."""

    def __init__(self, transport: Transport, logger: Optional[PluginLogger] = None) -> None:
        self.transport = transport
        self.logger = logger or get_internal_logger()
        self._reader_thread: Optional[threading.Thread] = None

    @property
    def connected(self) -> bool:
        return self.transport.connected

    def send(self, kind: MessageKind, data: Any = None) -> bool:
        """Send one envelope; silently dropped when the parent is no longer connected."""
        if not self.connected:
            self.logger.debug("Dropping %s message, parent not connected.", kind.value)
            return False

        try:
            self.transport.write_line(Envelope(id=kind, data=data).to_line())
        except (BrokenPipeError, ValueError, OSError):
            self.logger.debug("Dropping %s message, channel closed while sending.", kind.value)
            return False
        return True

    def receive(self, raw: Any) -> Envelope | None:
        """Parse an inbound message, ignoring malformed ones and kinds the child does not accept."""
        envelope = parse_envelope(raw)
        if envelope is None:
            return None
        if envelope.id not in INBOUND_KINDS:
            self.logger.debug("Ignoring unexpected %s message from parent.", envelope.id.value)
            return None
        return envelope

    def start_reader(self, on_envelope: Callable[[Envelope], None], loop: asyncio.AbstractEventLoop) -> None:
        """Read lines on a daemon thread and hand parsed envelopes to ``on_envelope`` on the loop."""
        if self._reader_thread is not None:
            return

        def _read_loop() -> None:
            while True:
                line = self.transport.read_line()
                if not line:
                    return
                envelope = self.receive(line)
                if envelope is None:
                    continue
                try:
                    loop.call_soon_threadsafe(on_envelope, envelope)
                except RuntimeError:
                    # loop already closed
                    return

        self._reader_thread = threading.Thread(target=_read_loop, name="childbridge-ipc-reader", daemon=True)
        self._reader_thread.start()
