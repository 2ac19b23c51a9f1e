import asyncio
import json
import queue
import sys
import textwrap
from pathlib import Path

import pytest

# Ensure src/ is in the python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

EXAMPLES_DIR = Path(__file__).parent.parent / "examples"


class FakeTransport:
    """In-memory stand-in for the stdio pipes to the parent."""

    def __init__(self, connected: bool = True):
        self._connected = connected
        self.sent: list[str] = []
        self._incoming: "queue.Queue[str]" = queue.Queue()

    @property
    def connected(self) -> bool:
        return self._connected

    def write_line(self, line: str) -> None:
        if not self._connected:
            raise BrokenPipeError("parent went away")
        self.sent.append(line)

    def read_line(self) -> str:
        line = self._incoming.get()
        if not line:
            self._connected = False
        return line

    def feed(self, payload) -> None:
        if not isinstance(payload, str):
            payload = json.dumps(payload)
        self._incoming.put(payload + "\n")

    def disconnect(self) -> None:
        self._connected = False
        self._incoming.put("")

    def envelopes(self) -> list[dict]:
        return [json.loads(line) for line in self.sent]

    def sent_ids(self) -> list[str]:
        return [envelope["id"] for envelope in self.envelopes()]


async def wait_until(predicate, timeout: float = 2.0) -> None:
    deadline = asyncio.get_running_loop().time() + timeout
    while not predicate():
        if asyncio.get_running_loop().time() > deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(0.01)


def write_plugin(directory: Path, module_name: str, source: str) -> Path:
    directory.mkdir(parents=True, exist_ok=True)
    path = directory / f"{module_name}.py"
    path.write_text(textwrap.dedent(source))
    return path


PLATFORM_PLUGIN = """
CALLS = []

class Platform:
    def __init__(self, log, config, api):
        CALLS.append((log, config, api))

def initialize(api):
    api.register_platform("TestPlatform", Platform)
"""


def build_descriptor(plugin_path: Path, identifier: str, kind: str = "platform", **overrides) -> dict:
    descriptor = {
        "type": kind,
        "identifier": identifier,
        "pluginPath": str(plugin_path),
        "pluginConfig": {kind: identifier, "name": "Test Name", "_bridge": {"username": "0E:11:22:33:44:55"}},
        "bridgeConfig": {"name": "Test Bridge", "username": "0E:11:22:33:44:55", "port": 51826},
        "bridgeOptions": {"noLogTimestamps": True},
        "homebridgeConfig": {"bridge": {"name": "Main"}},
    }
    descriptor.update(overrides)
    return descriptor


@pytest.fixture(autouse=True)
def _keep_process_title(monkeypatch):
    # the test runner's own task name must not be renamed
    titles: list[str] = []
    monkeypatch.setattr("childbridge.runtime.controller.set_process_title", titles.append)
    monkeypatch.setattr("childbridge.runtime.host.set_process_title", titles.append)
    return titles


@pytest.fixture
def transport():
    fake = FakeTransport()
    yield fake
    fake.disconnect()


@pytest.fixture
def settings(tmp_path):
    from childbridge.core.models import ChildBridgeSettings

    return ChildBridgeSettings(
        storage_path=tmp_path / "storage",
        grace_period_seconds=0.05,
        liveness_interval_seconds=30,
    )


@pytest.fixture
def platform_plugin(tmp_path):
    return write_plugin(tmp_path / "plugins", "test_platform_plugin", PLATFORM_PLUGIN)
