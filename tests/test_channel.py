import asyncio
import io

from conftest import FakeTransport, wait_until

from childbridge.runtime.channel import MessageChannel, StdioTransport
from childbridge.runtime.messages import MessageKind


def test_send_writes_one_envelope_per_line():
    transport = FakeTransport()
    channel = MessageChannel(transport)

    assert channel.send(MessageKind.READY) is True
    assert channel.send(MessageKind.LOADED) is True

    assert transport.envelopes() == [{"id": "ready"}, {"id": "loaded"}]


def test_send_is_dropped_when_parent_disconnected():
    transport = FakeTransport(connected=False)
    channel = MessageChannel(transport)

    assert channel.send(MessageKind.LOADED) is False
    assert transport.sent == []


def test_send_swallows_broken_pipe_during_write():
    class BrokenTransport(FakeTransport):
        def write_line(self, line):
            self._connected = False
            raise BrokenPipeError("gone")

    transport = BrokenTransport()
    channel = MessageChannel(transport)

    assert channel.send(MessageKind.READY) is False
    assert channel.connected is False


def test_receive_only_accepts_parent_commands():
    channel = MessageChannel(FakeTransport())

    assert channel.receive({"id": "load", "data": {}}).id == MessageKind.LOAD
    assert channel.receive({"id": "start"}).id == MessageKind.START
    assert channel.receive({"id": "ready"}) is None
    assert channel.receive({"id": "loaded"}) is None
    assert channel.receive({"nope": True}) is None
    assert channel.receive("{broken") is None


def test_stdio_transport_writes_and_detects_eof():
    stdin = io.StringIO('{"id": "start"}\n')
    stdout = io.StringIO()
    transport = StdioTransport(stdin=stdin, stdout=stdout)

    transport.write_line('{"id": "ready"}\n')
    assert stdout.getvalue() == '{"id": "ready"}\n'

    assert transport.read_line() == '{"id": "start"}\n'
    assert transport.connected is True

    assert transport.read_line() == ""
    assert transport.connected is False


def test_stdio_transport_marks_disconnected_on_closed_stdout():
    stdout = io.StringIO()
    stdout.close()
    transport = StdioTransport(stdin=io.StringIO(), stdout=stdout)
    channel = MessageChannel(transport)

    assert channel.send(MessageKind.READY) is False
    assert transport.connected is False


def test_reader_delivers_parsed_envelopes_on_the_loop():
    transport = FakeTransport()
    channel = MessageChannel(transport)
    received = []

    async def scenario():
        channel.start_reader(received.append, asyncio.get_running_loop())
        transport.feed({"id": "start"})
        transport.feed("garbage")
        transport.feed({"id": "ready"})
        transport.feed({"id": "load", "data": {"identifier": "X"}})
        await wait_until(lambda: len(received) == 2)

    asyncio.run(scenario())
    transport.disconnect()

    assert [envelope.id for envelope in received] == [MessageKind.START, MessageKind.LOAD]
