import asyncio

from conftest import build_descriptor, wait_until, write_plugin

from childbridge.runtime.contracts import ControllerState, ExitCode
from childbridge.runtime.host import ChildBridgeHost


def _host(settings, transport, exits, **overrides):
    if overrides:
        settings = settings.model_copy(update=overrides)
    return ChildBridgeHost(
        settings=settings,
        transport=transport,
        exit_process=exits.append,
        install_signal_handlers=False,
    )


def test_full_lifecycle_ends_with_signal_exit_code(transport, settings, platform_plugin, _keep_process_title):
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        await wait_until(lambda: transport.sent_ids() == ["ready"])

        transport.feed({"id": "load", "data": build_descriptor(platform_plugin, "TestPlatform")})
        await wait_until(lambda: transport.sent_ids() == ["ready", "loaded"])

        transport.feed({"id": "start"})
        await wait_until(lambda: host.controller.state == ControllerState.RUNNING)

        assert host.signals.handle("SIGTERM", 15) is True
        assert host.controller.state == ControllerState.TERMINATED
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == 143
    assert exits == [143]
    assert host.controller.bridge_service.bridge.published is False
    assert _keep_process_title == ["childbridge: child bridge", "childbridge: test_platform_plugin"]


def test_interrupt_exit_code_is_130(transport, settings):
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        await wait_until(lambda: transport.sent_ids() == ["ready"])
        host.signals.handle("SIGINT", 2)
        host.signals.handle("SIGTERM", 15)
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == 130
    assert exits == [130]


def test_parent_disconnect_exits_orphaned_without_shutdown(transport, settings):
    exits: list[int] = []
    host = _host(settings, transport, exits, liveness_interval_seconds=0.02)

    async def scenario():
        runner = asyncio.create_task(host.run())
        await wait_until(lambda: transport.sent_ids() == ["ready"])
        transport.disconnect()
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == ExitCode.ORPHANED
    assert exits == [1]
    assert host.controller.state == ControllerState.UNINITIALIZED


def test_unloadable_plugin_exits_with_load_failure(transport, settings, tmp_path):
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        await wait_until(lambda: transport.sent_ids() == ["ready"])
        transport.feed({"id": "load", "data": build_descriptor(tmp_path / "nowhere.py", "TestPlatform")})
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == ExitCode.LOAD_FAILURE
    assert exits == [2]
    assert transport.sent_ids() == ["ready"]


def test_failing_platform_constructor_exits_with_load_failure(transport, settings, tmp_path):
    plugin = write_plugin(
        tmp_path / "plugins",
        "exploding_platform",
        """
        class Platform:
            def __init__(self, log, config, api):
                raise RuntimeError("bad credentials")

        def initialize(api):
            api.register_platform("TestPlatform", Platform)
        """,
    )
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        transport.feed({"id": "load", "data": build_descriptor(plugin, "TestPlatform")})
        transport.feed({"id": "start"})
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == ExitCode.LOAD_FAILURE
    assert transport.sent_ids() == ["ready", "loaded"]


def test_garbage_and_unknown_messages_are_ignored(transport, settings, platform_plugin):
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        transport.feed("not json at all")
        transport.feed({"id": "reboot"})
        transport.feed({"id": "loaded"})
        transport.feed({"id": "load", "data": build_descriptor(platform_plugin, "TestPlatform")})
        await wait_until(lambda: host.controller.state == ControllerState.LOADED)
        host.signals.handle("SIGTERM", 15)
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == 143
    assert transport.sent_ids() == ["ready", "loaded"]


def test_messages_arriving_before_start_are_handled_in_order(transport, settings, platform_plugin):
    exits: list[int] = []
    host = _host(settings, transport, exits)
    transport.feed({"id": "start"})
    transport.feed({"id": "load", "data": build_descriptor(platform_plugin, "TestPlatform")})
    transport.feed({"id": "start"})

    async def scenario():
        runner = asyncio.create_task(host.run())
        await wait_until(lambda: host.controller.state == ControllerState.RUNNING)
        host.signals.handle("SIGTERM", 15)
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == 143
    assert transport.sent_ids() == ["ready", "loaded"]


def test_unusable_storage_path_exits_with_load_failure(transport, settings, platform_plugin, tmp_path):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied")
    descriptor = build_descriptor(
        platform_plugin,
        "TestPlatform",
        bridgeOptions={"customStoragePath": str(blocker)},
    )
    exits: list[int] = []
    host = _host(settings, transport, exits)

    async def scenario():
        runner = asyncio.create_task(host.run())
        transport.feed({"id": "load", "data": descriptor})
        return await asyncio.wait_for(runner, timeout=2)

    assert asyncio.run(scenario()) == ExitCode.LOAD_FAILURE
    assert exits == [2]
    assert transport.sent_ids() == ["ready"]
