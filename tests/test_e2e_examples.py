import asyncio
import json
import shutil

from conftest import EXAMPLES_DIR, FakeTransport, build_descriptor

from childbridge.runtime.channel import MessageChannel
from childbridge.runtime.controller import LifecycleController


def _start(settings, plugin_path, identifier, kind="platform", **config):
    config.setdefault(kind, identifier)
    controller = LifecycleController(MessageChannel(FakeTransport()), settings=settings)
    controller.load(build_descriptor(plugin_path, identifier, kind=kind, pluginConfig=config))
    assert asyncio.run(controller.start()) is True
    return controller


def _names(controller):
    return sorted(accessory.display_name for accessory in controller.bridge_service.bridge.accessories.values())


def test_e2e_garden_sensors_static_platform(settings):
    controller = _start(settings, EXAMPLES_DIR / "garden_sensors.py", "GardenSensors", beds=["Roses", "Herbs"])

    assert _names(controller) == ["Herbs", "Roses"]
    controller.shutdown()


def test_e2e_doorbell_accessory(settings):
    controller = _start(settings, EXAMPLES_DIR / "doorbell.py", "Doorbell", kind="accessory", name="Front Door")

    (accessory,) = controller.bridge_service.bridge.accessories.values()
    assert accessory.display_name == "Front Door"
    assert [service.type for service in accessory.services] == ["AccessoryInformation", "Doorbell"]


def test_e2e_porch_lights_dynamic_platform_survives_restart(settings, tmp_path):
    plugin_dir = tmp_path / "porch_lights"
    shutil.copytree(EXAMPLES_DIR / "porch_lights", plugin_dir)

    first = _start(settings, plugin_dir, "PorchLights", lights=["Front", "Side"])
    assert first.plugin.identifier == "porch-lights"
    assert _names(first) == ["Front", "Side"]
    first.shutdown()

    cache_file = first.storage.cached_accessories_file("0E:11:22:33:44:55")
    cached = json.loads(cache_file.read_text())
    assert sorted(entry["display_name"] for entry in cached) == ["Front", "Side"]
    assert {entry["platform"] for entry in cached} == {"PorchLights"}

    second = _start(settings, plugin_dir, "PorchLights", lights=["Front", "Side", "Garage"])
    platform = second.plugin.get_active_dynamic_platforms("PorchLights")[0]

    assert len(platform.accessories) == 3
    assert _names(second) == ["Front", "Garage", "Side"]
    second.shutdown()
    assert len(json.loads(cache_file.read_text())) == 3
