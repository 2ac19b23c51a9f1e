"""Dynamic platform example: one switch per configured light, cached between restarts."""

from childbridge import APIEvent, AccessoryService, PlatformAccessory

PLUGIN_NAME = "porch-lights"
PLATFORM_NAME = "PorchLights"


class PorchLightsPlatform:
    def __init__(self, log, config, api):
        self.log = log
        self.config = config
        self.api = api
        self.accessories = {}
        api.on(APIEvent.DID_FINISH_LAUNCHING, self.discover)

    def configure_accessory(self, accessory):
        self.log("Restoring %s from cache", accessory.display_name)
        self.accessories[accessory.uuid] = accessory

    def discover(self):
        new = []
        for name in self.config.get("lights", []):
            accessory = PlatformAccessory.create(name, f"{PLUGIN_NAME}:{name}", category="lightbulb")
            if accessory.uuid in self.accessories:
                continue
            accessory.add_service(AccessoryService(type="Lightbulb", name=name, characteristics={"On": False}))
            self.accessories[accessory.uuid] = accessory
            new.append(accessory)

        if new:
            self.api.register_platform_accessories(PLUGIN_NAME, PLATFORM_NAME, new)


def initialize(api):
    api.register_platform(PLATFORM_NAME, PorchLightsPlatform)
