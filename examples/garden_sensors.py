"""Static platform example: returns all of its accessories at once."""

import asyncio


class MoistureSensor:
    def __init__(self, name):
        self.name = name

    def get_services(self):
        return [{"type": "HumiditySensor", "name": self.name, "characteristics": {"CurrentRelativeHumidity": 40}}]


class GardenSensorsPlatform:
    def __init__(self, log, config, api):
        self.log = log
        self.config = config

    async def accessories(self):
        await asyncio.sleep(0)
        return [MoistureSensor(name) for name in self.config.get("beds", [])]


def initialize(api):
    api.register_platform("GardenSensors", GardenSensorsPlatform)
