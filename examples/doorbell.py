"""Accessory example: a single doorbell button."""


class Doorbell:
    def __init__(self, log, config, api):
        self.log = log
        self.name = config["name"]

    def identify(self):
        self.log("Identify requested")

    def get_services(self):
        return [
            {"type": "AccessoryInformation", "characteristics": {"Manufacturer": "Example Co"}},
            {"type": "Doorbell", "name": self.name},
        ]


def initialize(api):
    api.register_accessory("Doorbell", Doorbell)
