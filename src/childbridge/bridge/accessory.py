from __future__ import annotations

import uuid
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

# Fixed namespace so the same seed always yields the same accessory id across restarts.
ACCESSORY_UUID_NAMESPACE = uuid.UUID("6f1c9a3e-2b7d-4e58-9a61-0c3f5d2e8b47")


def generate_uuid(seed: str) -> str:
    """Derive a stable accessory UUID from a seed string."""
    return str(uuid.uuid5(ACCESSORY_UUID_NAMESPACE, seed)).upper()


class AccessoryService(BaseModel):
    """One service exposed by an accessory (e.g. a lightbulb or a switch)."""

    model_config = ConfigDict(extra='forbid')

    type: str = Field(..., min_length=1)
    name: Optional[str] = None
    subtype: Optional[str] = None
    characteristics: Dict[str, Any] = Field(default_factory=dict)


class PlatformAccessory(BaseModel):
    """
    A bridgeable accessory record.

    ``plugin`` and ``platform`` are set for accessories owned by a dynamic
    platform; only those are written to the accessory cache.
    """

    model_config = ConfigDict(extra='ignore', validate_assignment=True)

    display_name: str
    uuid: str
    category: Optional[str] = None
    plugin: Optional[str] = None
    platform: Optional[str] = None
    context: Dict[str, Any] = Field(default_factory=dict)
    services: List[AccessoryService] = Field(default_factory=list)

    @classmethod
    def create(cls, display_name: str, seed: str, category: Optional[str] = None) -> "PlatformAccessory":
        return cls(display_name=display_name, uuid=generate_uuid(seed), category=category)

    def add_service(self, service: AccessoryService) -> AccessoryService:
        for existing in self.services:
            if existing.type == service.type and existing.subtype == service.subtype:
                raise ValueError(
                    f"Accessory '{self.display_name}' already has a '{service.type}' service"
                    f" with subtype {service.subtype!r}."
                )
        self.services = [*self.services, service]
        return service

    def get_service(self, service_type: str) -> Optional[AccessoryService]:
        for service in self.services:
            if service.type == service_type:
                return service
        return None


class PublishInfo(BaseModel):
    """Advertisement parameters for a published bridge."""

    username: str
    pincode: str
    port: Optional[int] = None
    setup_id: Optional[str] = None
    category: str = "bridge"


class Bridge:
    """In-process aggregate of bridged accessories for one child bridge."""

    def __init__(self, display_name: str, bridge_uuid: str) -> None:
        self.display_name = display_name
        self.uuid = bridge_uuid
        self.accessories: Dict[str, PlatformAccessory] = {}
        self.publish_info: Optional[PublishInfo] = None

    @property
    def published(self) -> bool:
        return self.publish_info is not None

    def add_bridged_accessory(self, accessory: PlatformAccessory) -> None:
        if accessory.uuid in self.accessories:
            raise ValueError(
                f"Cannot add a bridged accessory with the same UUID as another bridged accessory: {accessory.uuid}"
            )
        self.accessories[accessory.uuid] = accessory

    def remove_bridged_accessory(self, accessory: PlatformAccessory) -> None:
        self.accessories.pop(accessory.uuid, None)

    def publish(self, info: PublishInfo) -> None:
        if self.published:
            raise RuntimeError(f"Bridge '{self.display_name}' is already published.")
        self.publish_info = info

    def unpublish(self) -> None:
        self.publish_info = None
