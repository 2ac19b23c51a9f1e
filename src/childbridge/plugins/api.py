from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Union

from childbridge import __version__

if TYPE_CHECKING:
    from childbridge.bridge.accessory import PlatformAccessory


class APIEvent(str, Enum):
    """Events plugins can subscribe to through ``api.on``."""

    DID_FINISH_LAUNCHING = "did_finish_launching"
    SHUTDOWN = "shutdown"


class InternalAPIEvent(str, Enum):
    """Events consumed by the runtime itself."""

    REGISTER_PLATFORM = "register_platform"
    REGISTER_ACCESSORY = "register_accessory"
    REGISTER_PLATFORM_ACCESSORIES = "register_platform_accessories"
    UPDATE_PLATFORM_ACCESSORIES = "update_platform_accessories"
    UNREGISTER_PLATFORM_ACCESSORIES = "unregister_platform_accessories"


EventName = Union[APIEvent, InternalAPIEvent]


class BridgeAPI:
    """
    The object handed to a plugin's ``initialize(api)`` hook and to every
    platform or accessory constructor.
    """

    def __init__(self, storage_path: Optional[Path] = None) -> None:
        self.version = __version__
        self.storage_path = storage_path
        self._listeners: Dict[EventName, List[Callable[..., Any]]] = {}
        self._finished = False

    def on(self, event: EventName, callback: Callable[..., Any]) -> None:
        """Subscribe ``callback`` to ``event``."""
        self._listeners.setdefault(event, []).append(callback)

    def emit(self, event: EventName, *args: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            callback(*args)

    def listener_count(self, event: EventName) -> int:
        return len(self._listeners.get(event, []))

    def register_platform(self, platform_name: str, constructor: Callable[..., Any]) -> None:
        self.emit(InternalAPIEvent.REGISTER_PLATFORM, platform_name, constructor)

    def register_accessory(self, accessory_name: str, constructor: Callable[..., Any]) -> None:
        self.emit(InternalAPIEvent.REGISTER_ACCESSORY, accessory_name, constructor)

    def register_platform_accessories(
        self,
        plugin_identifier: str,
        platform_name: str,
        accessories: List["PlatformAccessory"],
    ) -> None:
        """Add accessories created by a dynamic platform to the bridge and the cache."""
        for accessory in accessories:
            accessory.plugin = plugin_identifier
            accessory.platform = platform_name
        self.emit(InternalAPIEvent.REGISTER_PLATFORM_ACCESSORIES, accessories)

    def update_platform_accessories(self, accessories: List["PlatformAccessory"]) -> None:
        self.emit(InternalAPIEvent.UPDATE_PLATFORM_ACCESSORIES, accessories)

    def unregister_platform_accessories(
        self,
        plugin_identifier: str,
        platform_name: str,
        accessories: List["PlatformAccessory"],
    ) -> None:
        self.emit(InternalAPIEvent.UNREGISTER_PLATFORM_ACCESSORIES, accessories)

    @property
    def finished_launching(self) -> bool:
        return self._finished

    def signal_finished(self) -> None:
        """Tell plugins that initial setup is done; cached accessories are restored by now."""
        self._finished = True
        self.emit(APIEvent.DID_FINISH_LAUNCHING)

    def signal_shutdown(self) -> None:
        self.emit(APIEvent.SHUTDOWN)


def is_dynamic_platform(platform: Any) -> bool:
    """A dynamic platform accepts cached accessories through ``configure_accessory``."""
    return callable(getattr(platform, "configure_accessory", None))


def is_static_platform(platform: Any) -> bool:
    """A static platform hands over all of its accessories at once through ``accessories()``."""
    return callable(getattr(platform, "accessories", None))


@dataclass(frozen=True)
class DynamicPlatform:
    platform: Any


@dataclass(frozen=True)
class StaticPlatform:
    platform: Any


@dataclass(frozen=True)
class IndependentPlatform:
    platform: Any


PlatformVariant = Union[DynamicPlatform, StaticPlatform, IndependentPlatform]


def classify_platform(platform: Any) -> PlatformVariant:
    """Resolve the capability of a constructed platform instance once.

    Dynamic wins over static when an instance exposes both. Instances with
    neither capability are independent: their constructor is the whole contract.
    """
    if is_dynamic_platform(platform):
        return DynamicPlatform(platform)
    if is_static_platform(platform):
        return StaticPlatform(platform)
    return IndependentPlatform(platform)
