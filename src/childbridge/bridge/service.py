from __future__ import annotations

import inspect
from typing import Any, List, Optional

from pydantic import ValidationError

from childbridge.bridge.accessory import (
    AccessoryService,
    Bridge,
    PlatformAccessory,
    PublishInfo,
    generate_uuid,
)
from childbridge.bridge.cache import AccessoryCache
from childbridge.core.models import BridgeConfiguration, BridgeOptions, HostConfig
from childbridge.core.storage import StoragePaths
from childbridge.plugins.api import BridgeAPI, InternalAPIEvent, StaticPlatform
from childbridge.plugins.manager import Plugin, PluginManager
from childbridge.utils.diagnostics import PluginNotFoundError
from childbridge.utils.logger import PluginLogger, get_internal_logger


class BridgeService:
    """
    Owns the bridge for one child process: restores the accessory cache,
    turns plugin objects into bridged accessories, publishes the bridge and
    tears it down.
    """

    def __init__(
        self,
        api: BridgeAPI,
        plugin_manager: PluginManager,
        bridge_options: BridgeOptions,
        bridge_config: BridgeConfiguration,
        host_config: HostConfig,
        storage: StoragePaths,
        logger: Optional[PluginLogger] = None,
    ) -> None:
        self.api = api
        self.plugin_manager = plugin_manager
        self.bridge_options = bridge_options
        self.bridge_config = bridge_config
        self.host_config = host_config
        self.storage = storage
        self.logger = logger or get_internal_logger()

        self.bridge = Bridge(bridge_config.name, generate_uuid(f"childbridge:{bridge_config.username}"))
        self.cache = AccessoryCache(storage.cached_accessories_file(bridge_config.username), logger=self.logger)
        # Accessories read from disk, waiting to be handed back to their platform.
        self.pending_cached_accessories: List[PlatformAccessory] = []
        # Nothing is written back until the cache file has been read.
        self.cache_loaded = False
        # Accessories owned by dynamic platforms; this is what gets persisted.
        self.cached_platform_accessories: List[PlatformAccessory] = []
        self.torn_down = False

        api.on(InternalAPIEvent.REGISTER_PLATFORM_ACCESSORIES, self.handle_register_platform_accessories)
        api.on(InternalAPIEvent.UPDATE_PLATFORM_ACCESSORIES, self.handle_update_platform_accessories)
        api.on(InternalAPIEvent.UNREGISTER_PLATFORM_ACCESSORIES, self.handle_unregister_platform_accessories)

    async def load_cached_platform_accessories_from_disk(self) -> List[PlatformAccessory]:
        self.pending_cached_accessories = await self.cache.load()
        self.cache_loaded = True
        return self.pending_cached_accessories

    async def load_platform_accessories(
        self,
        plugin: Plugin,
        variant: StaticPlatform,
        platform_name: str,
        logger: PluginLogger,
    ) -> int:
        """Bridge every accessory returned by a static platform; returns how many were added."""
        result = variant.platform.accessories()
        if inspect.isawaitable(result):
            result = await result
        instances = list(result or [])

        added = 0
        for instance in instances:
            display_name = getattr(instance, "name", None) or getattr(instance, "display_name", None)
            if not display_name:
                logger.warning("Platform '%s' returned an accessory without a name, skipping it.", platform_name)
                continue

            logger.info("Initializing platform accessory '%s'...", display_name)
            accessory = self.create_bridged_accessory(
                plugin,
                instance,
                display_name,
                platform_name,
                getattr(instance, "uuid_base", None),
            )
            if accessory is None:
                logger.info("Platform accessory '%s' returned an empty set of services, not adding it.", display_name)
                continue

            self.bridge.add_bridged_accessory(accessory)
            added += 1
        return added

    def create_bridged_accessory(
        self,
        plugin: Plugin,
        instance: Any,
        display_name: str,
        identifier: str,
        uuid_base: Optional[str] = None,
    ) -> Optional[PlatformAccessory]:
        """Convert an accessory instance into a bridgeable record, or None when it exposes no services."""
        get_services = getattr(instance, "get_services", None)
        raw_services = list(get_services() or []) if callable(get_services) else []
        if not raw_services:
            return None

        services = [self._coerce_service(service, display_name) for service in raw_services]
        seed = f"{plugin.identifier}.{identifier}:{uuid_base or display_name}"
        return PlatformAccessory(
            display_name=display_name,
            uuid=generate_uuid(seed),
            category=getattr(instance, "category", None),
            services=services,
        )

    def restore_cached_platform_accessories(self) -> int:
        """Hand cached accessories back to their dynamic platform; stale entries are dropped."""
        restored = 0
        for accessory in self.pending_cached_accessories:
            platforms = self._find_dynamic_platforms(accessory)
            if not platforms:
                self.logger.warning(
                    "No platform '%s' from plugin '%s' claimed cached accessory '%s', removing it from the cache.",
                    accessory.platform,
                    accessory.plugin,
                    accessory.display_name,
                )
                continue

            platforms[0].configure_accessory(accessory)
            if accessory.uuid not in self.bridge.accessories:
                self.bridge.add_bridged_accessory(accessory)
            self.cached_platform_accessories.append(accessory)
            restored += 1

        self.pending_cached_accessories = []
        self.save_cached_accessories()
        return restored

    def publish_bridge(self) -> PublishInfo:
        info = PublishInfo(
            username=self.bridge_config.username,
            pincode=self.bridge_config.pin,
            port=self.bridge_config.port,
            setup_id=self.bridge_config.setup_id,
        )
        self.bridge.publish(info)
        self.logger.success(
            "%s is running on port %s with %s accessories.",
            self.bridge.display_name,
            info.port if info.port is not None else "auto",
            len(self.bridge.accessories),
        )
        return info

    def save_cached_accessories(self) -> None:
        """Persist dynamic platform accessories, keeping entries not yet handed back to a platform."""
        if not self.cache_loaded:
            self.logger.debug("Accessory cache was never loaded, leaving it untouched.")
            return
        self.cache.save([*self.cached_platform_accessories, *self.pending_cached_accessories])

    def teardown(self) -> None:
        """Persist the accessory cache and unpublish the bridge; only the first call has an effect."""
        if self.torn_down:
            return
        self.torn_down = True
        try:
            self.save_cached_accessories()
        finally:
            self.bridge.unpublish()

    def handle_register_platform_accessories(self, accessories: List[PlatformAccessory]) -> None:
        for accessory in accessories:
            self.bridge.add_bridged_accessory(accessory)
            self.cached_platform_accessories.append(accessory)
        self.save_cached_accessories()

    def handle_update_platform_accessories(self, accessories: List[PlatformAccessory]) -> None:
        self.save_cached_accessories()

    def handle_unregister_platform_accessories(self, accessories: List[PlatformAccessory]) -> None:
        removed = {accessory.uuid for accessory in accessories}
        for accessory in accessories:
            self.bridge.remove_bridged_accessory(accessory)
        self.cached_platform_accessories = [
            accessory for accessory in self.cached_platform_accessories if accessory.uuid not in removed
        ]
        self.save_cached_accessories()

    def _find_dynamic_platforms(self, accessory: PlatformAccessory) -> List[Any]:
        if not accessory.plugin or not accessory.platform:
            return []
        try:
            plugin = self.plugin_manager.get_plugin(accessory.plugin)
        except PluginNotFoundError:
            return []
        return plugin.get_active_dynamic_platforms(accessory.platform)

    @staticmethod
    def _coerce_service(service: Any, display_name: str) -> AccessoryService:
        if isinstance(service, AccessoryService):
            return service
        try:
            return AccessoryService.model_validate(service)
        except ValidationError as exc:
            raise ValueError(f"Accessory '{display_name}' returned an invalid service: {exc}") from exc
