from __future__ import annotations

from typing import Any, List, Optional

from pydantic import ValidationError

from childbridge.bridge.service import BridgeService
from childbridge.core.models import (
    RESERVED_CONFIG_KEY,
    ChildBridgeSettings,
    LoadDescriptor,
    PluginKind,
)
from childbridge.core.storage import StoragePaths
from childbridge.plugins.api import (
    BridgeAPI,
    DynamicPlatform,
    StaticPlatform,
    classify_platform,
)
from childbridge.plugins.manager import Plugin, PluginManager
from childbridge.runtime.channel import MessageChannel
from childbridge.runtime.contracts import ControllerEvent, ControllerState, transition_controller_state
from childbridge.runtime.messages import MessageKind
from childbridge.runtime.process import set_process_title
from childbridge.utils.diagnostics import BridgeDiagnostic, PluginLoadError, PluginNotFoundError
from childbridge.utils.logger import LogSettings, PluginLogger, get_internal_logger


class LifecycleController:
    """State machine for the child bridge: load a plugin, start its bridge, shut down once."""

    def __init__(
        self,
        channel: MessageChannel,
        settings: Optional[ChildBridgeSettings] = None,
        logger: Optional[PluginLogger] = None,
    ) -> None:
        self.channel = channel
        self.settings = settings or ChildBridgeSettings()
        self.logger = logger or get_internal_logger()

        self.state = ControllerState.UNINITIALIZED
        self.descriptor: Optional[LoadDescriptor] = None
        self.plugin_config: dict[str, Any] = {}
        self.log_settings: Optional[LogSettings] = None
        self.storage: Optional[StoragePaths] = None
        self.api: Optional[BridgeAPI] = None
        self.plugin_manager: Optional[PluginManager] = None
        self.plugin: Optional[Plugin] = None
        self.bridge_service: Optional[BridgeService] = None
        self.diagnostics: List[BridgeDiagnostic] = []

    @property
    def shutting_down(self) -> bool:
        return self.state in {ControllerState.SHUTTING_DOWN, ControllerState.TERMINATED}

    def on_ready(self) -> None:
        """Tell the parent this process can accept the LOAD command."""
        self.channel.send(MessageKind.READY)

    def load(self, payload: LoadDescriptor | dict[str, Any]) -> bool:
        """Handle LOAD: apply runtime options, import and initialize the plugin, reply LOADED.

        Returns False when the command was ignored. Raises PluginLoadError when
        the plugin cannot be loaded; the host treats that as fatal.
        """
        if self.state != ControllerState.UNINITIALIZED:
            self.logger.debug("Ignoring LOAD while %s.", self.state.value)
            return False

        try:
            descriptor = (
                payload if isinstance(payload, LoadDescriptor) else LoadDescriptor.model_validate(payload or {})
            )
        except ValidationError as exc:
            self.logger.warning("Ignoring malformed LOAD message: %s", exc)
            return False

        self.descriptor = descriptor
        self.plugin_config = {
            key: value for key, value in descriptor.plugin_config.items() if key != RESERVED_CONFIG_KEY
        }

        # Logging and storage must be settled before anything that persists state is built.
        self.log_settings = LogSettings.from_options(descriptor.bridge_options)
        self.logger = PluginLogger(settings=self.log_settings)
        self.channel.logger = self.logger
        self.storage = StoragePaths.resolve(
            self.settings.storage_path,
            descriptor.bridge_options.custom_storage_path,
        )
        self.storage.ensure()

        self.api = BridgeAPI(storage_path=self.storage.root)
        self.plugin_manager = PluginManager(self.api, logger=self.logger)

        self.plugin = self.plugin_manager.load_plugin(descriptor.plugin_path)
        self.plugin_manager.initialize_plugin(self.plugin, descriptor.identifier)
        self._require_registration(descriptor)

        set_process_title(f"{self.settings.process_title_prefix}: {self.plugin.get_plugin_identifier()}")

        self.state = transition_controller_state(self.state, ControllerEvent.LOAD)
        self.channel.send(MessageKind.LOADED)
        return True

    async def start(self) -> bool:
        """Handle START: restore cache, attach the platform or accessory, publish the bridge.

        Returns False when the command was ignored or shutdown began while starting.
        """
        if self.state != ControllerState.LOADED:
            self.logger.debug("Ignoring START while %s.", self.state.value)
            return False

        descriptor = self.descriptor
        self.bridge_service = BridgeService(
            self.api,
            self.plugin_manager,
            descriptor.bridge_options,
            descriptor.bridge_config,
            descriptor.host_config,
            self.storage,
            logger=self.logger,
        )

        await self.bridge_service.load_cached_platform_accessories_from_disk()
        if self.shutting_down:
            return False

        if descriptor.type == PluginKind.PLATFORM:
            await self._start_platform(descriptor.identifier)
        elif descriptor.type == PluginKind.ACCESSORY:
            self._start_accessory(descriptor.identifier)

        if self.shutting_down:
            return False

        self.bridge_service.restore_cached_platform_accessories()
        self.bridge_service.publish_bridge()
        self.api.signal_finished()

        self.state = transition_controller_state(self.state, ControllerEvent.START)
        return True

    def shutdown(self) -> bool:
        """Tear down the bridge once; errors during teardown are logged and discarded."""
        if self.shutting_down:
            return False

        self.state = transition_controller_state(self.state, ControllerEvent.SHUTDOWN)
        try:
            if self.api is not None:
                self.api.signal_shutdown()
            if self.bridge_service is not None:
                self.bridge_service.teardown()
        except Exception as exc:
            self.logger.debug("Error while tearing down the bridge: %s", exc)
        finally:
            self.state = transition_controller_state(self.state, ControllerEvent.TEARDOWN_COMPLETE)
        return True

    async def _start_platform(self, identifier: str) -> None:
        plugin = self.plugin_manager.get_plugin_for_platform(identifier)
        display_name = self.plugin_config.get("name") or plugin.get_plugin_identifier()
        logger = self.logger.with_prefix(display_name)
        constructor = plugin.get_platform_constructor(identifier)
        platform = constructor(logger, self.plugin_config, self.api)

        variant = classify_platform(platform)
        if isinstance(variant, DynamicPlatform):
            plugin.assign_dynamic_platform(identifier, variant.platform)
        elif isinstance(variant, StaticPlatform):
            await self.bridge_service.load_platform_accessories(plugin, variant, identifier, logger)
        # independent platforms only need their constructor to run

    def _start_accessory(self, identifier: str) -> None:
        plugin = self.plugin_manager.get_plugin_for_accessory(identifier)
        display_name = self.plugin_config.get("name")
        if not display_name:
            self.logger.warning(
                "Could not load accessory %s as it is missing the required 'name' property!", identifier
            )
            self.diagnostics.append(
                BridgeDiagnostic(
                    plugin=plugin.identifier,
                    identifier=identifier,
                    error_code="ERR_MISSING_NAME",
                    message="Accessory configuration is missing the required 'name' property.",
                )
            )
            return

        logger = self.logger.with_prefix(display_name)
        constructor = plugin.get_accessory_constructor(identifier)
        instance = constructor(logger, self.plugin_config, self.api)

        accessory = self.bridge_service.create_bridged_accessory(
            plugin,
            instance,
            display_name,
            identifier,
            self.plugin_config.get("uuid_base"),
        )
        if accessory is None:
            logger.info("Accessory %s returned empty set of services. Not adding it to the bridge.", identifier)
            self.diagnostics.append(
                BridgeDiagnostic(
                    plugin=plugin.identifier,
                    identifier=identifier,
                    error_code="ERR_NO_SERVICES",
                    message="Accessory returned an empty set of services.",
                )
            )
            return

        self.bridge_service.bridge.add_bridged_accessory(accessory)

    def _require_registration(self, descriptor: LoadDescriptor) -> None:
        try:
            if descriptor.type == PluginKind.PLATFORM:
                self.plugin_manager.get_plugin_for_platform(descriptor.identifier)
            else:
                self.plugin_manager.get_plugin_for_accessory(descriptor.identifier)
        except PluginNotFoundError as exc:
            raise PluginLoadError(str(exc), descriptor.plugin_path) from exc
