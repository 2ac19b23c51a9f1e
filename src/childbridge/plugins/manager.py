from __future__ import annotations

import importlib.util
import sys
from pathlib import Path
from types import ModuleType
from typing import Any, Callable, Dict, List, Optional

import yaml

from childbridge.plugins.api import BridgeAPI, InternalAPIEvent
from childbridge.utils.diagnostics import PluginLoadError, PluginNotFoundError
from childbridge.utils.logger import PluginLogger, get_internal_logger

PLUGIN_METADATA_FILE = "plugin.yaml"
INITIALIZER_NAME = "initialize"


class Plugin:
    """A plugin resolved from disk: a single module file or a package directory."""

    def __init__(self, path: Path, identifier: str, entry_file: Path, is_package: bool) -> None:
        self.path = path
        self.identifier = identifier
        self.entry_file = entry_file
        self.is_package = is_package
        self.module: Optional[ModuleType] = None
        self.platforms: Dict[str, Callable[..., Any]] = {}
        self.accessories: Dict[str, Callable[..., Any]] = {}
        self.active_dynamic_platforms: Dict[str, List[Any]] = {}

    @property
    def module_name(self) -> str:
        return f"childbridge_plugin_{self.identifier.replace('-', '_').replace('.', '_')}"

    def get_plugin_identifier(self) -> str:
        return self.identifier

    def load(self) -> None:
        """Import the plugin module and check that it exposes an initializer."""
        search_locations = [str(self.path)] if self.is_package else None
        spec = importlib.util.spec_from_file_location(
            self.module_name,
            self.entry_file,
            submodule_search_locations=search_locations,
        )
        if not spec or not spec.loader:
            raise PluginLoadError("Could not create an import spec for the plugin.", str(self.path))

        module = importlib.util.module_from_spec(spec)
        sys.modules[self.module_name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(self.module_name, None)
            raise PluginLoadError(f"Importing the plugin failed: {exc}", str(self.path)) from exc

        initializer = getattr(module, INITIALIZER_NAME, None)
        if not callable(initializer):
            sys.modules.pop(self.module_name, None)
            raise PluginLoadError(
                f"Plugin '{self.identifier}' does not expose an '{INITIALIZER_NAME}(api)' function.",
                str(self.path),
            )

        self.module = module

    def initialize(self, api: BridgeAPI) -> None:
        if self.module is None:
            raise PluginLoadError(f"Plugin '{self.identifier}' must be loaded before it is initialized.", str(self.path))
        getattr(self.module, INITIALIZER_NAME)(api)

    def register_platform(self, name: str, constructor: Callable[..., Any]) -> None:
        name = _unqualified(name)
        if name in self.platforms:
            raise ValueError(f"Platform '{name}' is already registered by plugin '{self.identifier}'.")
        self.platforms[name] = constructor

    def register_accessory(self, name: str, constructor: Callable[..., Any]) -> None:
        name = _unqualified(name)
        if name in self.accessories:
            raise ValueError(f"Accessory '{name}' is already registered by plugin '{self.identifier}'.")
        self.accessories[name] = constructor

    def get_platform_constructor(self, name: str) -> Callable[..., Any]:
        constructor = self.platforms.get(_unqualified(name))
        if constructor is None:
            raise PluginNotFoundError(name, "platform")
        return constructor

    def get_accessory_constructor(self, name: str) -> Callable[..., Any]:
        constructor = self.accessories.get(_unqualified(name))
        if constructor is None:
            raise PluginNotFoundError(name, "accessory")
        return constructor

    def assign_dynamic_platform(self, name: str, platform: Any) -> None:
        """Remember a dynamic platform instance so cached accessories can be handed back to it."""
        self.active_dynamic_platforms.setdefault(_unqualified(name), []).append(platform)

    def get_active_dynamic_platforms(self, name: str) -> List[Any]:
        return self.active_dynamic_platforms.get(_unqualified(name), [])


def _unqualified(name: str) -> str:
    # "plugin-name.PlatformName" and "PlatformName" refer to the same registration
    return name.rsplit(".", 1)[-1]


class PluginManager:
    """Resolves, imports and initializes plugins and tracks what they register."""

    def __init__(self, api: BridgeAPI, logger: Optional[PluginLogger] = None) -> None:
        self.api = api
        self.logger = logger or get_internal_logger()
        self.plugins: Dict[str, Plugin] = {}
        self.platform_to_plugin: Dict[str, Plugin] = {}
        self.accessory_to_plugin: Dict[str, Plugin] = {}
        self._initializing: Optional[Plugin] = None

        api.on(InternalAPIEvent.REGISTER_PLATFORM, self._handle_register_platform)
        api.on(InternalAPIEvent.REGISTER_ACCESSORY, self._handle_register_accessory)

    def load_plugin(self, plugin_path: str | Path) -> Plugin:
        """Resolve and import a plugin from its path."""
        plugin = self.resolve_plugin(Path(plugin_path))
        if plugin.identifier in self.plugins:
            raise PluginLoadError(f"Plugin '{plugin.identifier}' is already loaded.", str(plugin.path))

        plugin.load()
        self.plugins[plugin.identifier] = plugin
        return plugin

    def resolve_plugin(self, plugin_path: Path) -> Plugin:
        path = plugin_path.expanduser()
        if not path.exists():
            raise PluginLoadError("Plugin path does not exist.", str(plugin_path))
        path = path.resolve()

        if path.is_dir():
            entry_file = path / "__init__.py"
            if not entry_file.exists():
                raise PluginLoadError("Plugin directory has no __init__.py.", str(plugin_path))
            identifier = self._read_identifier(path / PLUGIN_METADATA_FILE) or path.name
            return Plugin(path=path, identifier=identifier, entry_file=entry_file, is_package=True)

        if path.suffix != ".py":
            raise PluginLoadError("Plugin file must be a Python module (.py).", str(plugin_path))
        identifier = self._read_identifier(path.parent / PLUGIN_METADATA_FILE) or path.stem
        return Plugin(path=path, identifier=identifier, entry_file=path, is_package=False)

    def initialize_plugin(self, plugin: Plugin, identifier: str) -> None:
        """Run the plugin's ``initialize(api)`` hook, attributing registrations to it."""
        self.logger.debug("Loading plugin '%s' for %s...", plugin.identifier, identifier)
        self._initializing = plugin
        try:
            plugin.initialize(self.api)
        except PluginLoadError:
            raise
        except Exception as exc:
            raise PluginLoadError(f"Plugin initializer raised: {exc}", str(plugin.path)) from exc
        finally:
            self._initializing = None

    def get_plugin(self, identifier: str) -> Plugin:
        plugin = self.plugins.get(identifier)
        if plugin is None:
            raise PluginNotFoundError(identifier, "plugin")
        return plugin

    def get_plugin_for_platform(self, name: str) -> Plugin:
        plugin = self.platform_to_plugin.get(_unqualified(name))
        if plugin is None:
            raise PluginNotFoundError(name, "platform")
        return plugin

    def get_plugin_for_accessory(self, name: str) -> Plugin:
        plugin = self.accessory_to_plugin.get(_unqualified(name))
        if plugin is None:
            raise PluginNotFoundError(name, "accessory")
        return plugin

    def _handle_register_platform(self, name: str, constructor: Callable[..., Any]) -> None:
        plugin = self._require_initializing("platform", name)
        plugin.register_platform(name, constructor)
        self.platform_to_plugin.setdefault(_unqualified(name), plugin)

    def _handle_register_accessory(self, name: str, constructor: Callable[..., Any]) -> None:
        plugin = self._require_initializing("accessory", name)
        plugin.register_accessory(name, constructor)
        self.accessory_to_plugin.setdefault(_unqualified(name), plugin)

    def _require_initializing(self, kind: str, name: str) -> Plugin:
        if self._initializing is None:
            raise RuntimeError(f"Cannot register {kind} '{name}' outside of a plugin initializer.")
        return self._initializing

    def _read_identifier(self, metadata_file: Path) -> Optional[str]:
        if not metadata_file.exists():
            return None
        try:
            payload = yaml.safe_load(metadata_file.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise PluginLoadError(f"Invalid {PLUGIN_METADATA_FILE}: {exc}", str(metadata_file)) from exc
        name = payload.get("name") if isinstance(payload, dict) else None
        return str(name) if name else None
