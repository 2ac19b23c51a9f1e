"""Public surface for plugin authors hosted by a child bridge."""

__version__ = "1.0.0"

from childbridge.bridge.accessory import AccessoryService, PlatformAccessory, generate_uuid
from childbridge.core.models import PluginKind
from childbridge.plugins.api import (
	APIEvent,
	BridgeAPI,
	is_dynamic_platform,
	is_static_platform,
)
from childbridge.utils.logger import PluginLogger

__all__ = [
	"__version__",
	"APIEvent",
	"AccessoryService",
	"BridgeAPI",
	"PlatformAccessory",
	"PluginKind",
	"PluginLogger",
	"generate_uuid",
	"is_dynamic_platform",
	"is_static_platform",
]
