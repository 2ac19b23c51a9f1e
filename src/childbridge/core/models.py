from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Key the parent adds to plugin configs for its own bookkeeping.
RESERVED_CONFIG_KEY = "_bridge"


class PluginKind(str, Enum):
    """The two kinds of extension a child bridge can host."""

    PLATFORM = "platform"
    ACCESSORY = "accessory"


class ChildBridgeSettings(BaseSettings):
    """
    Process-level settings for the child bridge (the 'childbridge' section of the settings file).
    """
    model_config = SettingsConfigDict(env_prefix='CHILDBRIDGE_', extra='ignore')

    grace_period_seconds: float = Field(default=5.0, gt=0)
    liveness_interval_seconds: float = Field(default=5.0, gt=0)
    process_title_prefix: str = "childbridge"
    storage_path: Path = Field(default_factory=lambda: Path.home() / ".childbridge")


class BridgeOptions(BaseModel):
    """
    Runtime options inherited from the parent bridge.
    """
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    no_log_timestamps: bool = Field(default=False, alias="noLogTimestamps")
    debug_mode_enabled: bool = Field(default=False, alias="debugModeEnabled")
    force_colour_logging: bool = Field(default=False, alias="forceColourLogging")
    custom_storage_path: Optional[str] = Field(default=None, alias="customStoragePath")


class BridgeConfiguration(BaseModel):
    """
    Identity of the bridge this child publishes.
    """
    model_config = ConfigDict(extra='allow', populate_by_name=True)

    name: str
    username: str
    port: Optional[int] = Field(default=None, ge=0, le=65535)
    pin: str = "031-45-154"
    setup_id: Optional[str] = Field(default=None, alias="setupID")
    manufacturer: Optional[str] = None
    model: Optional[str] = None


class HostConfig(BaseModel):
    """
    Global host configuration shared by the parent with every child.
    """
    model_config = ConfigDict(extra='allow')

    bridge: Dict[str, Any] = Field(default_factory=dict)
    platforms: List[Dict[str, Any]] = Field(default_factory=list)
    accessories: List[Dict[str, Any]] = Field(default_factory=list)


class LoadDescriptor(BaseModel):
    """
    Payload of the LOAD command.
    """
    model_config = ConfigDict(extra='ignore', populate_by_name=True)

    type: PluginKind
    identifier: str = Field(..., min_length=1)
    plugin_path: str = Field(..., alias="pluginPath")
    plugin_config: Dict[str, Any] = Field(default_factory=dict, alias="pluginConfig")
    bridge_config: BridgeConfiguration = Field(..., alias="bridgeConfig")
    bridge_options: BridgeOptions = Field(default_factory=BridgeOptions, alias="bridgeOptions")
    host_config: HostConfig = Field(default_factory=HostConfig, alias="hostConfig")

    @model_validator(mode='before')
    @classmethod
    def accept_legacy_host_key(cls, data: Any) -> Any:
        if isinstance(data, dict) and "homebridgeConfig" in data and "hostConfig" not in data:
            data = dict(data)
            data["hostConfig"] = data.pop("homebridgeConfig")
        return data
