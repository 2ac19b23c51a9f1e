from typing import Optional
from pydantic import BaseModel

class BridgeDiagnostic(BaseModel):
    """
    Standardized report for a plugin or accessory that was skipped during start.
    """
    plugin: str
    error_code: str
    message: str
    severity: str = "warning" # 'warning', 'error'
    identifier: Optional[str] = None

    def __str__(self) -> str:
        loc = self.plugin
        if self.identifier:
            loc += f":{self.identifier}"
        return f"[{self.error_code}] {self.message} (in {loc})"

class ChildBridgeError(Exception):
    """Base class for errors raised by the child bridge runtime."""

class PluginLoadError(ChildBridgeError):
    """
    Raised when a plugin cannot be resolved, imported or initialized.
    The host treats this as fatal and exits the process.
    """
    def __init__(self, message: str, plugin_path: str = None):
        self.message = message
        self.plugin_path = plugin_path
        ctx = f" from '{plugin_path}'" if plugin_path else ""
        super().__init__(f"Plugin Load Error{ctx}: {message}")

class PluginNotFoundError(ChildBridgeError, KeyError):
    """Raised when no loaded plugin registered the requested platform or accessory."""
    def __init__(self, identifier: str, kind: str):
        self.identifier = identifier
        self.kind = kind
        super().__init__(f"No plugin registered the {kind} '{identifier}'.")

    def __str__(self) -> str:
        return self.args[0]
