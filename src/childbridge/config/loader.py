import os
import re
import yaml
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import ValidationError

from childbridge.core.models import ChildBridgeSettings

ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+)(?::([^}]+))?\}")

def interpolate_env_vars(content: str) -> str:
    """Replace ${VAR} or ${VAR:default} with environment variables."""
    def replace_match(match: re.Match) -> str:
        var_name = match.group(1)
        default_value = match.group(2) if match.group(2) is not None else ""
        return os.environ.get(var_name, default_value)

    return ENV_VAR_PATTERN.sub(replace_match, content)

def load_config(path: Path) -> Dict[str, Any]:
    """
    Load a childbridge.yaml settings file with environment variable interpolation.

    Only the 'childbridge' section is kept. A missing file yields an empty dict;
    unreadable YAML raises ValueError so the CLI can report it.
    """
    if not path.exists():
        return {}

    try:
        content = path.read_text()
        interpolated_content = interpolate_env_vars(content)
        full_config = yaml.safe_load(interpolated_content) or {}
    except (OSError, yaml.YAMLError) as exc:
        raise ValueError(f"Could not read settings file '{path}': {exc}") from exc

    if not isinstance(full_config, dict):
        raise ValueError(f"Settings file '{path}' must contain a mapping.")

    section = full_config.get("childbridge") or {}
    if not isinstance(section, dict):
        raise ValueError(f"The 'childbridge' section in '{path}' must be a mapping.")
    return section

def load_settings(path: Optional[Path] = None, **overrides: Any) -> ChildBridgeSettings:
    """
    Build ChildBridgeSettings from an optional settings file, environment and explicit overrides.

    Explicit overrides win over the file, and the file wins over CHILDBRIDGE_* environment values.
    """
    data: Dict[str, Any] = load_config(path) if path is not None else {}
    data.update({key: value for key, value in overrides.items() if value is not None})

    try:
        return ChildBridgeSettings(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid childbridge settings: {exc}") from exc
