from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import List, Optional

from pydantic import TypeAdapter, ValidationError

from childbridge.bridge.accessory import PlatformAccessory
from childbridge.utils.logger import PluginLogger, get_internal_logger

_ACCESSORY_LIST = TypeAdapter(List[PlatformAccessory])


class AccessoryCache:
    """JSON file holding accessories registered by dynamic platforms."""

    def __init__(self, cache_file: Path, logger: Optional[PluginLogger] = None) -> None:
        self.cache_file = cache_file
        self.logger = logger or get_internal_logger()

    async def load(self) -> List[PlatformAccessory]:
        """Read cached accessories; a missing or unreadable cache yields an empty list."""
        if not self.cache_file.exists():
            return []

        try:
            content = await asyncio.to_thread(self.cache_file.read_text, encoding="utf-8")
            accessories = _ACCESSORY_LIST.validate_python(json.loads(content))
        except (OSError, json.JSONDecodeError, ValidationError) as exc:
            self.logger.warning("Failed to load cached accessories from disk: %s", exc)
            return []

        self.logger.debug("Loaded %s cached accessories from %s", len(accessories), self.cache_file)
        return accessories

    def save(self, accessories: List[PlatformAccessory]) -> None:
        """Persist accessories; an empty list removes the cache file."""
        if not accessories:
            if self.cache_file.exists():
                self.cache_file.unlink()
            return

        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        payload = _ACCESSORY_LIST.dump_json(accessories, indent=2).decode("utf-8")
        self.cache_file.write_text(payload, encoding="utf-8")
