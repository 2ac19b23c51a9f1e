from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional


@dataclass(frozen=True)
class StoragePaths:
    """Filesystem layout used by the bridge runtime for persisted state."""

    root: Path

    @classmethod
    def resolve(cls, default_root: Path, custom_path: Optional[str] = None) -> "StoragePaths":
        """Pick the custom storage path when the parent supplied one, else the default."""
        root = Path(custom_path) if custom_path else default_root
        return cls(root=root.expanduser().resolve())

    @property
    def persist_path(self) -> Path:
        return self.root / "persist"

    @property
    def cached_accessories_path(self) -> Path:
        return self.root / "accessories"

    def cached_accessories_file(self, bridge_username: str) -> Path:
        """Return the cache file for a bridge, keyed by its username without separators."""
        return self.cached_accessories_path / f"cachedAccessories.{bridge_username.replace(':', '').upper()}"

    def ensure(self) -> None:
        self.persist_path.mkdir(parents=True, exist_ok=True)
        self.cached_accessories_path.mkdir(parents=True, exist_ok=True)
