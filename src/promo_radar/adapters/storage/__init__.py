"""Key/value storage adapters."""

from promo_radar.adapters.storage.memory_store import MemoryStore
from promo_radar.adapters.storage.yaml_store import YamlFileStore

__all__ = ["MemoryStore", "YamlFileStore"]
