"""Key/value store persisted as a single YAML document."""

import os
import tempfile
from pathlib import Path
from typing import Any, Iterable

import yaml

from promo_radar.core.interfaces import KeyValueStore


class YamlFileStore(KeyValueStore):
    """Persist state to one YAML mapping, rewritten on every change.

    A missing, unreadable or non-mapping file reads as empty: losing dedup
    state means at worst one round of repeated notifications.
    """

    def __init__(self, path: Path) -> None:
        self.path = path
        self._data = self._load()

    def _load(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            print(f"⚠️  Warning: could not read state file {self.path}: {e}")
            return {}

        if data is None:
            return {}
        if not isinstance(data, dict):
            print(f"⚠️  Warning: state file {self.path} is not a mapping, starting empty")
            return {}
        return data

    def _save(self, data: dict[str, Any]) -> None:
        """Write atomically through a temp file in the same directory.

        Values YAML cannot represent raise ``yaml.YAMLError``; the temp file is
        removed and neither the file nor the in-memory state changes.
        """
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, suffix=".tmp")
        except OSError as e:
            print(f"⚠️  Warning: could not save state file {self.path}: {e}")
            return

        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(
                    data, f, allow_unicode=True, default_flow_style=False, sort_keys=True
                )
            os.replace(tmp_name, self.path)
        except OSError as e:
            self._discard(tmp_name)
            print(f"⚠️  Warning: could not save state file {self.path}: {e}")
        except yaml.YAMLError:
            self._discard(tmp_name)
            raise

    @staticmethod
    def _discard(tmp_name: str) -> None:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass

    def _commit(self, data: dict[str, Any]) -> None:
        self._save(data)
        self._data = data

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._commit({**self._data, key: value})

    def set_many(self, values: dict[str, Any]) -> None:
        self._commit({**self._data, **values})

    def delete(self, key: str) -> None:
        if key in self._data:
            self._commit({k: v for k, v in self._data.items() if k != key})

    def delete_many(self, keys: Iterable[str]) -> None:
        doomed = set(keys) & set(self._data)
        if doomed:
            self._commit({k: v for k, v in self._data.items() if k not in doomed})
