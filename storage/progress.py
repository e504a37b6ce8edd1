from __future__ import annotations

"""Progress stores: string key-value slots holding serialised ProgressRecords.

Any medium satisfying ``get`` / ``set`` / ``remove`` will do; a directory of
JSON files and an in-memory dict are provided.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Optional, Protocol

from pydantic import ValidationError

from .schema import ProgressRecord

logger = logging.getLogger(__name__)


class ProgressStore(Protocol):
    def get(self, key: str) -> Optional[str]:
        ...

    def set(self, key: str, value: str) -> None:
        ...

    def remove(self, key: str) -> None:
        ...


class MemoryProgressStore:
    def __init__(self) -> None:
        self._data: Dict[str, str] = {}

    def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove(self, key: str) -> None:
        self._data.pop(key, None)


class FileProgressStore:
    """One ``<key>.json`` file per slot under ``data_dir``."""

    def __init__(self, data_dir: str | Path) -> None:
        self.data_dir = Path(data_dir)

    def _path(self, key: str) -> Path:
        return self.data_dir / f"{key}.json"

    def get(self, key: str) -> Optional[str]:
        p = self._path(key)
        if not p.exists():
            return None
        return p.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        self.data_dir.mkdir(parents=True, exist_ok=True)
        p = self._path(key)
        tmp = p.with_suffix(".json.tmp")
        tmp.write_text(value, encoding="utf-8")
        os.replace(tmp, p)

    def remove(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)


def load_record(store: ProgressStore, key: str) -> Optional[ProgressRecord]:
    """Read and validate a slot; malformed content counts as absent."""
    try:
        raw = store.get(key)
    except UnicodeDecodeError as exc:
        logger.warning("Discarding unreadable progress record in %r: %s", key, exc.reason)
        return None
    if raw is None:
        return None
    try:
        return ProgressRecord.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Discarding malformed progress record in %r: %s", key, exc.errors()[0].get("msg"))
        return None


def save_record(store: ProgressStore, key: str, record: ProgressRecord) -> None:
    store.set(key, record.model_dump_json(exclude_none=True))


def clear_record(store: ProgressStore, key: str) -> None:
    store.remove(key)
