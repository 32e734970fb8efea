from __future__ import annotations

import json
import logging
import os
import shutil
import time
from hashlib import sha1
from pathlib import Path
from typing import Any, Dict, Optional

from daysim.domain.repositories import CatalogCache


logger = logging.getLogger(__name__)

DEFAULT_CONTENT_DATA_VERSION = "1"
_MANIFEST_FILENAME = "manifest.json"


def _write_json_atomic(path: Path, payload: Dict[str, Any]) -> None:
    tmp_path = path.with_suffix(".tmp")
    tmp_path.write_text(json.dumps(payload, ensure_ascii=False), encoding="utf-8")
    os.replace(tmp_path, path)


def _read_json(path: Path) -> Optional[Dict[str, Any]]:
    if not path.exists():
        return None
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.warning("Unreadable content cache file %s", path.name)
        return None
    return payload if isinstance(payload, dict) else None


class FileContentCache(CatalogCache):
    """JSON-file catalog cache, wiped whenever the content data version changes."""

    def __init__(self, root_dir: str | Path, *, data_version: str | None = None) -> None:
        self.root_dir = Path(root_dir)
        configured = str(data_version or os.getenv("DAYSIM_CONTENT_DATA_VERSION", DEFAULT_CONTENT_DATA_VERSION)).strip()
        self.data_version = configured or DEFAULT_CONTENT_DATA_VERSION
        self._manifest_path = self.root_dir / _MANIFEST_FILENAME
        self._ensure_data_version()

    def _ensure_data_version(self) -> None:
        manifest = _read_json(self._manifest_path)
        current = str((manifest or {}).get("data_version", "")).strip() or None
        if current == self.data_version:
            return
        if self.root_dir.exists():
            logger.info("Content data version changed; clearing cache", extra={"data_version": self.data_version})
            shutil.rmtree(self.root_dir, ignore_errors=True)
        self.root_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(self._manifest_path, {"data_version": self.data_version, "updated_at": int(time.time())})

    def _path_for_key(self, cache_key: str) -> Path:
        return self.root_dir / f"{sha1(cache_key.encode('utf-8')).hexdigest()}.json"

    def set(self, cache_key: str, payload: Dict[str, Any]) -> None:
        _write_json_atomic(self._path_for_key(cache_key), {"stored_at": int(time.time()), "payload": payload})

    def get(
        self,
        cache_key: str,
        *,
        ttl_seconds: Optional[int],
        allow_stale: bool = False,
    ) -> Optional[Dict[str, Any]]:
        envelope = _read_json(self._path_for_key(cache_key))
        if envelope is None:
            return None
        payload = envelope.get("payload")
        if not isinstance(payload, dict):
            return None
        if allow_stale or ttl_seconds is None:
            return payload
        try:
            age_seconds = int(time.time()) - int(envelope.get("stored_at"))
        except (TypeError, ValueError):
            return None
        if age_seconds <= max(0, int(ttl_seconds)):
            return payload
        return None


class InMemoryCatalogCache(CatalogCache):
    def __init__(self, clock=time.time) -> None:
        self._clock = clock
        self._entries: Dict[str, tuple[float, Dict[str, Any]]] = {}

    def set(self, cache_key: str, payload: Dict[str, Any]) -> None:
        self._entries[cache_key] = (self._clock(), dict(payload))

    def get(
        self,
        cache_key: str,
        *,
        ttl_seconds: Optional[int],
        allow_stale: bool = False,
    ) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(cache_key)
        if entry is None:
            return None
        stored_at, payload = entry
        if allow_stale or ttl_seconds is None:
            return dict(payload)
        if self._clock() - stored_at <= max(0, int(ttl_seconds)):
            return dict(payload)
        return None
