from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from daysim.application.services.storylet_validation import load_storylets
from daysim.domain.models.storylet import Storylet
from daysim.domain.repositories import CatalogCache, StoryletCatalogProvider, StoryletRowSource


logger = logging.getLogger(__name__)

CATALOG_CACHE_VERSION = "v1"
DEFAULT_CATALOG_TTL_SECONDS = 600


def catalog_cache_key(season_index: Optional[int]) -> str:
    scope = "global" if season_index is None else str(int(season_index))
    return f"storyletCatalog:{CATALOG_CACHE_VERSION}:{scope}"


class StampedCatalogLoader(StoryletCatalogProvider):
    """Storylet catalog backed by a row source and a stamp-validated cache.

    A cached catalog younger than the TTL is served as-is. Past the TTL the
    source's content stamp is checked first, and the full catalog is only
    refetched when the stamp moved. If the source fails, any stale copy is
    served instead.
    """

    def __init__(
        self,
        source: StoryletRowSource,
        cache: CatalogCache,
        *,
        ttl_seconds: int = DEFAULT_CATALOG_TTL_SECONDS,
    ) -> None:
        self.source = source
        self.cache = cache
        self.ttl_seconds = int(ttl_seconds)

    def _read_stale(self, cache_key: str) -> Optional[Dict[str, Any]]:
        return self.cache.get(cache_key, ttl_seconds=None, allow_stale=True)

    def _write(self, cache_key: str, payload: Dict[str, Any]) -> None:
        try:
            self.cache.set(cache_key, payload)
        except OSError:
            logger.warning("Could not write storylet catalog cache", extra={"cache_key": cache_key})

    def load_rows(self, season_index: Optional[int] = None) -> List[Dict[str, Any]]:
        cache_key = catalog_cache_key(season_index)
        cached = self.cache.get(cache_key, ttl_seconds=self.ttl_seconds)
        if cached is not None:
            return list(cached.get("rows") or [])

        try:
            stamp = self.source.fetch_stamp()
            stale = self._read_stale(cache_key)
            if stale is not None and stamp and stale.get("stamp") == stamp:
                self._write(cache_key, stale)
                return list(stale.get("rows") or [])
            rows = self.source.fetch_storylet_rows(season_index)
        except Exception:
            stale = self._read_stale(cache_key)
            if stale is None:
                raise
            logger.warning("Storylet source unavailable; serving stale catalog", extra={"cache_key": cache_key})
            return list(stale.get("rows") or [])

        self._write(cache_key, {"stamp": stamp, "rows": rows})
        return list(rows)

    def load(self, season_index: Optional[int] = None) -> List[Storylet]:
        return load_storylets(self.load_rows(season_index))

    def list_storylets(self, season_index: Optional[int] = None) -> List[Storylet]:
        return self.load(season_index)

    def content_stamp(self) -> Optional[str]:
        return self.source.fetch_stamp()
