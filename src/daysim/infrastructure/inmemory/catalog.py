from __future__ import annotations

import copy
from typing import Any, Dict, Iterable, List, Optional

from daysim.application.services.storylet_validation import load_storylets
from daysim.domain.models.storylet import Storylet
from daysim.domain.repositories import StoryletCatalogProvider, StoryletRowSource
from daysim.infrastructure.inmemory.sample_content import SAMPLE_CONTENT_STAMP, SAMPLE_STORYLET_ROWS


class InMemoryStoryletCatalog(StoryletCatalogProvider, StoryletRowSource):
    """Raw storylet rows held in memory; doubles as a row source for the cached loader."""

    def __init__(self, rows: Optional[Iterable[Dict[str, Any]]] = None, stamp: str = SAMPLE_CONTENT_STAMP) -> None:
        self._rows: List[Dict[str, Any]] = [copy.deepcopy(row) for row in (SAMPLE_STORYLET_ROWS if rows is None else rows)]
        self._stamp = stamp
        self.fetch_count = 0

    def publish(self, rows: Iterable[Dict[str, Any]], stamp: str) -> None:
        self._rows = [copy.deepcopy(row) for row in rows]
        self._stamp = stamp

    def fetch_stamp(self) -> Optional[str]:
        return self._stamp

    def fetch_storylet_rows(self, season_index: Optional[int] = None) -> List[Dict[str, Any]]:
        self.fetch_count += 1
        return copy.deepcopy(self._rows)

    def list_storylets(self, season_index: Optional[int] = None) -> List[Storylet]:
        return load_storylets(self._rows)

    def content_stamp(self) -> Optional[str]:
        return self._stamp
