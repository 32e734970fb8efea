from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx

from daysim.domain.repositories import StoryletRowSource
from daysim.infrastructure.resilient_http import get_json_with_retry


class ContentServiceClient(StoryletRowSource):
    """Reads published storylet content from the content service."""

    STAMP_PATH = "/content/stamp"
    STORYLETS_PATH = "/content/storylets"

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        retries: int = 2,
        backoff_seconds: float = 0.2,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._retries = retries
        self._backoff_seconds = backoff_seconds
        self.client = http_client or httpx.Client(
            base_url=base_url,
            timeout=timeout,
            headers={"Accept": "application/json"},
        )

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return get_json_with_retry(
            self.client,
            path,
            params=params,
            retries=self._retries,
            backoff_seconds=self._backoff_seconds,
        )

    def fetch_stamp(self) -> Optional[str]:
        payload = self._get(self.STAMP_PATH)
        if not isinstance(payload, dict):
            return None
        stamp = payload.get("stamp")
        return str(stamp) if stamp else None

    def fetch_storylet_rows(self, season_index: Optional[int] = None) -> List[Dict[str, Any]]:
        params = {"season": int(season_index)} if season_index is not None else None
        payload = self._get(self.STORYLETS_PATH, params)
        rows = payload.get("storylets") if isinstance(payload, dict) else payload
        if not isinstance(rows, list):
            raise ValueError("Content service returned no storylet list")
        return [row for row in rows if isinstance(row, dict)]

    def close(self) -> None:
        self.client.close()
