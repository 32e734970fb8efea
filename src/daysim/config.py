from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_CONTENT_CACHE_DIR = ".daysim_cache/content"


def _is_truthy(value: str | None, *, default: str) -> bool:
    normalized = str(value if value is not None else default).strip().lower()
    return normalized in {"1", "true", "yes"}


@dataclass(frozen=True)
class EngineSettings:
    database_url: Optional[str] = None
    progression_slots: int = 2
    hesitation_divisor: int = 2
    hesitation_max_bump: int = 3
    resource_trace: bool = False
    content_base_url: Optional[str] = None
    content_timeout_s: float = 10.0
    content_retries: int = 2
    content_backoff_s: float = 0.2
    content_cache_dir: str = DEFAULT_CONTENT_CACHE_DIR
    content_cache_ttl_s: int = 600
    content_data_version: Optional[str] = None
    season_index: int = 0
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "EngineSettings":
        return cls(
            database_url=os.getenv("DAYSIM_DATABASE_URL") or None,
            progression_slots=max(0, int(os.getenv("DAYSIM_PROGRESSION_SLOTS", "2"))),
            hesitation_divisor=max(1, int(os.getenv("DAYSIM_HESITATION_DIVISOR", "2"))),
            hesitation_max_bump=max(0, int(os.getenv("DAYSIM_HESITATION_MAX_BUMP", "3"))),
            resource_trace=_is_truthy(os.getenv("DAYSIM_RESOURCE_TRACE"), default="0"),
            content_base_url=os.getenv("DAYSIM_CONTENT_BASE_URL") or None,
            content_timeout_s=float(os.getenv("DAYSIM_CONTENT_TIMEOUT_S", "10")),
            content_retries=int(os.getenv("DAYSIM_CONTENT_RETRIES", "2")),
            content_backoff_s=float(os.getenv("DAYSIM_CONTENT_BACKOFF_S", "0.2")),
            content_cache_dir=os.getenv("DAYSIM_CONTENT_CACHE_DIR", DEFAULT_CONTENT_CACHE_DIR),
            content_cache_ttl_s=int(os.getenv("DAYSIM_CONTENT_CACHE_TTL_S", "600")),
            content_data_version=os.getenv("DAYSIM_CONTENT_DATA_VERSION") or None,
            season_index=int(os.getenv("DAYSIM_SEASON_INDEX", "0")),
            log_level=os.getenv("DAYSIM_LOG_LEVEL", "WARNING").strip().upper() or "WARNING",
        )
