from __future__ import annotations

import logging
import os
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional

import httpx


logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = frozenset({408, 425, 429, 500, 502, 503, 504})


class CircuitOpenError(RuntimeError):
    pass


@dataclass(frozen=True)
class CircuitSettings:
    enabled: bool = True
    failure_threshold: int = 3
    reset_seconds: float = 120.0

    @classmethod
    def from_env(cls) -> "CircuitSettings":
        enabled = os.getenv("DAYSIM_HTTP_CIRCUIT_BREAKER_ENABLED", "1").strip().lower() in {"1", "true", "yes"}
        return cls(
            enabled=enabled,
            failure_threshold=max(1, int(os.getenv("DAYSIM_HTTP_CIRCUIT_FAILURE_THRESHOLD", "3"))),
            reset_seconds=max(0.0, float(os.getenv("DAYSIM_HTTP_CIRCUIT_RESET_SECONDS", "120"))),
        )


@dataclass
class _Circuit:
    """Failure count for one content host; open until ``open_until``."""

    failures: int = 0
    open_until: float = 0.0

    def guard(self, host: str, now: float) -> None:
        if self.open_until > now:
            raise CircuitOpenError(f"Content circuit open for {host} until {int(self.open_until)}")
        if self.open_until > 0:
            # half-open: let one attempt through with a clean count
            self.failures = 0
            self.open_until = 0.0

    def record_failure(self, host: str, settings: CircuitSettings, now: float) -> None:
        self.failures += 1
        if self.failures >= settings.failure_threshold:
            self.open_until = now + settings.reset_seconds
            logger.warning("Content circuit opened", extra={"circuit": host, "failures": self.failures})


_CIRCUITS: Dict[str, _Circuit] = {}


def reset_circuit_breakers() -> None:
    _CIRCUITS.clear()


def is_retryable(exc: Exception) -> bool:
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_STATUS_CODES
    return isinstance(exc, (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError))


def _fetch_json(client: httpx.Client, path: str, params: Optional[Dict[str, Any]]) -> Any:
    response = client.get(path, params=params)
    response.raise_for_status()
    return response.json()


def get_json_with_retry(
    client: httpx.Client,
    path: str,
    *,
    params: Optional[Dict[str, Any]] = None,
    retries: int = 0,
    backoff_seconds: float = 0.2,
) -> Any:
    """GET ``path`` and decode JSON, retrying transient failures with backoff.

    Repeated transient failures against one base URL open a circuit that
    fails fast until the reset window passes.
    """
    settings = CircuitSettings.from_env()
    host = str(client.base_url or "unknown")
    circuit = _CIRCUITS.setdefault(host, _Circuit()) if settings.enabled else None
    last_attempt = max(0, int(retries))

    attempt = 0
    while True:
        try:
            if circuit is not None:
                circuit.guard(host, time.time())
            payload = _fetch_json(client, path, params)
        except Exception as exc:
            transient = is_retryable(exc)
            if transient and circuit is not None:
                circuit.record_failure(host, settings, time.time())
            if not transient or attempt >= last_attempt:
                raise
            delay = max(0.0, backoff_seconds) * (2 ** attempt)
            logger.debug("Retrying content request", extra={"path": path, "attempt": attempt + 1, "delay": delay})
            if delay > 0:
                time.sleep(delay)
            attempt += 1
            continue
        if circuit is not None:
            circuit.failures = 0
        return payload
