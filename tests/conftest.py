import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


@pytest.fixture(autouse=True)
def disable_sleep(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr("time.sleep", lambda *_args, **_kwargs: None)


@pytest.fixture(autouse=True)
def clean_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for key in ("DAYSIM_DATABASE_URL", "DAYSIM_CONTENT_BASE_URL", "DAYSIM_RESOURCE_TRACE"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture(autouse=True)
def reset_http_circuits():
    from daysim.infrastructure.resilient_http import reset_circuit_breakers

    reset_circuit_breakers()
    yield
    reset_circuit_breakers()
