"""Stable string hashing used wherever the engine needs a repeatable roll.

Nothing here touches ``random`` or the clock: the same seed string yields the
same value on every process and platform, which is what makes past turns
replayable.
"""
from __future__ import annotations

from typing import Iterator


FNV_OFFSET_BASIS = 2166136261
FNV_PRIME = 16777619
_UINT32_MASK = 0xFFFFFFFF
_UINT32_RANGE = 2**32


def _code_units(value: str) -> Iterator[int]:
    # UTF-16 code units, so astral characters hash as surrogate pairs.
    encoded = value.encode("utf-16-le", "surrogatepass")
    for index in range(0, len(encoded), 2):
        yield encoded[index] | (encoded[index + 1] << 8)


def fnv1a_32(value: str) -> int:
    digest = FNV_OFFSET_BASIS
    for unit in _code_units(value):
        digest ^= unit
        digest = (digest * FNV_PRIME) & _UINT32_MASK
    return digest


def hash_to_unit_float(seed: str) -> float:
    """Map ``seed`` to a float in [0, 1)."""
    return fnv1a_32(seed) / _UINT32_RANGE


def hash_string(value: str) -> int:
    digest = 0
    for unit in _code_units(value):
        digest = (digest * 31 + unit) & _UINT32_MASK
    return digest


def build_seed(user_id: str, day_index: int, *context: object) -> str:
    parts = [str(user_id), str(int(day_index))]
    parts.extend(str(part) for part in context)
    return ":".join(parts)


def in_rollout(user_id: str, key: str, pct: float) -> bool:
    if pct <= 0:
        return False
    if pct >= 100:
        return True
    digest = fnv1a_32(f"{user_id}:{key}")
    signed = digest - _UINT32_RANGE if digest >= 2**31 else digest
    return abs(signed) % 100 < pct
