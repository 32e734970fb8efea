import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.seed_policy import (
    FNV_OFFSET_BASIS,
    build_seed,
    fnv1a_32,
    hash_string,
    hash_to_unit_float,
    in_rollout,
)


class SeedPolicyTests(unittest.TestCase):
    def test_empty_string_hashes_to_offset_basis(self) -> None:
        self.assertEqual(FNV_OFFSET_BASIS, fnv1a_32(""))
        self.assertEqual(FNV_OFFSET_BASIS / 2**32, hash_to_unit_float(""))

    def test_known_fnv1a_vector(self) -> None:
        self.assertEqual(0xE40C292C, fnv1a_32("a"))
        self.assertEqual(0xE40C292C / 2**32, hash_to_unit_float("a"))

    def test_unit_float_is_in_range_and_repeatable(self) -> None:
        for seed in ("u:1:s:c", "player-7:12:storylets", "été", "\U0001f600"):
            value = hash_to_unit_float(seed)
            self.assertGreaterEqual(value, 0.0)
            self.assertLess(value, 1.0)
            self.assertEqual(value, hash_to_unit_float(seed))

    def test_astral_characters_hash_as_surrogate_pairs(self) -> None:
        digest = FNV_OFFSET_BASIS
        for unit in (0xD83D, 0xDE00):
            digest = ((digest ^ unit) * 16777619) & 0xFFFFFFFF
        self.assertEqual(digest, fnv1a_32("\U0001f600"))

    def test_hash_string_is_polynomial_rolling_hash(self) -> None:
        self.assertEqual(0, hash_string(""))
        self.assertEqual(97 * 31 + 98, hash_string("ab"))

    def test_build_seed_joins_context_with_colons(self) -> None:
        self.assertEqual("u1:4:storylets", build_seed("u1", 4, "storylets"))
        self.assertEqual("u1:4", build_seed("u1", 4))

    def test_rollout_bounds(self) -> None:
        self.assertFalse(in_rollout("u1", "s-beta", 0))
        self.assertTrue(in_rollout("u1", "s-beta", 100))

    def test_rollout_bucket_is_stable_and_monotonic(self) -> None:
        enrolled = [pct for pct in range(1, 100) if in_rollout("u1", "s-beta", pct)]
        self.assertTrue(enrolled)
        self.assertEqual(list(range(enrolled[0], 100)), enrolled)


if __name__ == "__main__":
    unittest.main()
