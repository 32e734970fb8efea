import json
import sys
import tempfile
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.infrastructure.content_cache import FileContentCache, InMemoryCatalogCache


class _Clock:
    def __init__(self, now: float = 1000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


class FileContentCacheTests(unittest.TestCase):
    def test_writes_manifest_with_version(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = FileContentCache(tmp, data_version="1.2.3")
            manifest = json.loads((Path(tmp) / "manifest.json").read_text(encoding="utf-8"))
            self.assertEqual("1.2.3", manifest.get("data_version"))
            cache.set("storyletCatalog:v1:0", {"stamp": "a", "rows": []})
            self.assertEqual({"stamp": "a", "rows": []}, cache.get("storyletCatalog:v1:0", ttl_seconds=3600))

    def test_version_mismatch_invalidates_existing_entries(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            FileContentCache(tmp, data_version="1").set("storyletCatalog:v1:0", {"stamp": "old"})

            second = FileContentCache(tmp, data_version="2")
            self.assertIsNone(second.get("storyletCatalog:v1:0", ttl_seconds=None, allow_stale=True))

    def test_expired_entry_is_only_returned_when_stale_is_allowed(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = FileContentCache(tmp, data_version="1")
            cache.set("storyletCatalog:v1:global", {"stamp": "a"})

            path = cache._path_for_key("storyletCatalog:v1:global")
            envelope = json.loads(path.read_text(encoding="utf-8"))
            envelope["stored_at"] = 0
            path.write_text(json.dumps(envelope), encoding="utf-8")

            self.assertIsNone(cache.get("storyletCatalog:v1:global", ttl_seconds=60))
            self.assertEqual({"stamp": "a"}, cache.get("storyletCatalog:v1:global", ttl_seconds=60, allow_stale=True))

    def test_corrupt_file_reads_as_missing(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            cache = FileContentCache(tmp, data_version="1")
            cache._path_for_key("broken").write_text("{not json", encoding="utf-8")
            self.assertIsNone(cache.get("broken", ttl_seconds=None))


class InMemoryCatalogCacheTests(unittest.TestCase):
    def test_ttl_uses_injected_clock(self) -> None:
        clock = _Clock()
        cache = InMemoryCatalogCache(clock=clock)
        cache.set("key", {"rows": [1]})

        clock.now += 60
        self.assertEqual({"rows": [1]}, cache.get("key", ttl_seconds=60))
        clock.now += 1
        self.assertIsNone(cache.get("key", ttl_seconds=60))
        self.assertEqual({"rows": [1]}, cache.get("key", ttl_seconds=60, allow_stale=True))


if __name__ == "__main__":
    unittest.main()
