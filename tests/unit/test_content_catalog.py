import sys
from pathlib import Path
import unittest

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.application.services.content_catalog import StampedCatalogLoader, catalog_cache_key
from daysim.infrastructure.content_cache import InMemoryCatalogCache
from daysim.infrastructure.inmemory.catalog import InMemoryStoryletCatalog
from daysim.infrastructure.inmemory.sample_content import SAMPLE_STORYLET_ROWS


class _Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


class _FailingSource(InMemoryStoryletCatalog):
    def __init__(self) -> None:
        super().__init__()
        self.failing = False

    def fetch_stamp(self):
        if self.failing:
            raise ConnectionError("content service down")
        return super().fetch_stamp()


class StampedCatalogLoaderTests(unittest.TestCase):
    def setUp(self) -> None:
        self.clock = _Clock()
        self.cache = InMemoryCatalogCache(clock=self.clock)

    def test_cache_key_is_scoped_by_season(self) -> None:
        self.assertEqual("storyletCatalog:v1:global", catalog_cache_key(None))
        self.assertEqual("storyletCatalog:v1:3", catalog_cache_key(3))

    def test_fresh_cache_is_served_without_touching_source(self) -> None:
        source = InMemoryStoryletCatalog(stamp="v1")
        loader = StampedCatalogLoader(source, self.cache, ttl_seconds=60)

        first = loader.load()
        self.clock.now = 30
        second = loader.load()

        self.assertEqual(1, source.fetch_count)
        self.assertEqual([s.id for s in first], [s.id for s in second])
        self.assertEqual(len(SAMPLE_STORYLET_ROWS), len(loader.load_rows()))

    def test_unchanged_stamp_after_ttl_skips_refetch(self) -> None:
        source = InMemoryStoryletCatalog(stamp="v1")
        loader = StampedCatalogLoader(source, self.cache, ttl_seconds=60)
        loader.load_rows()

        self.clock.now = 500
        loader.load_rows()

        self.assertEqual(1, source.fetch_count)

    def test_changed_stamp_refetches_catalog(self) -> None:
        source = InMemoryStoryletCatalog(stamp="v1")
        loader = StampedCatalogLoader(source, self.cache, ttl_seconds=60)
        loader.load_rows()

        source.publish(SAMPLE_STORYLET_ROWS[:2], stamp="v2")
        self.clock.now = 500
        rows = loader.load_rows()

        self.assertEqual(2, source.fetch_count)
        self.assertEqual(2, len(rows))
        self.assertEqual("v2", self.cache.get(catalog_cache_key(None), ttl_seconds=None)["stamp"])

    def test_source_failure_serves_stale_copy(self) -> None:
        source = _FailingSource()
        loader = StampedCatalogLoader(source, self.cache, ttl_seconds=60)
        expected = loader.load_rows()

        source.failing = True
        self.clock.now = 500
        with self.assertLogs("daysim.application.services.content_catalog", level="WARNING"):
            rows = loader.load_rows()

        self.assertEqual(expected, rows)

    def test_source_failure_without_cache_propagates(self) -> None:
        source = _FailingSource()
        source.failing = True
        loader = StampedCatalogLoader(source, self.cache, ttl_seconds=60)
        with self.assertRaises(ConnectionError):
            loader.load_rows()


if __name__ == "__main__":
    unittest.main()
