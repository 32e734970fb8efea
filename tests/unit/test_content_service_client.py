import sys
from pathlib import Path
import unittest

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.infrastructure.content_service_client import ContentServiceClient


_ROWS = [
    {"id": "s-1", "slug": "one", "title": "One", "choices": []},
    {"id": "s-2", "slug": "two", "title": "Two", "choices": []},
]


def _client_for(handler) -> ContentServiceClient:
    http_client = httpx.Client(base_url="https://content.invalid", transport=httpx.MockTransport(handler))
    return ContentServiceClient("https://content.invalid", retries=0, http_client=http_client)


class ContentServiceClientTests(unittest.TestCase):
    def test_fetch_stamp_reads_stamp_field(self) -> None:
        client = _client_for(lambda request: httpx.Response(200, json={"stamp": "2024-09-01T00:00:00Z"}))
        self.assertEqual("2024-09-01T00:00:00Z", client.fetch_stamp())

    def test_missing_stamp_is_none(self) -> None:
        client = _client_for(lambda request: httpx.Response(200, json={}))
        self.assertIsNone(client.fetch_stamp())

    def test_storylets_accepts_wrapped_payload_and_forwards_season(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"storylets": _ROWS + ["junk"]})

        rows = _client_for(handler).fetch_storylet_rows(season_index=2)

        self.assertEqual(["s-1", "s-2"], [row["id"] for row in rows])
        self.assertEqual("/content/storylets", seen[0].url.path)
        self.assertEqual("2", seen[0].url.params.get("season"))

    def test_storylets_accepts_bare_list_without_season(self) -> None:
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=_ROWS)

        rows = _client_for(handler).fetch_storylet_rows()

        self.assertEqual(2, len(rows))
        self.assertNotIn("season", seen[0].url.params)

    def test_non_list_payload_is_rejected(self) -> None:
        client = _client_for(lambda request: httpx.Response(200, json={"storylets": "nope"}))
        with self.assertRaises(ValueError):
            client.fetch_storylet_rows()

    def test_server_error_propagates_after_retries(self) -> None:
        client = _client_for(lambda request: httpx.Response(503, json={}))
        with self.assertRaises(httpx.HTTPStatusError):
            client.fetch_stamp()


if __name__ == "__main__":
    unittest.main()
