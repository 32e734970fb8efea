import os
import sys
from pathlib import Path
import unittest
from unittest import mock

import httpx

sys.path.insert(0, str(Path(__file__).resolve().parents[2] / "src"))

from daysim.infrastructure.resilient_http import (
    CircuitOpenError,
    get_json_with_retry,
    is_retryable,
    reset_circuit_breakers,
)


class _AlwaysTimeoutClient:
    def __init__(self) -> None:
        self.base_url = "https://content.invalid"
        self.calls = 0

    def get(self, path, params=None, headers=None):
        self.calls += 1
        raise httpx.TimeoutException("timeout")


class _ScriptedClient:
    def __init__(self, statuses) -> None:
        self.base_url = "https://content.invalid"
        self.statuses = list(statuses)
        self.calls = 0

    def get(self, path, params=None, headers=None):
        self.calls += 1
        status = self.statuses.pop(0)
        request = httpx.Request("GET", f"https://content.invalid{path}", params=params)
        return httpx.Response(status, json={"stamp": "v2"}, request=request)


class ResilientHttpTests(unittest.TestCase):
    def tearDown(self) -> None:
        reset_circuit_breakers()

    def test_returns_json_payload_on_success(self) -> None:
        client = _ScriptedClient([200])
        self.assertEqual({"stamp": "v2"}, get_json_with_retry(client, "/content/stamp"))
        self.assertEqual(1, client.calls)

    def test_retries_transient_status_then_succeeds(self) -> None:
        client = _ScriptedClient([503, 502, 200])
        payload = get_json_with_retry(client, "/content/stamp", retries=2, backoff_seconds=0.5)
        self.assertEqual("v2", payload["stamp"])
        self.assertEqual(3, client.calls)

    def test_client_errors_are_not_retried(self) -> None:
        client = _ScriptedClient([404, 200])
        with self.assertRaises(httpx.HTTPStatusError):
            get_json_with_retry(client, "/content/missing", retries=3)
        self.assertEqual(1, client.calls)

    def test_backoff_doubles_between_attempts(self) -> None:
        client = _AlwaysTimeoutClient()
        with mock.patch("daysim.infrastructure.resilient_http.time.sleep") as sleep:
            with self.assertRaises(httpx.TimeoutException):
                get_json_with_retry(client, "/content/stamp", retries=2, backoff_seconds=0.25)
        self.assertEqual([mock.call(0.25), mock.call(0.5)], sleep.call_args_list)

    def test_circuit_opens_after_threshold_and_short_circuits_next_call(self) -> None:
        client = _AlwaysTimeoutClient()
        env = {
            "DAYSIM_HTTP_CIRCUIT_BREAKER_ENABLED": "1",
            "DAYSIM_HTTP_CIRCUIT_FAILURE_THRESHOLD": "3",
            "DAYSIM_HTTP_CIRCUIT_RESET_SECONDS": "600",
        }

        with mock.patch.dict(os.environ, env, clear=False):
            for _ in range(3):
                with self.assertRaises(httpx.TimeoutException):
                    get_json_with_retry(client, "/content/stamp", retries=0)

            calls_before = client.calls
            with self.assertRaises(CircuitOpenError):
                get_json_with_retry(client, "/content/stamp", retries=0)
            self.assertEqual(calls_before, client.calls)

    def test_circuit_can_be_disabled(self) -> None:
        client = _AlwaysTimeoutClient()
        env = {"DAYSIM_HTTP_CIRCUIT_BREAKER_ENABLED": "0", "DAYSIM_HTTP_CIRCUIT_FAILURE_THRESHOLD": "1"}
        with mock.patch.dict(os.environ, env, clear=False):
            for _ in range(3):
                with self.assertRaises(httpx.TimeoutException):
                    get_json_with_retry(client, "/content/stamp", retries=0)
        self.assertEqual(3, client.calls)

    def test_retryable_classification(self) -> None:
        request = httpx.Request("GET", "https://content.invalid/x")
        self.assertTrue(is_retryable(httpx.ConnectError("down", request=request)))
        too_many = httpx.HTTPStatusError("429", request=request, response=httpx.Response(429, request=request))
        self.assertTrue(is_retryable(too_many))
        self.assertFalse(is_retryable(ValueError("bad json")))


if __name__ == "__main__":
    unittest.main()
