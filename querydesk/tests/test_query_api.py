from __future__ import annotations

import os
import time
import unittest
from typing import Any

from fastapi.testclient import TestClient

from querydesk.app.main import create_app


def _mock_environment() -> None:
    os.environ["PROVIDER_MODE"] = "mock"
    os.environ["DETECTOR_MODE"] = "mock"
    os.environ["MOCK_PROVIDER_DELAY_SECONDS"] = "0.02"
    os.environ["MOCK_DETECTOR_DELAY_SECONDS"] = "0.0"
    os.environ["QUERY_DEBOUNCE_SECONDS"] = "0.05"
    os.environ["DETECTION_DEADLINE_SECONDS"] = "0.3"
    os.environ["AUTO_PLAY_WORD_AUDIO"] = "false"
    os.environ["REALTIME_ENABLED"] = "true"


def _wait_settled(client: TestClient, timeout: float = 3.0) -> dict[str, Any]:
    deadline = time.monotonic() + timeout
    payload: dict[str, Any] = {}
    while time.monotonic() < deadline:
        payload = client.get("/queries/current").json()
        if payload["phase"] == "settled":
            return payload
        time.sleep(0.02)
    raise AssertionError(f"query did not settle: {payload}")


class QueryApiTest(unittest.TestCase):
    def setUp(self) -> None:
        _mock_environment()

    def test_health_reports_components(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            response = client.get("/health")

        self.assertEqual(response.status_code, 200)
        payload = response.json()
        self.assertEqual(payload["status"], "ok")
        for key in (
            "providers_configured",
            "detectors_configured",
            "realtime_running",
            "provider_mode",
        ):
            self.assertIn(key, payload["checks"])
        self.assertEqual(payload["checks"]["provider_mode"], "mock")
        self.assertIn("youdao", payload["checks"]["providers_configured"])

    def test_immediate_query_settles_in_sort_order(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            response = client.post("/queries", json={"text": "hello", "immediate": True})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json()["detection"]["language_code"], "en")

            payload = _wait_settled(client)

        update = payload["update"]
        self.assertFalse(update["loading"])
        providers: list[str] = []
        for section in update["sections"]:
            if section["provider_id"] not in providers:
                providers.append(section["provider_id"])
        self.assertEqual(providers, ["youdao", "deepl", "google"])
        self.assertEqual(update["sections"][-1]["items"][0]["title"], "[zh-CHS] hello")

    def test_debounced_query_eventually_runs(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            response = client.post("/queries", json={"text": "你好"})
            self.assertEqual(response.status_code, 200)

            payload = _wait_settled(client)

        self.assertEqual(payload["detection"]["language_code"], "zh-CHS")
        self.assertEqual(payload["update"]["sections"][-1]["items"][0]["title"], "[en] 你好")

    def test_language_overrides_and_clear(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            client.post("/queries", json={"text": "hello", "immediate": True})
            _wait_settled(client)

            response = client.post("/queries/target-language", json={"language_id": "fr"})
            self.assertEqual(response.status_code, 200)
            payload = _wait_settled(client)
            self.assertEqual(payload["update"]["sections"][-1]["items"][0]["title"], "[fr] hello")

            response = client.post("/queries/source-language", json={"language_id": "de"})
            self.assertEqual(response.status_code, 200)
            self.assertEqual(response.json()["detection"]["source_id"], "manual")

            response = client.delete("/queries")
            self.assertEqual(response.status_code, 200)
            cleared = response.json()

        self.assertEqual(cleared["text"], "")
        self.assertFalse(cleared["loading"])
        self.assertEqual(cleared["update"]["sections"], [])

    def test_invalid_requests_are_rejected(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            unknown = client.post("/queries/target-language", json={"language_id": "xx"})
            missing = client.post("/queries", json={})
            bad_target = client.post("/queries", json={"text": "hi", "target_language": "xx"})

        self.assertEqual(unknown.status_code, 400)
        self.assertEqual(missing.status_code, 422)
        self.assertEqual(bad_target.status_code, 400)

    def test_sort_order_route(self) -> None:
        os.environ["TRANSLATION_ORDER"] = "Google,DeepL"
        try:
            app = create_app()
            with TestClient(app) as client:
                response = client.get("/queries/sort-order")
        finally:
            del os.environ["TRANSLATION_ORDER"]

        self.assertEqual(response.status_code, 200)
        order = [item["provider_id"] for item in response.json()["results"]]
        self.assertEqual(order[:4], ["linguee", "youdao", "google", "deepl"])

    def test_websocket_receives_query_events(self) -> None:
        app = create_app()
        with TestClient(app) as client:
            with client.websocket_connect("/ws/events") as websocket:
                deadline = time.monotonic() + 2.0
                while client.get("/realtime/status").json()["connected_clients"] < 1:
                    if time.monotonic() > deadline:
                        self.fail("websocket client never registered")
                    time.sleep(0.01)

                client.post("/queries", json={"text": "hello", "immediate": True})

                seen: list[str] = []
                settled = None
                for _ in range(30):
                    event = websocket.receive_json()
                    seen.append(event["event"])
                    payload = event["payload"]
                    if event["event"] == "query.update" and payload["phase"] == "settled":
                        settled = payload
                        break

            recent = client.get("/realtime/recent")

        self.assertIn("query.detected", seen)
        self.assertIsNotNone(settled)
        self.assertFalse(settled["loading"])
        latest = {event["event"]: event for event in recent.json()["results"]}
        self.assertIn("query.detected", latest)
        self.assertEqual(latest["query.update"]["payload"]["phase"], "settled")


if __name__ == "__main__":
    unittest.main()
