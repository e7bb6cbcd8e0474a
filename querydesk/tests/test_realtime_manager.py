from __future__ import annotations

import asyncio
import unittest
from typing import Any

from querydesk.app.query.types import Notification, QueryPhase, QueryUpdate
from querydesk.app.realtime.manager import RealtimeEventManager
from querydesk.tests.support import make_settings, quiet_logger


class RecordingWebSocket:
    def __init__(self, blocked: bool = False) -> None:
        self.accepted = False
        self.closed = False
        self.sent: list[dict[str, Any]] = []
        self._gate = asyncio.Event()
        if not blocked:
            self._gate.set()

    def release(self) -> None:
        self._gate.set()

    async def accept(self) -> None:
        self.accepted = True

    async def close(self, code: int = 1000) -> None:
        self.closed = True

    async def send_json(self, data: dict[str, Any]) -> None:
        await self._gate.wait()
        self.sent.append(data)


def _update(request_id: int, phase: QueryPhase = QueryPhase.SETTLED) -> QueryUpdate:
    return QueryUpdate(
        request_id=request_id,
        phase=phase,
        sections=(),
        loading=phase is not QueryPhase.SETTLED,
        show_detail=False,
        in_flight=(),
    )


class RealtimeEventManagerTest(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self) -> None:
        self.manager = RealtimeEventManager(
            settings=make_settings(realtime_client_queue_maxsize=2),
            logger=quiet_logger(),
        )
        await self.manager.start()

    async def asyncTearDown(self) -> None:
        await self.manager.stop()

    async def _drain(self, websocket: RecordingWebSocket, count: int) -> None:
        for _ in range(100):
            if len(websocket.sent) >= count:
                return
            await asyncio.sleep(0.01)
        self.fail(f"expected {count} events, got {len(websocket.sent)}")

    async def test_late_client_receives_latest_state(self) -> None:
        await self.manager.publish_update(_update(1, QueryPhase.PARTIAL))
        await self.manager.publish_update(_update(1))
        await self.manager.publish_notice(
            Notification(request_id=1, kind="provider_failure", title="DeepL error", message="quota")
        )

        websocket = RecordingWebSocket()
        client_id = await self.manager.connect(websocket)
        await self._drain(websocket, 2)

        self.assertIsNotNone(client_id)
        self.assertTrue(websocket.accepted)
        self.assertEqual([event["event"] for event in websocket.sent], ["query.update", "query.notice"])
        self.assertEqual(websocket.sent[0]["payload"]["phase"], "settled")
        self.assertEqual(self.manager.snapshot()["events_replayed"], 2)

    async def test_slow_client_drops_oldest_events(self) -> None:
        websocket = RecordingWebSocket(blocked=True)
        await self.manager.connect(websocket)
        await asyncio.sleep(0)

        for request_id in range(1, 6):
            await self.manager.publish_update(_update(request_id))
        websocket.release()
        await self._drain(websocket, 2)
        await asyncio.sleep(0.02)

        self.assertEqual([event["request_id"] for event in websocket.sent], [4, 5])
        self.assertEqual(self.manager.snapshot()["events_dropped"], 3)

    async def test_stop_closes_clients_and_rejects_new_ones(self) -> None:
        websocket = RecordingWebSocket()
        await self.manager.connect(websocket)
        await self.manager.stop()

        self.assertTrue(websocket.closed)
        self.assertEqual(self.manager.snapshot()["connected_clients"], 0)

        late = RecordingWebSocket()
        self.assertIsNone(await self.manager.connect(late))
        self.assertFalse(late.accepted)
        self.assertTrue(late.closed)


if __name__ == "__main__":
    unittest.main()
