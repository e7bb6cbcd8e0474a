from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from fastapi import WebSocket

from querydesk.app.query.types import Notification, QueryUpdate
from querydesk.app.settings import Settings

QUERY_EVENT_TYPES = ("query.detected", "query.update", "query.notice")


@dataclass
class QueryStreamMetrics:
    started_at: str | None = None
    running: bool = False
    connected_clients: int = 0
    events_published: int = 0
    events_replayed: int = 0
    events_dropped: int = 0
    last_sequence: int = 0
    last_request_id: int | None = None
    last_error: str | None = None
    by_type: dict[str, int] = field(default_factory=dict)


class _Subscriber:
    def __init__(self, client_id: int, websocket: WebSocket, maxsize: int) -> None:
        self.client_id = client_id
        self.websocket = websocket
        self.queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=maxsize)
        self.sender_task: asyncio.Task[None] | None = None

    def offer(self, event: dict[str, Any]) -> bool:
        """Queues ``event``, evicting the oldest one when full. False means one was evicted."""
        evicted = False
        if self.queue.full():
            self.queue.get_nowait()
            evicted = True
        self.queue.put_nowait(event)
        return not evicted


class RealtimeEventManager:
    """Streams query events to websocket clients.

    Every ``query.update`` is a full replacement of the visible sections, so a
    client that falls behind loses its oldest queued events first and a client
    that connects late is sent the latest event of each type straight away.
    """

    def __init__(self, settings: Settings, logger: logging.Logger) -> None:
        self._settings = settings
        self._logger = logger
        self._metrics = QueryStreamMetrics()
        self._subscribers: dict[int, _Subscriber] = {}
        self._latest: dict[str, dict[str, Any]] = {}
        self._next_client_id = 0

    async def start(self) -> None:
        if not self._settings.realtime_enabled:
            self._log("realtime_disabled")
            return
        self._metrics.started_at = datetime.now(timezone.utc).isoformat()
        self._metrics.running = True
        self._metrics.last_error = None

    async def stop(self) -> None:
        self._metrics.running = False
        for client_id in list(self._subscribers):
            await self.disconnect(client_id)

    async def connect(self, websocket: WebSocket) -> int | None:
        if not self._metrics.running:
            await websocket.close(code=1013)
            return None

        await websocket.accept()
        self._next_client_id += 1
        subscriber = _Subscriber(
            self._next_client_id,
            websocket,
            maxsize=max(1, self._settings.realtime_client_queue_maxsize),
        )
        for event_type in QUERY_EVENT_TYPES:
            event = self._latest.get(event_type)
            if event is not None:
                subscriber.offer(event)
                self._metrics.events_replayed += 1

        self._subscribers[subscriber.client_id] = subscriber
        self._metrics.connected_clients = len(self._subscribers)
        subscriber.sender_task = asyncio.create_task(
            self._send_events(subscriber),
            name=f"query-stream-{subscriber.client_id}",
        )
        self._log("realtime_client_connected", client_id=subscriber.client_id)
        return subscriber.client_id

    async def disconnect(self, client_id: int) -> None:
        subscriber = self._subscribers.pop(client_id, None)
        self._metrics.connected_clients = len(self._subscribers)
        if subscriber is None:
            return

        task = subscriber.sender_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)
        try:
            await subscriber.websocket.close()
        except Exception:
            # peer already closed the socket
            pass

    async def publish_update(self, update: QueryUpdate) -> None:
        self._publish("query.update", update.to_dict(), update.request_id)

    async def publish_notice(self, notification: Notification) -> None:
        self._publish("query.notice", notification.to_dict(), notification.request_id)

    async def publish_detection(self, payload: dict[str, Any]) -> None:
        self._publish("query.detected", payload, payload.get("request_id"))

    def latest_events(self) -> list[dict[str, Any]]:
        return [self._latest[name] for name in QUERY_EVENT_TYPES if name in self._latest]

    def snapshot(self) -> dict[str, Any]:
        payload = asdict(self._metrics)
        payload["realtime_enabled"] = self._settings.realtime_enabled
        payload["connected_client_ids"] = sorted(self._subscribers)
        return payload

    def _publish(self, event_type: str, payload: dict[str, Any], request_id: int | None) -> None:
        if not self._metrics.running:
            return

        self._metrics.last_sequence += 1
        event = {
            "event": event_type,
            "sequence": self._metrics.last_sequence,
            "request_id": request_id,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "payload": payload,
        }
        self._latest[event_type] = event
        self._metrics.events_published += 1
        self._metrics.by_type[event_type] = self._metrics.by_type.get(event_type, 0) + 1
        if request_id is not None:
            self._metrics.last_request_id = request_id

        for subscriber in self._subscribers.values():
            if not subscriber.offer(event):
                self._metrics.events_dropped += 1

    async def _send_events(self, subscriber: _Subscriber) -> None:
        try:
            while True:
                event = await subscriber.queue.get()
                await subscriber.websocket.send_json(event)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._metrics.last_error = str(exc)
            self._logger.warning(
                "realtime_client_send_failed",
                extra={
                    "event": "realtime_client_send_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "client_id": subscriber.client_id,
                    "reason": str(exc),
                },
            )
        await self.disconnect(subscriber.client_id)

    def _log(self, event: str, **fields: object) -> None:
        self._logger.info(
            event,
            extra={
                "event": event,
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                **fields,
            },
        )
