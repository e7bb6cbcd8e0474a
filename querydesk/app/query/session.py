from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable

from querydesk.app.detection.engine import LanguageDetectionEngine
from querydesk.app.detection.types import (
    MANUAL_SOURCE,
    DetectionCandidate,
    DetectionResult,
)
from querydesk.app.languages import (
    AUTO_LANGUAGE_ID,
    auto_selected_target,
    is_known_language_id,
)
from querydesk.app.preferences import QueryPreferences
from querydesk.app.query.catalog import build_sort_order
from querydesk.app.query.orchestrator import QueryOrchestrator
from querydesk.app.query.types import QueryPhase, QueryRequest
from querydesk.app.settings import Settings

DetectionHandler = Callable[[dict[str, Any]], Awaitable[None]]


class QuerySession:
    """Per-user query lifecycle: debounce, detection, dispatch and clearing."""

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        engine: LanguageDetectionEngine,
        orchestrator: QueryOrchestrator,
        preferences_provider: Callable[[], QueryPreferences],
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._engine = engine
        self._orchestrator = orchestrator
        self._preferences_provider = preferences_provider
        self._text = ""
        self._target_language: str | None = None
        self._phase = QueryPhase.IDLE
        self._detection: DetectionResult | None = None
        self._query_task: asyncio.Task[None] | None = None
        self._detection_handlers: list[DetectionHandler] = []

    def register_detection_handler(self, handler: DetectionHandler) -> None:
        self._detection_handlers.append(handler)

    @property
    def text(self) -> str:
        return self._text

    @property
    def phase(self) -> QueryPhase:
        if self._phase is not QueryPhase.DISPATCHING:
            return self._phase
        update = self._orchestrator.last_update
        if update is None or update.request_id != self._orchestrator.request_id:
            return self._phase
        return update.phase

    @property
    def detection(self) -> DetectionResult | None:
        return self._detection

    async def update_input(self, text: str, target_language: str | None = None) -> None:
        trimmed = self._normalize(text)
        if not trimmed:
            await self.clear()
            return
        if trimmed == self._text and target_language in (None, self._target_language):
            return

        self._text = trimmed
        if target_language is not None:
            self._target_language = target_language
        self._cancel_pending_query()
        self._query_task = asyncio.create_task(
            self._debounced_query(trimmed),
            name="query-debounce",
        )

    async def query_now(self, text: str, target_language: str | None = None) -> None:
        trimmed = self._normalize(text)
        if not trimmed:
            await self.clear()
            return

        self._text = trimmed
        if target_language is not None:
            self._target_language = target_language
        await self._start_query(trimmed)

    async def override_source_language(self, language_id: str) -> None:
        if not is_known_language_id(language_id):
            raise ValueError(f"unknown language id: {language_id}")
        if not self._text:
            return

        if language_id == AUTO_LANGUAGE_ID:
            await self._start_query(self._text)
            return
        await self._start_query(self._text, detection=self._manual_detection(language_id))

    async def override_target_language(self, language_id: str) -> None:
        if not is_known_language_id(language_id):
            raise ValueError(f"unknown language id: {language_id}")
        self._target_language = None if language_id == AUTO_LANGUAGE_ID else language_id
        if not self._text:
            return

        # the source is already known, only the target moves
        await self._start_query(self._text, detection=self._detection)

    async def clear(self) -> None:
        was_active = bool(self._orchestrator.in_flight) or self._phase is QueryPhase.DETECTING
        self._cancel_pending_query()
        self._text = ""
        self._detection = None
        await self._orchestrator.clear()
        self._phase = QueryPhase.CANCELLED if was_active else QueryPhase.IDLE
        self._log("query_cleared", request_id=self._orchestrator.request_id, was_active=was_active)

    async def stop(self) -> None:
        self._cancel_pending_query()
        await self._orchestrator.stop()

    def sort_order(self) -> tuple[str, ...]:
        return build_sort_order(self._preferences_provider().translation_order)

    def snapshot(self) -> dict[str, object]:
        update = self._orchestrator.last_update
        return {
            "phase": self.phase.value,
            "request_id": self._orchestrator.request_id,
            "text": self._text,
            "target_language": self._target_language,
            "detection": self._detection.to_dict() if self._detection else None,
            "in_flight": sorted(self._orchestrator.in_flight),
            "loading": bool(self._orchestrator.in_flight),
            "update": update.to_dict() if update else None,
        }

    def _normalize(self, text: str) -> str:
        return text.strip()[: self._settings.max_input_length]

    def _cancel_pending_query(self) -> None:
        task = self._query_task
        self._query_task = None
        if task is not None and not task.done() and task is not asyncio.current_task():
            task.cancel()

    async def _start_query(
        self, text: str, detection: DetectionResult | None = None
    ) -> None:
        self._cancel_pending_query()
        task = asyncio.create_task(self._run_query(text, detection), name="query-run")
        self._query_task = task
        # a newer query cancels this one, the caller just returns
        await asyncio.wait({task})
        if not task.cancelled():
            task.result()

    async def _debounced_query(self, text: str) -> None:
        await asyncio.sleep(self._settings.debounce_seconds)
        try:
            await self._run_query(text)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.error(
                "query_failed",
                exc_info=True,
                extra={
                    "event": "query_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "reason": str(exc),
                },
            )

    async def _run_query(self, text: str, detection: DetectionResult | None = None) -> None:
        request_id = self._orchestrator.begin_request()
        preferences = self._preferences_provider()
        self._phase = QueryPhase.DETECTING
        self._detection = None

        if detection is None:
            detection = await self._engine.detect(text, preferences)
        if not self._orchestrator.is_current(request_id):
            self._log("query_superseded", request_id=request_id)
            return

        self._detection = detection
        source = detection.language_code or AUTO_LANGUAGE_ID
        target = self._resolve_target(source, preferences)
        request = QueryRequest(
            text=text,
            source_language=source,
            target_language=target,
            request_id=request_id,
        )
        self._log(
            "query_started",
            request_id=request_id,
            source_language=source,
            target_language=target,
            detection_rule=detection.rule,
            text_length=len(text),
        )
        await self._publish_detection(request, detection)
        if not self._orchestrator.is_current(request_id):
            return

        self._phase = QueryPhase.DISPATCHING
        await self._orchestrator.submit(request, preferences)

    def _resolve_target(self, source: str, preferences: QueryPreferences) -> str:
        target = self._target_language or AUTO_LANGUAGE_ID
        if target != AUTO_LANGUAGE_ID and target != source:
            return target
        selected = auto_selected_target(source, preferences.preferred_languages)
        if selected == AUTO_LANGUAGE_ID:
            return preferences.language1
        return selected

    def _manual_detection(self, language_id: str) -> DetectionResult:
        candidate = DetectionCandidate(
            source_id=MANUAL_SOURCE,
            language_code=language_id,
            raw_source_label=language_id,
            confirmed=True,
        )
        return DetectionResult(candidate, "manual")

    async def _publish_detection(
        self, request: QueryRequest, detection: DetectionResult
    ) -> None:
        payload = {
            "request_id": request.request_id,
            "text": request.text,
            "source_language": request.source_language,
            "target_language": request.target_language,
            "detection": detection.to_dict(),
        }
        for handler in self._detection_handlers:
            try:
                await handler(payload)
            except Exception as exc:  # pragma: no cover - safety net
                self._logger.error(
                    "detection_handler_error",
                    extra={
                        "event": "detection_handler_error",
                        "service_name": self._settings.service_name,
                        "service_version": self._settings.service_version,
                        "request_id": request.request_id,
                        "reason": str(exc),
                    },
                )

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
