from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Awaitable, Callable, Protocol

from querydesk.app.preferences import QueryPreferences
from querydesk.app.query.aggregator import ResultAggregator
from querydesk.app.query.catalog import PROVIDER_SPECS, build_sort_order, provider_title
from querydesk.app.query.providers.base import (
    ProviderAdapter,
    ProviderError,
    ProviderRateLimited,
)
from querydesk.app.query.types import (
    DictionaryPayload,
    Notification,
    ProviderErrorInfo,
    ProviderKind,
    ProviderResult,
    QueryPhase,
    QueryRequest,
    QueryUpdate,
    ResultStatus,
)
from querydesk.app.settings import Settings

UpdateHandler = Callable[[QueryUpdate], Awaitable[None]]
NotificationHandler = Callable[[Notification], Awaitable[None]]


class AudioPlayer(Protocol):
    def download_and_play(self, word: str, language_id: str) -> None: ...


@dataclass
class OrchestratorMetrics:
    requests_started: int = 0
    requests_dispatched: int = 0
    provider_calls: int = 0
    results_accepted: int = 0
    stale_results_dropped: int = 0
    failures_reported: int = 0
    rate_limit_retries: int = 0
    audio_triggered: int = 0
    last_result_at: str | None = None
    last_error: str | None = None


class QueryOrchestrator:
    """Fans one request out to every enabled provider and tracks what is in flight.

    ``request_id`` is a generation counter: any completion whose id is no
    longer current is dropped before it can touch the aggregator, the
    in-flight set or the notification handlers.
    """

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        providers: list[ProviderAdapter],
        aggregator: ResultAggregator | None = None,
        audio_player: AudioPlayer | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._providers = {provider.provider_id: provider for provider in providers}
        self._aggregator = aggregator or ResultAggregator(logger=logger)
        self._audio_player = audio_player
        self._metrics = OrchestratorMetrics()
        self._request_id = 0
        self._current: QueryRequest | None = None
        self._preferences: QueryPreferences | None = None
        self._in_flight: set[str] = set()
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._audio_played = False
        self._sort_order: tuple[str, ...] = build_sort_order("")
        self._last_update: QueryUpdate | None = None
        self._update_handlers: list[UpdateHandler] = []
        self._notification_handlers: list[NotificationHandler] = []

    def register_update_handler(self, handler: UpdateHandler) -> None:
        self._update_handlers.append(handler)

    def register_notification_handler(self, handler: NotificationHandler) -> None:
        self._notification_handlers.append(handler)

    @property
    def provider_ids(self) -> list[str]:
        return list(self._providers)

    @property
    def request_id(self) -> int:
        return self._request_id

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    @property
    def sort_order(self) -> tuple[str, ...]:
        return self._sort_order

    @property
    def last_update(self) -> QueryUpdate | None:
        return self._last_update

    def is_current(self, request_id: int) -> bool:
        return request_id == self._request_id

    def begin_request(self) -> int:
        """Invalidate whatever is running and hand out the next request id."""
        self.cancel()
        self._metrics.requests_started += 1
        return self._request_id

    def cancel(self) -> None:
        self._request_id += 1
        for task in self._tasks.values():
            if not task.done() and task is not asyncio.current_task():
                task.cancel()
        self._tasks = {}
        self._in_flight = set()
        self._audio_played = False
        self._current = None
        self._preferences = None
        self._last_update = None
        self._aggregator.reset(self._request_id)

    async def clear(self) -> QueryUpdate:
        """Cancel the current request and publish an empty, idle update."""
        self.cancel()
        return await self._emit_update(self._request_id, phase=QueryPhase.IDLE)

    async def stop(self) -> None:
        tasks = [task for task in self._tasks.values() if not task.done()]
        self.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def submit(
        self, request: QueryRequest, preferences: QueryPreferences
    ) -> QueryUpdate | None:
        if not self.is_current(request.request_id):
            self._log(
                "stale_request_dropped",
                request_id=request.request_id,
                current_request_id=self._request_id,
            )
            return None

        self._current = request
        self._preferences = preferences
        self._sort_order = build_sort_order(preferences.translation_order)
        dispatch, hidden = self._dispatch_plan(request, preferences)
        self._aggregator.bind(request, self._sort_order, hidden)

        if not set(dispatch) - hidden:
            self._log("no_providers_enabled", request_id=request.request_id)
            await self._notify(
                Notification(
                    request_id=request.request_id,
                    kind="no_providers",
                    title="No service enabled",
                    message="Enable at least one dictionary or translation service.",
                    code="no_providers_enabled",
                )
            )
            return await self._emit_update(request.request_id)

        self._in_flight = set(dispatch)
        self._metrics.requests_dispatched += 1
        self._log(
            "query_dispatched",
            request_id=request.request_id,
            source_language=request.source_language,
            target_language=request.target_language,
            providers=list(dispatch),
            hidden_providers=sorted(hidden),
        )
        for provider_id in dispatch:
            self._tasks[provider_id] = asyncio.create_task(
                self._run_provider(self._providers[provider_id], request, attempt=1),
                name=f"provider-{provider_id}-{request.request_id}",
            )
        return await self._emit_update(request.request_id, phase=QueryPhase.DISPATCHING)

    def snapshot(self) -> dict[str, object]:
        payload = asdict(self._metrics)
        payload["request_id"] = self._request_id
        payload["current_request"] = self._current.to_dict() if self._current else None
        payload["in_flight"] = sorted(self._in_flight)
        payload["loading"] = bool(self._in_flight)
        payload["audio_played"] = self._audio_played
        payload["providers"] = self.provider_ids
        payload["sort_order"] = list(self._sort_order)
        return payload

    def _dispatch_plan(
        self, request: QueryRequest, preferences: QueryPreferences
    ) -> tuple[list[str], frozenset[str]]:
        wanted = list(preferences.enabled_providers)
        hidden: set[str] = set()
        for provider_id in preferences.enabled_providers:
            spec = PROVIDER_SPECS.get(provider_id)
            dependency = spec.headline_from if spec else None
            if dependency and dependency not in wanted:
                wanted.append(dependency)
                hidden.add(dependency)

        dispatch: list[str] = []
        for provider_id in wanted:
            adapter = self._providers.get(provider_id)
            if adapter is None:
                self._log("provider_unavailable", request_id=request.request_id, provider_id=provider_id)
                continue
            if not adapter.supports(request.source_language, request.target_language):
                self._log(
                    "provider_unsupported_pair",
                    request_id=request.request_id,
                    provider_id=provider_id,
                    source_language=request.source_language,
                    target_language=request.target_language,
                )
                continue
            dispatch.append(provider_id)
        return dispatch, frozenset(hidden)

    async def _run_provider(
        self, adapter: ProviderAdapter, request: QueryRequest, attempt: int
    ) -> None:
        self._metrics.provider_calls += 1
        try:
            response = await adapter.translate(request)
        except ProviderRateLimited as exc:
            result = self._error_result(adapter, request, ResultStatus.RATE_LIMITED, exc, attempt)
        except ProviderError as exc:
            result = self._error_result(adapter, request, ResultStatus.FAILURE, exc, attempt)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._logger.error(
                "provider_unexpected_error",
                exc_info=True,
                extra={
                    "event": "provider_unexpected_error",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "provider_id": adapter.provider_id,
                    "request_id": request.request_id,
                    "reason": str(exc),
                },
            )
            result = self._error_result(
                adapter,
                request,
                ResultStatus.FAILURE,
                ProviderError(adapter.provider_id, "unexpected", str(exc)),
                attempt,
            )
        else:
            result = ProviderResult(
                provider_id=adapter.provider_id,
                request_id=request.request_id,
                status=ResultStatus.SUCCESS,
                payload=response.payload,
                translations=response.translations,
                attempt=attempt,
            )

        await self._handle_result(result, adapter, request)

    def _error_result(
        self,
        adapter: ProviderAdapter,
        request: QueryRequest,
        status: ResultStatus,
        exc: ProviderError,
        attempt: int,
    ) -> ProviderResult:
        return ProviderResult(
            provider_id=adapter.provider_id,
            request_id=request.request_id,
            status=status,
            error=ProviderErrorInfo(adapter.provider_id, exc.code, exc.message),
            attempt=attempt,
        )

    async def _handle_result(
        self, result: ProviderResult, adapter: ProviderAdapter, request: QueryRequest
    ) -> None:
        if not self.is_current(result.request_id):
            self._metrics.stale_results_dropped += 1
            self._log(
                "stale_result_dropped",
                provider_id=result.provider_id,
                request_id=result.request_id,
                current_request_id=self._request_id,
            )
            return

        if result.status is ResultStatus.RATE_LIMITED:
            # stays in flight until the retry settles
            self._metrics.rate_limit_retries += 1
            self._log(
                "provider_rate_limited",
                provider_id=result.provider_id,
                request_id=result.request_id,
                attempt=result.attempt,
                retry_in_seconds=self._settings.rate_limit_backoff_seconds,
            )
            self._tasks[result.provider_id] = asyncio.create_task(
                self._retry_provider(adapter, request, result.attempt + 1),
                name=f"provider-{result.provider_id}-{request.request_id}-retry",
            )
            return

        self._in_flight.discard(result.provider_id)
        if result.status is ResultStatus.FAILURE:
            error = result.error
            self._metrics.failures_reported += 1
            self._metrics.last_error = f"{result.provider_id}:{error.code if error else ''}"
            self._logger.warning(
                "provider_failed",
                extra={
                    "event": "provider_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "provider_id": result.provider_id,
                    "request_id": result.request_id,
                    "code": error.code if error else None,
                    "reason": error.message if error else None,
                },
            )
            await self._notify(
                Notification(
                    request_id=result.request_id,
                    kind="provider_failure",
                    title=f"{provider_title(result.provider_id)} error",
                    message=error.message if error else "request failed",
                    provider_id=result.provider_id,
                    code=error.code if error else None,
                )
            )
        else:
            self._metrics.results_accepted += 1
            self._metrics.last_result_at = datetime.now(timezone.utc).isoformat()
            self._aggregator.on_provider_result(result)
            self._maybe_play_audio(result, adapter, request)

        if self.is_current(result.request_id):
            await self._emit_update(result.request_id)

    async def _retry_provider(
        self, adapter: ProviderAdapter, request: QueryRequest, attempt: int
    ) -> None:
        await asyncio.sleep(self._settings.rate_limit_backoff_seconds)
        if not self.is_current(request.request_id):
            return
        await self._run_provider(adapter, request, attempt)

    def _maybe_play_audio(
        self, result: ProviderResult, adapter: ProviderAdapter, request: QueryRequest
    ) -> None:
        if self._audio_played or self._audio_player is None:
            return
        if self._preferences is None or not self._preferences.auto_play_word_audio:
            return
        if adapter.kind is not ProviderKind.DICTIONARY:
            return
        payload = result.payload
        if not isinstance(payload, DictionaryPayload) or not payload.is_word:
            return

        self._audio_played = True
        self._metrics.audio_triggered += 1
        self._log(
            "word_audio_triggered",
            provider_id=result.provider_id,
            request_id=result.request_id,
            word=payload.word or request.text,
        )
        self._audio_player.download_and_play(payload.word or request.text, request.source_language)

    async def _emit_update(
        self, request_id: int, phase: QueryPhase | None = None
    ) -> QueryUpdate:
        if phase is None:
            phase = QueryPhase.PARTIAL if self._in_flight else QueryPhase.SETTLED
        update = QueryUpdate(
            request_id=request_id,
            phase=phase,
            sections=self._aggregator.build_sections(),
            loading=bool(self._in_flight),
            show_detail=self._aggregator.show_detail(),
            in_flight=tuple(sorted(self._in_flight)),
        )
        self._last_update = update
        for handler in self._update_handlers:
            try:
                await handler(update)
            except Exception as exc:  # pragma: no cover - safety net
                self._logger.error(
                    "query_update_handler_error",
                    extra={
                        "event": "query_update_handler_error",
                        "service_name": self._settings.service_name,
                        "service_version": self._settings.service_version,
                        "request_id": request_id,
                        "reason": str(exc),
                    },
                )
        return update

    async def _notify(self, notification: Notification) -> None:
        for handler in self._notification_handlers:
            try:
                await handler(notification)
            except Exception as exc:  # pragma: no cover - safety net
                self._logger.error(
                    "notification_handler_error",
                    extra={
                        "event": "notification_handler_error",
                        "service_name": self._settings.service_name,
                        "service_version": self._settings.service_version,
                        "request_id": notification.request_id,
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
