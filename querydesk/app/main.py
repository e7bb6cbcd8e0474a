from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from querydesk.app.audio.player import WordAudioPlayer
from querydesk.app.detection.detectors.base import DetectorAdapter
from querydesk.app.detection.detectors.google import GoogleLanguageDetector
from querydesk.app.detection.detectors.mock import MockLanguageDetector
from querydesk.app.detection.engine import LanguageDetectionEngine
from querydesk.app.logging_config import configure_logging
from querydesk.app.preferences import preferences_from_settings
from querydesk.app.query.aggregator import ResultAggregator
from querydesk.app.query.catalog import provider_kind
from querydesk.app.query.orchestrator import QueryOrchestrator
from querydesk.app.query.providers.base import ProviderAdapter
from querydesk.app.query.providers.deepl import DeepLTranslateProvider
from querydesk.app.query.providers.google import GoogleTranslateProvider
from querydesk.app.query.providers.mock import MockProvider
from querydesk.app.query.session import QuerySession
from querydesk.app.realtime.manager import RealtimeEventManager
from querydesk.app.routes.health import router as health_router
from querydesk.app.routes.queries import router as queries_router
from querydesk.app.routes.realtime import router as realtime_router
from querydesk.app.settings import (
    DICTIONARY_PROVIDER_IDS,
    TRANSLATION_PROVIDER_IDS,
    Settings,
    build_settings,
)


# the youdao dictionary only serves Chinese and English pairs
YOUDAO_DICTIONARY_LANGUAGES = frozenset({"auto", "en", "zh-CHS", "zh-CHT"})


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _service_logger() -> logging.Logger:
    return logging.getLogger("querydesk")


def build_detectors(settings: Settings, logger: logging.Logger) -> list[DetectorAdapter]:
    if settings.detector_mode == "mock":
        return [
            MockLanguageDetector(
                detector_id,
                delay_seconds=settings.mock_detector_delay_seconds,
                fast=detector_id == "google",
            )
            for detector_id in settings.enabled_detectors
        ]

    detectors: list[DetectorAdapter] = []
    for detector_id in settings.enabled_detectors:
        if detector_id == "google":
            detectors.append(GoogleLanguageDetector(settings=settings))
            continue
        logger.info(
            "detector_unavailable",
            extra={
                "event": "detector_unavailable",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
                "detector_id": detector_id,
                "detector_mode": settings.detector_mode,
            },
        )
    return detectors


def build_providers(settings: Settings, logger: logging.Logger) -> list[ProviderAdapter]:
    provider_ids = DICTIONARY_PROVIDER_IDS + TRANSLATION_PROVIDER_IDS
    if settings.provider_mode == "mock":
        return [
            MockProvider(
                provider_id,
                kind=provider_kind(provider_id),
                delay_seconds=settings.mock_provider_delay_seconds,
                supported_languages=YOUDAO_DICTIONARY_LANGUAGES if provider_id == "youdao" else None,
            )
            for provider_id in provider_ids
        ]

    providers: list[ProviderAdapter] = [GoogleTranslateProvider(settings=settings)]
    if settings.deepl_key_configured:
        providers.append(DeepLTranslateProvider(settings=settings))

    available = {provider.provider_id for provider in providers}
    for provider_id in settings.enabled_providers():
        if provider_id in available:
            continue
        logger.info(
            "provider_unavailable",
            extra={
                "event": "provider_unavailable",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
                "provider_id": provider_id,
                "provider_mode": settings.provider_mode,
            },
        )
    return providers


def create_app() -> FastAPI:
    settings = build_settings(_project_root())
    configure_logging(settings.log_level)
    logger = _service_logger()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.settings = settings
        app.state.started_at = datetime.now(timezone.utc)
        app.state.realtime_manager = RealtimeEventManager(settings=settings, logger=logger)
        app.state.audio_player = WordAudioPlayer(settings=settings, logger=logger)
        app.state.detection_engine = LanguageDetectionEngine(
            settings=settings,
            logger=logger,
            detectors=build_detectors(settings, logger),
        )
        app.state.query_orchestrator = QueryOrchestrator(
            settings=settings,
            logger=logger,
            providers=build_providers(settings, logger),
            aggregator=ResultAggregator(logger=logger),
            audio_player=app.state.audio_player,
        )
        app.state.query_orchestrator.register_update_handler(
            app.state.realtime_manager.publish_update
        )
        app.state.query_orchestrator.register_notification_handler(
            app.state.realtime_manager.publish_notice
        )
        app.state.query_session = QuerySession(
            settings=settings,
            logger=logger,
            engine=app.state.detection_engine,
            orchestrator=app.state.query_orchestrator,
            preferences_provider=lambda: preferences_from_settings(settings),
        )
        app.state.query_session.register_detection_handler(
            app.state.realtime_manager.publish_detection
        )

        logger.info(
            "service_startup",
            extra={
                "event": "startup",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )
        logger.info(
            "service_config_loaded",
            extra={
                "event": "config_loaded",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
                "config": settings.redacted(),
            },
        )
        await app.state.realtime_manager.start()
        yield
        await app.state.query_session.stop()
        await app.state.audio_player.stop()
        await app.state.realtime_manager.stop()
        logger.info(
            "service_shutdown",
            extra={
                "event": "shutdown",
                "service_name": settings.service_name,
                "service_version": settings.service_version,
            },
        )

    app = FastAPI(
        title=settings.service_name,
        version=settings.service_version,
        lifespan=lifespan,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    def root() -> dict[str, str]:
        return {"message": "QueryDesk query service is running."}

    app.include_router(health_router)
    app.include_router(queries_router)
    app.include_router(realtime_router)
    return app


app = create_app()
