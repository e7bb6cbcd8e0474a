from __future__ import annotations

from datetime import datetime, timezone
from typing import Any

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
def get_health(request: Request) -> dict[str, Any]:
    settings = request.app.state.settings
    started_at = request.app.state.started_at
    orchestrator = request.app.state.query_orchestrator
    engine = request.app.state.detection_engine
    realtime_snapshot = request.app.state.realtime_manager.snapshot()
    now = datetime.now(timezone.utc)
    uptime_seconds = max(0.0, (now - started_at).total_seconds())

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": settings.service_version,
        "environment": settings.environment,
        "started_at": started_at.isoformat(),
        "uptime_seconds": round(uptime_seconds, 3),
        "checks": {
            "provider_mode": settings.provider_mode,
            "detector_mode": settings.detector_mode,
            "providers_configured": orchestrator.provider_ids,
            "detectors_configured": engine.detector_ids,
            "deepl_key_configured": settings.deepl_key_configured,
            "realtime_enabled": realtime_snapshot["realtime_enabled"],
            "realtime_running": realtime_snapshot["running"],
        },
    }
