from __future__ import annotations

from typing import Any

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel, Field

from querydesk.app.languages import is_known_language_id
from querydesk.app.query.catalog import provider_title

router = APIRouter(prefix="/queries", tags=["queries"])


class QueryBody(BaseModel):
    text: str
    target_language: str | None = None
    immediate: bool = False


class LanguageBody(BaseModel):
    language_id: str = Field(min_length=1)


def _require_language(language_id: str | None) -> None:
    if language_id is not None and not is_known_language_id(language_id):
        raise HTTPException(status_code=400, detail=f"unknown language id: {language_id}")


@router.post("")
async def submit_query(request: Request, body: QueryBody) -> dict[str, Any]:
    _require_language(body.target_language)
    session = request.app.state.query_session
    if body.immediate:
        await session.query_now(body.text, body.target_language)
    else:
        await session.update_input(body.text, body.target_language)
    return session.snapshot()


@router.post("/source-language")
async def override_source_language(request: Request, body: LanguageBody) -> dict[str, Any]:
    _require_language(body.language_id)
    session = request.app.state.query_session
    await session.override_source_language(body.language_id)
    return session.snapshot()


@router.post("/target-language")
async def override_target_language(request: Request, body: LanguageBody) -> dict[str, Any]:
    _require_language(body.language_id)
    session = request.app.state.query_session
    await session.override_target_language(body.language_id)
    return session.snapshot()


@router.delete("")
async def clear_query(request: Request) -> dict[str, Any]:
    session = request.app.state.query_session
    await session.clear()
    return session.snapshot()


@router.get("/current")
def get_current_query(request: Request) -> dict[str, Any]:
    return request.app.state.query_session.snapshot()


@router.get("/sort-order")
def get_sort_order(request: Request) -> dict[str, Any]:
    order = request.app.state.query_session.sort_order()
    return {
        "results": [
            {"rank": rank, "provider_id": provider_id, "title": provider_title(provider_id)}
            for rank, provider_id in enumerate(order)
        ],
        "count": len(order),
    }


@router.get("/status")
def get_query_status(request: Request) -> dict[str, Any]:
    payload = request.app.state.query_orchestrator.snapshot()
    payload["audio"] = request.app.state.audio_player.snapshot()
    return payload
