from __future__ import annotations

from typing import Any

import httpx

from querydesk.app.languages import AUTO_LANGUAGE_ID, get_language_item
from querydesk.app.query.providers.base import (
    ProviderAdapter,
    ProviderFailure,
    ProviderRateLimited,
)
from querydesk.app.query.types import (
    ProviderKind,
    ProviderResponse,
    QueryRequest,
    TranslationPayload,
)
from querydesk.app.settings import Settings


class GoogleTranslateProvider(ProviderAdapter):
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def provider_id(self) -> str:
        return "google"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.TRANSLATION

    async def translate(self, request: QueryRequest) -> ProviderResponse:
        endpoint = f"{self._settings.google_api_base_url}/translate_a/single"
        source = (
            "auto"
            if request.source_language == AUTO_LANGUAGE_ID
            else get_language_item(request.source_language).google_id
        )
        params = {
            "client": "gtx",
            "sl": source,
            "tl": get_language_item(request.target_language).google_id,
            "dt": "t",
            "q": request.text,
        }
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        try:
            if self._client is not None:
                response = await self._client.get(endpoint, params=params, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(endpoint, params=params)
        except httpx.RequestError as exc:
            raise ProviderFailure(self.provider_id, "request_error", str(exc)) from exc

        if response.status_code == 429:
            raise ProviderRateLimited(self.provider_id, "429", "too many requests")
        if response.status_code != 200:
            raise ProviderFailure(
                self.provider_id,
                str(response.status_code),
                f"unexpected status {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise ProviderFailure(self.provider_id, "malformed_response", str(exc)) from exc

        translations = self._extract_translations(payload)
        if not translations:
            raise ProviderFailure(self.provider_id, "empty_response", "no translation returned")
        return ProviderResponse(
            translations=translations,
            payload=TranslationPayload(raw=payload),
        )

    def _extract_translations(self, payload: Any) -> tuple[str, ...]:
        if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
            return ()

        segments: list[str] = []
        for part in payload[0]:
            if isinstance(part, list) and part and isinstance(part[0], str):
                segments.append(part[0])

        joined = "".join(segments)
        return tuple(line for line in joined.split("\n") if line.strip())
