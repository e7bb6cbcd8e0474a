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


class DeepLTranslateProvider(ProviderAdapter):
    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        if not settings.deepl_api_key:
            raise ValueError("DEEPL_API_KEY is required for the deepl provider")
        self._settings = settings
        self._client = client

    @property
    def provider_id(self) -> str:
        return "deepl"

    @property
    def kind(self) -> ProviderKind:
        return ProviderKind.TRANSLATION

    def supports(self, source_language: str, target_language: str) -> bool:
        source_ok = (
            source_language == AUTO_LANGUAGE_ID
            or get_language_item(source_language).deepl_id is not None
        )
        return source_ok and get_language_item(target_language).deepl_id is not None

    async def translate(self, request: QueryRequest) -> ProviderResponse:
        endpoint = f"{self._settings.deepl_api_base_url}/v2/translate"
        body: dict[str, Any] = {
            "text": [request.text],
            "target_lang": get_language_item(request.target_language).deepl_id,
        }
        if request.source_language != AUTO_LANGUAGE_ID:
            body["source_lang"] = get_language_item(request.source_language).deepl_id
        headers = {"Authorization": f"DeepL-Auth-Key {self._settings.deepl_api_key}"}

        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        try:
            if self._client is not None:
                response = await self._client.post(
                    endpoint, headers=headers, json=body, timeout=timeout
                )
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.post(endpoint, headers=headers, json=body)
        except httpx.RequestError as exc:
            raise ProviderFailure(self.provider_id, "request_error", str(exc)) from exc

        if response.status_code == 429:
            raise ProviderRateLimited(self.provider_id, "429", "too many requests")
        if response.status_code == 456:
            raise ProviderFailure(self.provider_id, "456", "quota exceeded")
        if response.status_code == 403:
            raise ProviderFailure(self.provider_id, "403", "authorization failed, check the API key")
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
        if not isinstance(payload, dict):
            raise ProviderFailure(self.provider_id, "malformed_response", "expected an object")

        translations = tuple(
            item["text"]
            for item in payload.get("translations", [])
            if isinstance(item, dict) and isinstance(item.get("text"), str)
        )
        if not translations:
            raise ProviderFailure(self.provider_id, "empty_response", "no translation returned")
        return ProviderResponse(
            translations=translations,
            payload=TranslationPayload(raw=payload),
        )
