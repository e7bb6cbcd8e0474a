from __future__ import annotations

import asyncio
import hashlib
from typing import Union

from querydesk.app.query.providers.base import ProviderAdapter, ProviderError
from querydesk.app.query.types import (
    DictionaryEntrySection,
    DictionaryPayload,
    ProviderKind,
    ProviderResponse,
    QueryRequest,
    TranslationPayload,
)

MockOutcome = Union[ProviderResponse, ProviderError]

MOCK_SENSES = (
    "common usage",
    "informal",
    "formal register",
    "technical",
)


class MockProvider(ProviderAdapter):
    """Deterministic provider for mock mode and tests.

    ``outcomes`` is consumed one entry per call and the last entry repeats.
    Without outcomes the provider echoes the text tagged with the target
    language; dictionary providers also attach a small entry list for
    single-word queries.
    """

    def __init__(
        self,
        provider_id: str,
        kind: ProviderKind = ProviderKind.TRANSLATION,
        delay_seconds: float = 0.0,
        outcomes: list[MockOutcome] | None = None,
        supported_languages: frozenset[str] | set[str] | None = None,
    ) -> None:
        self._provider_id = provider_id
        self._kind = kind
        self._delay_seconds = delay_seconds
        self._outcomes = list(outcomes or [])
        self._supported_languages = supported_languages
        self.requests: list[QueryRequest] = []

    @property
    def provider_id(self) -> str:
        return self._provider_id

    @property
    def kind(self) -> ProviderKind:
        return self._kind

    def supports(self, source_language: str, target_language: str) -> bool:
        if self._supported_languages is None:
            return True
        return (
            source_language in self._supported_languages
            and target_language in self._supported_languages
        )

    async def translate(self, request: QueryRequest) -> ProviderResponse:
        self.requests.append(request)
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)

        if self._outcomes:
            index = min(len(self.requests), len(self._outcomes)) - 1
            outcome = self._outcomes[index]
            if isinstance(outcome, ProviderError):
                raise outcome
            return outcome

        return self._echo(request)

    def _echo(self, request: QueryRequest) -> ProviderResponse:
        translation = f"[{request.target_language}] {request.text}"
        if self._kind is ProviderKind.TRANSLATION:
            return ProviderResponse(
                translations=(translation,),
                payload=TranslationPayload(raw={"mock": True}),
            )

        words = request.text.split()
        is_word = len(words) == 1
        sections: tuple[DictionaryEntrySection, ...] = ()
        if is_word:
            seed = hashlib.sha256(request.text.encode("utf-8")).hexdigest()
            first = int(seed[:8], 16) % len(MOCK_SENSES)
            senses = tuple(
                f"{translation} ({MOCK_SENSES[(first + offset) % len(MOCK_SENSES)]})"
                for offset in range(2)
            )
            sections = (DictionaryEntrySection(title="Explanations", items=senses),)
        return ProviderResponse(
            translations=(translation,),
            payload=DictionaryPayload(
                word=request.text,
                is_word=is_word,
                headline=translation if self._provider_id != "linguee" else "",
                sections=sections,
            ),
        )
