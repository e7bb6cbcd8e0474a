from __future__ import annotations

import logging

from querydesk.app.languages import (
    AUTO_LANGUAGE_ID,
    from_to_title,
    is_translation_too_long,
)
from querydesk.app.query.catalog import PROVIDER_SPECS
from querydesk.app.query.types import (
    DictionaryPayload,
    DisplayItem,
    DisplaySection,
    ProviderKind,
    ProviderResult,
    ProviderSpec,
    QueryRequest,
    ResultStatus,
)

DETAILS_SECTION_TITLE = "Details"


class ResultAggregator:
    """Holds the live per-provider results of the current request.

    Every accepted result re-sorts the whole collection by the configured
    sort order and rebuilds the display sections from scratch; the UI
    replaces its list with each emitted build.
    """

    def __init__(
        self,
        logger: logging.Logger,
        specs: dict[str, ProviderSpec] | None = None,
    ) -> None:
        self._logger = logger
        self._specs = specs if specs is not None else PROVIDER_SPECS
        self._request_id = 0
        self._request: QueryRequest | None = None
        self._sort_order: tuple[str, ...] = ()
        self._rank: dict[str, int] = {}
        self._hidden: frozenset[str] = frozenset()
        self._results: dict[str, ProviderResult] = {}

    @property
    def request_id(self) -> int:
        return self._request_id

    @property
    def sort_order(self) -> tuple[str, ...]:
        return self._sort_order

    def reset(self, request_id: int) -> None:
        self._request_id = request_id
        self._request = None
        self._results = {}

    def bind(
        self,
        request: QueryRequest,
        sort_order: tuple[str, ...],
        hidden: frozenset[str] = frozenset(),
    ) -> None:
        if request.request_id != self._request_id:
            return
        self._request = request
        self._sort_order = tuple(sort_order)
        self._rank = {provider_id: index for index, provider_id in enumerate(self._sort_order)}
        self._hidden = hidden

    def on_provider_result(self, result: ProviderResult) -> tuple[DisplaySection, ...] | None:
        if result.request_id != self._request_id:
            self._logger.info(
                "stale_result_ignored",
                extra={
                    "event": "stale_result_ignored",
                    "provider_id": result.provider_id,
                    "request_id": result.request_id,
                    "current_request_id": self._request_id,
                },
            )
            return None
        if result.status is not ResultStatus.SUCCESS:
            return None

        self._results[result.provider_id] = result
        return self.build_sections()

    def result_for(self, provider_id: str) -> ProviderResult | None:
        return self._results.get(provider_id)

    def sorted_results(self) -> list[ProviderResult]:
        slots: list[ProviderResult | None] = [None] * len(self._sort_order)
        for provider_id, result in self._results.items():
            index = self._rank.get(provider_id)
            if index is None:
                continue
            slots[index] = result
        return [result for result in slots if result is not None]

    def show_detail(self) -> bool:
        """Expanded view when no dictionary has entries and a translation runs long."""
        to_language = self._request.target_language if self._request else AUTO_LANGUAGE_ID
        too_long = False
        for result in self.sorted_results():
            if self._kind(result.provider_id) is ProviderKind.DICTIONARY:
                payload = result.payload
                if isinstance(payload, DictionaryPayload) and payload.has_entries:
                    return False
                continue
            if is_translation_too_long(result.one_line_translation, to_language):
                too_long = True
        return too_long

    def build_sections(self) -> tuple[DisplaySection, ...]:
        ordered = self.sorted_results()
        show_detail = self.show_detail()
        from_to = self._from_to(only_emoji=show_detail)

        sections: list[DisplaySection] = []
        first_translation = True
        for result in ordered:
            if result.provider_id in self._hidden:
                continue
            spec = self._specs.get(result.provider_id)
            title = spec.title if spec else result.provider_id
            if self._kind(result.provider_id) is ProviderKind.DICTIONARY:
                sections.extend(self._dictionary_sections(result, f"{title}   ({from_to})"))
                continue

            one_line = result.one_line_translation
            if not one_line:
                continue
            section_title = f"{title}   ({from_to})" if first_translation else title
            first_translation = False
            item = DisplayItem(
                key=f"{one_line}-{result.provider_id}",
                provider_id=result.provider_id,
                title=one_line,
                copy_text=one_line,
                translation_markdown=self._translation_markdown(result.provider_id, ordered),
            )
            sections.append(
                DisplaySection(provider_id=result.provider_id, title=section_title, items=(item,))
            )
        return tuple(sections)

    def _dictionary_sections(
        self, result: ProviderResult, section_title: str
    ) -> list[DisplaySection]:
        payload = result.payload
        if not isinstance(payload, DictionaryPayload):
            return []

        headline = payload.headline or self._borrowed_headline(result.provider_id)
        if not headline:
            headline = result.one_line_translation
        if not headline and not payload.has_entries:
            return []

        provider_id = result.provider_id
        sections = [
            DisplaySection(
                provider_id=provider_id,
                title=section_title,
                items=(
                    DisplayItem(
                        key=f"{headline}-{provider_id}",
                        provider_id=provider_id,
                        title=headline,
                        subtitle=payload.word,
                        copy_text=headline,
                        translation_markdown=self._translation_markdown(
                            provider_id, self.sorted_results()
                        ),
                    ),
                ),
            )
        ]

        labelled = False
        for section_index, entry in enumerate(payload.sections):
            if not entry.items:
                continue
            items = tuple(
                DisplayItem(
                    key=f"{provider_id}-{section_index}-{item_index}",
                    provider_id=provider_id,
                    title=text,
                    subtitle=entry.title,
                    copy_text=text,
                )
                for item_index, text in enumerate(entry.items)
            )
            sections.append(
                DisplaySection(
                    provider_id=provider_id,
                    title=None if labelled else DETAILS_SECTION_TITLE,
                    items=items,
                )
            )
            labelled = True
        return sections

    def _borrowed_headline(self, provider_id: str) -> str:
        spec = self._specs.get(provider_id)
        if spec is None or spec.headline_from is None:
            return ""
        source = self._results.get(spec.headline_from)
        return source.one_line_translation if source else ""

    def _translation_markdown(self, owner_id: str, ordered: list[ProviderResult]) -> str:
        blocks: list[tuple[str, str]] = []
        from_to = self._from_to(only_emoji=True)
        for result in ordered:
            if self._kind(result.provider_id) is not ProviderKind.TRANSLATION:
                continue
            text = "\n".join(result.translations).strip()
            if not text:
                continue
            spec = self._specs.get(result.provider_id)
            title = spec.title if spec else result.provider_id
            body = text.replace("\n", "\n\n")
            blocks.append((result.provider_id, f"## {title}   ({from_to})\n---\n{body}\n"))

        blocks.sort(key=lambda block: block[0] != owner_id)
        return "\n".join(markdown for _, markdown in blocks)

    def _from_to(self, only_emoji: bool) -> str:
        if self._request is None:
            return from_to_title(AUTO_LANGUAGE_ID, AUTO_LANGUAGE_ID, only_emoji)
        return from_to_title(
            self._request.source_language,
            self._request.target_language,
            only_emoji,
        )

    def _kind(self, provider_id: str) -> ProviderKind:
        spec = self._specs.get(provider_id)
        return spec.kind if spec else ProviderKind.TRANSLATION
