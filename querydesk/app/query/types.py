from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class ProviderKind(str, Enum):
    DICTIONARY = "dictionary"
    TRANSLATION = "translation"


class ResultStatus(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    RATE_LIMITED = "rate_limited"


class QueryPhase(str, Enum):
    IDLE = "idle"
    DETECTING = "detecting"
    DISPATCHING = "dispatching"
    PARTIAL = "partial"
    SETTLED = "settled"
    CANCELLED = "cancelled"


@dataclass(frozen=True)
class QueryRequest:
    text: str
    source_language: str
    target_language: str
    request_id: int

    def to_dict(self) -> dict[str, object]:
        return {
            "text": self.text,
            "source_language": self.source_language,
            "target_language": self.target_language,
            "request_id": self.request_id,
        }


@dataclass(frozen=True)
class ProviderSpec:
    provider_id: str
    kind: ProviderKind
    title: str
    headline_from: str | None = None


@dataclass(frozen=True)
class TranslationPayload:
    raw: object = None


@dataclass(frozen=True)
class DictionaryEntrySection:
    title: str
    items: tuple[str, ...]


@dataclass(frozen=True)
class DictionaryPayload:
    word: str
    is_word: bool
    headline: str = ""
    sections: tuple[DictionaryEntrySection, ...] = ()

    @property
    def has_entries(self) -> bool:
        return any(section.items for section in self.sections)


ProviderPayload = Union[TranslationPayload, DictionaryPayload]


@dataclass(frozen=True)
class ProviderResponse:
    """What an adapter hands back on success."""

    translations: tuple[str, ...]
    payload: ProviderPayload = field(default_factory=TranslationPayload)


@dataclass(frozen=True)
class ProviderErrorInfo:
    provider_id: str
    code: str
    message: str

    def to_dict(self) -> dict[str, str]:
        return {"provider_id": self.provider_id, "code": self.code, "message": self.message}


@dataclass(frozen=True)
class ProviderResult:
    provider_id: str
    request_id: int
    status: ResultStatus
    payload: ProviderPayload | None = None
    translations: tuple[str, ...] = ()
    error: ProviderErrorInfo | None = None
    attempt: int = 1

    @property
    def one_line_translation(self) -> str:
        return ", ".join(item for item in self.translations if item)


@dataclass(frozen=True)
class DisplayItem:
    key: str
    provider_id: str
    title: str
    subtitle: str = ""
    copy_text: str = ""
    translation_markdown: str = ""

    def to_dict(self) -> dict[str, str]:
        return {
            "key": self.key,
            "provider_id": self.provider_id,
            "title": self.title,
            "subtitle": self.subtitle,
            "copy_text": self.copy_text,
            "translation_markdown": self.translation_markdown,
        }


@dataclass(frozen=True)
class DisplaySection:
    provider_id: str
    title: str | None
    items: tuple[DisplayItem, ...]

    def to_dict(self) -> dict[str, object]:
        return {
            "provider_id": self.provider_id,
            "title": self.title,
            "items": [item.to_dict() for item in self.items],
        }


@dataclass(frozen=True)
class QueryUpdate:
    request_id: int
    phase: QueryPhase
    sections: tuple[DisplaySection, ...]
    loading: bool
    show_detail: bool
    in_flight: tuple[str, ...] = ()

    def to_dict(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "phase": self.phase.value,
            "sections": [section.to_dict() for section in self.sections],
            "loading": self.loading,
            "show_detail": self.show_detail,
            "in_flight": list(self.in_flight),
        }


@dataclass(frozen=True)
class Notification:
    request_id: int
    kind: str
    title: str
    message: str
    provider_id: str | None = None
    code: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "request_id": self.request_id,
            "kind": self.kind,
            "title": self.title,
            "message": self.message,
            "provider_id": self.provider_id,
            "code": self.code,
        }
