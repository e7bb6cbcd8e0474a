from __future__ import annotations

from dataclasses import dataclass

from querydesk.app.settings import Settings


@dataclass(frozen=True)
class QueryPreferences:
    language1: str
    language2: str
    enabled_providers: tuple[str, ...]
    translation_order: str = ""
    auto_play_word_audio: bool = False
    speed_optimized_detection: bool = False

    @property
    def preferred_languages(self) -> tuple[str, str]:
        return (self.language1, self.language2)

    def to_dict(self) -> dict[str, object]:
        return {
            "language1": self.language1,
            "language2": self.language2,
            "enabled_providers": list(self.enabled_providers),
            "translation_order": self.translation_order,
            "auto_play_word_audio": self.auto_play_word_audio,
            "speed_optimized_detection": self.speed_optimized_detection,
        }


def preferences_from_settings(settings: Settings) -> QueryPreferences:
    return QueryPreferences(
        language1=settings.language1,
        language2=settings.language2,
        enabled_providers=settings.enabled_providers(),
        translation_order=settings.translation_order,
        auto_play_word_audio=settings.auto_play_word_audio,
        speed_optimized_detection=settings.speed_optimized_detection,
    )
