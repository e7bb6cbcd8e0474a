from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from langdetect import DetectorFactory, detect_langs
from langdetect.lang_detect_exception import LangDetectException

from querydesk.app.detection.types import (
    LOCAL_HEURISTIC_SOURCE,
    LOCAL_STATISTICAL_SOURCE,
    DetectionCandidate,
    auto_candidate,
)
from querydesk.app.languages import (
    is_chinese,
    is_english_or_number,
    is_preferred_language,
    language_id_from_langdetect,
    preferred_contains_chinese,
    preferred_contains_english,
)

StatisticalDetector = Callable[[str], list[tuple[str, float]]]

DetectorFactory.seed = 0


def langdetect_samples(text: str) -> list[tuple[str, float]]:
    """Probabilities from langdetect mapped onto canonical language ids."""
    try:
        ranked = detect_langs(text)
    except LangDetectException:
        return []

    merged: dict[str, float] = {}
    for item in ranked:
        language_id = language_id_from_langdetect(item.lang)
        if not language_id:
            continue
        merged[language_id] = merged.get(language_id, 0.0) + float(item.prob)
    return sorted(merged.items(), key=lambda pair: pair[1], reverse=True)


@dataclass(frozen=True)
class LocalDetection:
    chain_result: DetectionCandidate
    preferred_guess: DetectionCandidate | None


class LocalLanguageDetector:
    """Synchronous fallback chain that never touches the network.

    Stages, first hit wins:

    1. statistical detection of a preferred language above the confirmed
       confidence (confirmed),
    2. statistical detection of a preferred language above the low
       confidence (best effort),
    3. character classes: plain ASCII letters/digits map to English and
       ideographs to Chinese, when that language is preferred (best effort),
    4. the ``auto`` sentinel.
    """

    def __init__(
        self,
        confirmed_confidence: float = 0.8,
        low_confidence: float = 0.2,
        statistical_detector: StatisticalDetector | None = None,
    ) -> None:
        self._confirmed_confidence = confirmed_confidence
        self._low_confidence = low_confidence
        self._statistical_detector = statistical_detector or langdetect_samples

    @property
    def low_confidence(self) -> float:
        return self._low_confidence

    def detect(self, text: str, preferred: tuple[str, str]) -> LocalDetection:
        samples = tuple(self._statistical_detector(text))
        top_label = samples[0][0] if samples else ""

        preferred_guess: DetectionCandidate | None = None
        for language_id, confidence in samples:
            if not is_preferred_language(language_id, preferred):
                continue
            if confidence > self._confirmed_confidence:
                confirmed = DetectionCandidate(
                    source_id=LOCAL_STATISTICAL_SOURCE,
                    language_code=language_id,
                    raw_source_label=top_label,
                    confirmed=True,
                    confidence_samples=samples,
                )
                return LocalDetection(chain_result=confirmed, preferred_guess=confirmed)
            if confidence > self._low_confidence and preferred_guess is None:
                preferred_guess = DetectionCandidate(
                    source_id=LOCAL_STATISTICAL_SOURCE,
                    language_code=language_id,
                    raw_source_label=top_label,
                    confirmed=False,
                    confidence_samples=samples,
                )

        if preferred_guess is not None:
            return LocalDetection(chain_result=preferred_guess, preferred_guess=preferred_guess)

        heuristic = self.simple_detect(text, preferred)
        return LocalDetection(chain_result=heuristic, preferred_guess=None)

    def simple_detect(self, text: str, preferred: tuple[str, str]) -> DetectionCandidate:
        language_id = ""
        if is_english_or_number(text) and preferred_contains_english(preferred):
            language_id = "en"
        elif is_chinese(text) and preferred_contains_chinese(preferred):
            language_id = next(item for item in preferred if item.startswith("zh"))

        if not language_id:
            return auto_candidate(LOCAL_HEURISTIC_SOURCE)

        return DetectionCandidate(
            source_id=LOCAL_HEURISTIC_SOURCE,
            language_code=language_id,
            raw_source_label=language_id,
            confirmed=False,
        )
