from __future__ import annotations

from dataclasses import dataclass, replace

from querydesk.app.languages import AUTO_LANGUAGE_ID

LOCAL_STATISTICAL_SOURCE = "local_statistical"
LOCAL_HEURISTIC_SOURCE = "local_heuristic"
MANUAL_SOURCE = "manual"


class DetectorFailure(Exception):
    """Raised when one detector adapter cannot produce a candidate."""

    def __init__(self, detector_id: str, message: str) -> None:
        super().__init__(f"{detector_id}: {message}")
        self.detector_id = detector_id
        self.message = message


@dataclass(frozen=True)
class DetectionCandidate:
    source_id: str
    language_code: str
    raw_source_label: str
    confirmed: bool = False
    confidence_samples: tuple[tuple[str, float], ...] = ()

    def with_confirmed(self, confirmed: bool) -> DetectionCandidate:
        return replace(self, confirmed=confirmed)

    def to_dict(self) -> dict[str, object]:
        return {
            "source_id": self.source_id,
            "language_code": self.language_code,
            "raw_source_label": self.raw_source_label,
            "confirmed": self.confirmed,
            "confidence_samples": [list(sample) for sample in self.confidence_samples],
        }


@dataclass(frozen=True)
class DetectionResult:
    candidate: DetectionCandidate
    rule: str

    @property
    def language_code(self) -> str:
        return self.candidate.language_code

    @property
    def confirmed(self) -> bool:
        return self.candidate.confirmed

    @property
    def source_id(self) -> str:
        return self.candidate.source_id

    def to_dict(self) -> dict[str, object]:
        payload = self.candidate.to_dict()
        payload["rule"] = self.rule
        return payload


def auto_candidate(source_id: str = LOCAL_HEURISTIC_SOURCE) -> DetectionCandidate:
    return DetectionCandidate(
        source_id=source_id,
        language_code=AUTO_LANGUAGE_ID,
        raw_source_label="",
        confirmed=False,
    )
