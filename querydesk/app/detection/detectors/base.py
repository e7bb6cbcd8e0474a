from __future__ import annotations

from abc import ABC, abstractmethod

from querydesk.app.detection.types import DetectionCandidate


class DetectorAdapter(ABC):
    @property
    @abstractmethod
    def detector_id(self) -> str:
        raise NotImplementedError

    @property
    def fast(self) -> bool:
        return False

    @abstractmethod
    async def detect(self, text: str) -> DetectionCandidate:
        """Return a candidate or raise DetectorFailure."""
        raise NotImplementedError
