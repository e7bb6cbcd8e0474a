from __future__ import annotations

import asyncio

from querydesk.app.detection.detectors.base import DetectorAdapter
from querydesk.app.detection.types import DetectionCandidate, DetectorFailure
from querydesk.app.languages import is_chinese, is_english_or_number


class MockLanguageDetector(DetectorAdapter):
    """Scripted detector for mock mode and tests.

    With no fixed ``language_code`` it guesses English or Chinese from the
    character classes of the text and returns an empty code otherwise.
    Setting ``never_resolves`` keeps the call pending until it is cancelled.
    """

    def __init__(
        self,
        detector_id: str,
        language_code: str | None = None,
        delay_seconds: float = 0.0,
        fail: bool = False,
        confirmed: bool = False,
        fast: bool = False,
        never_resolves: bool = False,
    ) -> None:
        self._detector_id = detector_id
        self._language_code = language_code
        self._delay_seconds = delay_seconds
        self._fail = fail
        self._confirmed = confirmed
        self._fast = fast
        self._never_resolves = never_resolves
        self.calls: list[str] = []
        self.cancelled = 0

    @property
    def detector_id(self) -> str:
        return self._detector_id

    @property
    def fast(self) -> bool:
        return self._fast

    async def detect(self, text: str) -> DetectionCandidate:
        self.calls.append(text)
        if self._never_resolves:
            try:
                await asyncio.Event().wait()
            except asyncio.CancelledError:
                self.cancelled += 1
                raise
        if self._delay_seconds > 0:
            await asyncio.sleep(self._delay_seconds)
        if self._fail:
            raise DetectorFailure(self._detector_id, "simulated detector outage")

        language_code = self._language_code
        if language_code is None:
            if is_english_or_number(text):
                language_code = "en"
            elif is_chinese(text):
                language_code = "zh-CHS"
            else:
                language_code = ""

        return DetectionCandidate(
            source_id=self._detector_id,
            language_code=language_code,
            raw_source_label=language_code,
            confirmed=self._confirmed,
        )
