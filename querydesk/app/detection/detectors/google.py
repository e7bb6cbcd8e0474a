from __future__ import annotations

from typing import Any

import httpx

from querydesk.app.detection.detectors.base import DetectorAdapter
from querydesk.app.detection.types import DetectionCandidate, DetectorFailure
from querydesk.app.languages import language_id_from_google
from querydesk.app.settings import Settings

_CONFIRMED_CONFIDENCE = 0.8


class GoogleLanguageDetector(DetectorAdapter):
    """Reads the detected source language of the public translate endpoint."""

    def __init__(self, settings: Settings, client: httpx.AsyncClient | None = None) -> None:
        self._settings = settings
        self._client = client

    @property
    def detector_id(self) -> str:
        return "google"

    @property
    def fast(self) -> bool:
        return True

    async def detect(self, text: str) -> DetectionCandidate:
        endpoint = f"{self._settings.google_api_base_url}/translate_a/single"
        params = {"client": "gtx", "sl": "auto", "tl": "en", "dt": "t", "q": text}
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        try:
            if self._client is not None:
                response = await self._client.get(endpoint, params=params, timeout=timeout)
            else:
                async with httpx.AsyncClient(timeout=timeout) as client:
                    response = await client.get(endpoint, params=params)
        except httpx.RequestError as exc:
            raise DetectorFailure(self.detector_id, f"request_error:{exc}") from exc

        if response.status_code != 200:
            raise DetectorFailure(self.detector_id, f"status_error:{response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise DetectorFailure(self.detector_id, "malformed_response") from exc

        raw_label, confidence = self._extract_language(payload)
        if not raw_label:
            raise DetectorFailure(self.detector_id, "no_language_in_response")

        language_code = language_id_from_google(raw_label)
        samples: tuple[tuple[str, float], ...] = ()
        if language_code and confidence is not None:
            samples = ((language_code, confidence),)

        return DetectionCandidate(
            source_id=self.detector_id,
            language_code=language_code,
            raw_source_label=raw_label,
            confirmed=bool(
                language_code
                and confidence is not None
                and confidence >= _CONFIRMED_CONFIDENCE
            ),
            confidence_samples=samples,
        )

    def _extract_language(self, payload: Any) -> tuple[str, float | None]:
        if not isinstance(payload, list) or len(payload) < 3:
            return "", None

        raw_label = payload[2] if isinstance(payload[2], str) else ""
        confidence: float | None = None
        if len(payload) > 6 and isinstance(payload[6], (int, float)):
            confidence = max(0.0, min(1.0, float(payload[6])))
        return raw_label, confidence
