from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field

from querydesk.app.detection.detectors.base import DetectorAdapter
from querydesk.app.detection.local import LocalDetection, LocalLanguageDetector
from querydesk.app.detection.types import (
    DetectionCandidate,
    DetectionResult,
    DetectorFailure,
    auto_candidate,
)
from querydesk.app.languages import is_preferred_language, is_valid_language_id
from querydesk.app.preferences import QueryPreferences
from querydesk.app.settings import Settings

REFERENCE_PAIR_VOTES = 2
CONSENSUS_VOTES = 3


@dataclass
class _DetectionRound:
    """Scratch state of one detect() call."""

    preferences: QueryPreferences
    local: LocalDetection
    seen: list[DetectionCandidate] = field(default_factory=list)
    received: list[DetectionCandidate] = field(default_factory=list)
    failures: int = 0


class LanguageDetectionEngine:
    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        detectors: list[DetectorAdapter],
        local_detector: LocalLanguageDetector | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._detectors = list(detectors)
        self._local = local_detector or LocalLanguageDetector(
            confirmed_confidence=settings.local_confirmed_confidence,
            low_confidence=settings.local_low_confidence,
        )
        self._fast_ids = {detector.detector_id for detector in self._detectors if detector.fast}

    @property
    def detector_ids(self) -> list[str]:
        return [detector.detector_id for detector in self._detectors]

    async def detect(self, text: str, preferences: QueryPreferences) -> DetectionResult:
        local = self._local.detect(text, preferences.preferred_languages)
        self._log(
            "detection_started",
            detectors=self.detector_ids,
            local_language=local.chain_result.language_code,
            local_confirmed=local.chain_result.confirmed,
        )
        if not self._detectors:
            return self._finish(DetectionResult(local.chain_result, "local_only"))

        round_state = _DetectionRound(preferences=preferences, local=local)
        # some remote detectors are case sensitive ("Section" comes back as French)
        lowered = text.lower()
        order = {detector.detector_id: index for index, detector in enumerate(self._detectors)}
        pending: set[asyncio.Task[DetectionCandidate]] = set()
        task_owner: dict[asyncio.Task[DetectionCandidate], str] = {}
        for detector in self._detectors:
            task = asyncio.create_task(
                detector.detect(lowered), name=f"detect-{detector.detector_id}"
            )
            pending.add(task)
            task_owner[task] = detector.detector_id

        loop = asyncio.get_running_loop()
        started = loop.time()
        deadline_passed = False
        try:
            while pending:
                limit = (
                    self._settings.detection_timeout_seconds
                    if deadline_passed
                    else self._settings.detection_deadline_seconds
                )
                remaining = max(0.0, started + limit - loop.time())
                done, pending = await asyncio.wait(
                    pending,
                    timeout=remaining,
                    return_when=asyncio.FIRST_COMPLETED,
                )
                if not done:
                    if deadline_passed:
                        self._log(
                            "detection_timed_out",
                            pending_detectors=sorted(task_owner[task] for task in pending),
                        )
                        break
                    deadline_passed = True
                    if local.chain_result.confirmed:
                        return self._finish(
                            DetectionResult(local.chain_result, "local_deadline")
                        )
                    continue

                for task in sorted(done, key=lambda item: order[task_owner[item]]):
                    candidate = self._candidate_from(task, task_owner[task], round_state)
                    if candidate is None:
                        continue
                    result = self._apply_rules(candidate, round_state)
                    if result is not None:
                        return self._finish(result)
        finally:
            for task in pending:
                task.cancel()

        if not round_state.received:
            return self._finish(DetectionResult(local.chain_result, "local_fallback"))
        return self._finish(self._final_selection(round_state))

    def _candidate_from(
        self,
        task: asyncio.Task[DetectionCandidate],
        detector_id: str,
        round_state: _DetectionRound,
    ) -> DetectionCandidate | None:
        try:
            candidate = task.result()
        except DetectorFailure as exc:
            round_state.failures += 1
            self._log("detector_failed", detector_id=detector_id, reason=exc.message)
            return None
        except Exception as exc:
            round_state.failures += 1
            self._logger.warning(
                "detector_failed",
                exc_info=True,
                extra={
                    "event": "detector_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "detector_id": detector_id,
                    "reason": str(exc),
                },
            )
            return None

        self._log(
            "detection_candidate_received",
            detector_id=detector_id,
            language_code=candidate.language_code,
            candidate_confirmed=candidate.confirmed,
        )
        return candidate

    def _apply_rules(
        self, candidate: DetectionCandidate, round_state: _DetectionRound
    ) -> DetectionResult | None:
        round_state.received.append(candidate)
        code = candidate.language_code
        if not is_valid_language_id(code):
            return None

        preferred = round_state.preferences.preferred_languages
        is_preferred = is_preferred_language(code, preferred)

        if candidate.source_id == self._settings.authoritative_detector:
            return DetectionResult(candidate.with_confirmed(True), "authoritative")

        if (
            round_state.preferences.speed_optimized_detection
            and candidate.source_id in self._fast_ids
            and candidate.confirmed
            and is_preferred
        ):
            return DetectionResult(candidate, "speed_optimized")

        matches = [seen for seen in round_state.seen if seen.language_code == code]
        if len(matches) + 1 >= REFERENCE_PAIR_VOTES and is_preferred:
            voters = {seen.source_id for seen in matches} | {candidate.source_id}
            if self._settings.reference_detector in voters:
                return DetectionResult(matches[0].with_confirmed(True), "reference_pair")

        distinct_sources = {seen.source_id for seen in matches} | {candidate.source_id}
        if len(distinct_sources) >= CONSENSUS_VOTES:
            return DetectionResult(matches[0].with_confirmed(True), "consensus")

        round_state.seen.append(candidate)
        return None

    def _final_selection(self, round_state: _DetectionRound) -> DetectionResult:
        preferred = round_state.preferences.preferred_languages
        for candidate in round_state.received:
            if not is_valid_language_id(candidate.language_code):
                continue
            if candidate.confirmed or is_preferred_language(candidate.language_code, preferred):
                return DetectionResult(candidate, "final_trusted")

        guess = round_state.local.preferred_guess
        if guess is not None:
            return DetectionResult(guess, "final_local_guess")
        return DetectionResult(auto_candidate(), "final_auto")

    def _finish(self, result: DetectionResult) -> DetectionResult:
        self._log(
            "detection_resolved",
            detector_id=result.source_id,
            language_code=result.language_code,
            confirmed=result.confirmed,
            rule=result.rule,
        )
        return result

    def _log(self, event: str, **fields: object) -> None:
        self._logger.info(
            event,
            extra={
                "event": event,
                "service_name": self._settings.service_name,
                "service_version": self._settings.service_version,
                **fields,
            },
        )
