from __future__ import annotations

import asyncio
import time
import unittest

from querydesk.app.detection.detectors.mock import MockLanguageDetector
from querydesk.app.detection.engine import LanguageDetectionEngine
from querydesk.app.detection.local import LocalLanguageDetector
from querydesk.tests.support import make_preferences, make_settings, quiet_logger


def _local(samples: list[tuple[str, float]] | None = None) -> LocalLanguageDetector:
    fixed = list(samples or [])
    return LocalLanguageDetector(statistical_detector=lambda text: fixed)


class DetectionConsensusTest(unittest.IsolatedAsyncioTestCase):
    def _engine(self, detectors, samples=None, **overrides) -> LanguageDetectionEngine:
        return LanguageDetectionEngine(
            settings=make_settings(**overrides),
            logger=quiet_logger(),
            detectors=detectors,
            local_detector=_local(samples),
        )

    async def test_authoritative_detector_short_circuits_pending_detectors(self) -> None:
        slow_a = MockLanguageDetector("tencent", never_resolves=True)
        slow_b = MockLanguageDetector("baidu", never_resolves=True)
        authoritative = MockLanguageDetector("apple", language_code="fr", delay_seconds=0.01)
        engine = self._engine([slow_a, slow_b, authoritative], detection_timeout_seconds=5.0)

        started = time.monotonic()
        result = await engine.detect("Bonjour tout le monde", make_preferences())
        elapsed = time.monotonic() - started

        self.assertEqual(result.language_code, "fr")
        self.assertTrue(result.confirmed)
        self.assertEqual(result.rule, "authoritative")
        self.assertLess(elapsed, 0.25)

    async def test_three_detectors_agreeing_confirm_non_preferred_language(self) -> None:
        detectors = [
            MockLanguageDetector("tencent", language_code="de", delay_seconds=0.01),
            MockLanguageDetector("google", language_code="de", delay_seconds=0.02),
            MockLanguageDetector("baidu", language_code="de", delay_seconds=0.03),
        ]
        engine = self._engine(detectors)

        result = await engine.detect("Guten Morgen", make_preferences())

        self.assertEqual(result.language_code, "de")
        self.assertTrue(result.confirmed)
        self.assertEqual(result.rule, "consensus")

    async def test_all_detectors_failing_falls_back_to_auto(self) -> None:
        detectors = [
            MockLanguageDetector("apple", fail=True),
            MockLanguageDetector("tencent", fail=True),
            MockLanguageDetector("baidu", fail=True),
            MockLanguageDetector("google", fail=True),
        ]
        engine = self._engine(detectors, samples=[("es", 0.05)])

        result = await engine.detect("¿Qué tal, señor?", make_preferences())

        self.assertEqual(result.language_code, "auto")
        self.assertFalse(result.confirmed)
        self.assertEqual(result.rule, "local_fallback")

    async def test_all_detectors_failing_uses_local_preferred_guess(self) -> None:
        detectors = [MockLanguageDetector("google", fail=True)]
        engine = self._engine(detectors, samples=[("en", 0.5)])

        result = await engine.detect("see you tomorrow", make_preferences())

        self.assertEqual(result.language_code, "en")
        self.assertFalse(result.confirmed)

    async def test_reference_detector_pair_confirms_preferred_language(self) -> None:
        detectors = [
            MockLanguageDetector("tencent", language_code="en", delay_seconds=0.01),
            MockLanguageDetector("baidu", language_code="en", delay_seconds=0.02),
            MockLanguageDetector("google", never_resolves=True),
        ]
        engine = self._engine(detectors, detection_timeout_seconds=5.0)

        result = await engine.detect("good morning", make_preferences())

        self.assertEqual(result.language_code, "en")
        self.assertTrue(result.confirmed)
        self.assertEqual(result.rule, "reference_pair")

    async def test_pair_without_reference_detector_waits_for_final_selection(self) -> None:
        detectors = [
            MockLanguageDetector("tencent", language_code="en", delay_seconds=0.01),
            MockLanguageDetector("google", language_code="en", delay_seconds=0.02),
        ]
        engine = self._engine(detectors)

        result = await engine.detect("good morning", make_preferences())

        self.assertEqual(result.language_code, "en")
        self.assertFalse(result.confirmed)
        self.assertEqual(result.rule, "final_trusted")
        self.assertEqual(result.source_id, "tencent")

    async def test_speed_optimized_mode_accepts_confirmed_fast_detector(self) -> None:
        detectors = [
            MockLanguageDetector("google", language_code="en", confirmed=True, fast=True),
            MockLanguageDetector("tencent", never_resolves=True),
        ]
        engine = self._engine(detectors, detection_timeout_seconds=5.0)

        result = await engine.detect(
            "good morning",
            make_preferences(speed_optimized_detection=True),
        )

        self.assertEqual(result.rule, "speed_optimized")
        self.assertEqual(result.language_code, "en")
        self.assertTrue(result.confirmed)

    async def test_empty_code_from_authoritative_detector_is_not_a_match(self) -> None:
        detectors = [
            MockLanguageDetector("apple", language_code=""),
            MockLanguageDetector("google", language_code="ja", delay_seconds=0.01),
        ]
        engine = self._engine(detectors)

        result = await engine.detect("こんにちは", make_preferences())

        self.assertNotEqual(result.rule, "authoritative")
        self.assertEqual(result.rule, "final_auto")
        self.assertEqual(result.language_code, "auto")

    async def test_confirmed_local_result_wins_once_deadline_passes(self) -> None:
        detectors = [MockLanguageDetector("google", never_resolves=True)]
        engine = self._engine(
            detectors,
            samples=[("en", 0.95)],
            detection_deadline_seconds=0.05,
            detection_timeout_seconds=5.0,
        )

        result = await engine.detect("good morning", make_preferences())

        self.assertEqual(result.rule, "local_deadline")
        self.assertEqual(result.language_code, "en")
        self.assertTrue(result.confirmed)

    async def test_hard_timeout_bounds_unconfirmed_detection(self) -> None:
        detectors = [MockLanguageDetector("google", never_resolves=True)]
        engine = self._engine(
            detectors,
            detection_deadline_seconds=0.05,
            detection_timeout_seconds=0.15,
        )

        result = await asyncio.wait_for(
            engine.detect("¿Qué tal?", make_preferences()),
            timeout=1.0,
        )

        self.assertEqual(result.rule, "local_fallback")
        self.assertEqual(result.language_code, "auto")

    async def test_text_is_lowercased_before_dispatch(self) -> None:
        detector = MockLanguageDetector("google", language_code="en")
        engine = self._engine([detector])

        await engine.detect("Section Title", make_preferences())

        self.assertEqual(detector.calls, ["section title"])

    async def test_no_remote_detectors_uses_local_chain(self) -> None:
        engine = self._engine([], samples=[])

        result = await engine.detect("你好世界", make_preferences())

        self.assertEqual(result.rule, "local_only")
        self.assertEqual(result.language_code, "zh-CHS")
        self.assertFalse(result.confirmed)


class LocalLanguageDetectorTest(unittest.TestCase):
    def test_confirmed_statistical_result_for_preferred_language(self) -> None:
        detection = _local([("en", 0.93), ("fr", 0.05)]).detect("hello", ("zh-CHS", "en"))

        self.assertEqual(detection.chain_result.language_code, "en")
        self.assertTrue(detection.chain_result.confirmed)

    def test_non_preferred_statistical_result_falls_through_to_heuristic(self) -> None:
        detection = _local([("nl", 0.9)]).detect("hello world", ("zh-CHS", "en"))

        self.assertEqual(detection.chain_result.language_code, "en")
        self.assertFalse(detection.chain_result.confirmed)
        self.assertIsNone(detection.preferred_guess)

    def test_langdetect_backend_is_used_by_default(self) -> None:
        detection = LocalLanguageDetector().detect(
            "This is clearly an English sentence about the weather today.",
            ("zh-CHS", "en"),
        )

        self.assertEqual(detection.chain_result.language_code, "en")


if __name__ == "__main__":
    unittest.main()
