from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any

from querydesk.app.preferences import QueryPreferences
from querydesk.app.settings import Settings

_BASE_SETTINGS = Settings(
    service_name="querydesk",
    service_version="0.1.0-test",
    environment="test",
    log_level="INFO",
    host="127.0.0.1",
    port=8000,
    language1="zh-CHS",
    language2="en",
    max_input_length=1500,
    debounce_seconds=0.05,
    rate_limit_backoff_seconds=0.05,
    detection_deadline_seconds=0.3,
    detection_timeout_seconds=1.0,
    request_timeout_seconds=1.0,
    detector_mode="mock",
    enabled_detectors=("apple", "tencent", "baidu", "google"),
    authoritative_detector="apple",
    reference_detector="baidu",
    speed_optimized_detection=False,
    local_confirmed_confidence=0.8,
    local_low_confidence=0.2,
    provider_mode="mock",
    enable_linguee_dictionary=False,
    enable_youdao_dictionary=True,
    enable_deepl_translate=True,
    enable_google_translate=True,
    enable_apple_translate=False,
    enable_baidu_translate=False,
    enable_tencent_translate=False,
    enable_youdao_translate=False,
    enable_caiyun_translate=False,
    translation_order="",
    google_api_base_url="https://translate.example.test",
    deepl_api_base_url="https://deepl.example.test",
    deepl_api_key="test-key",
    auto_play_word_audio=False,
    audio_cache_dir=None,
    audio_player_command="",
    audio_url_template="https://audio.example.test/{word}",
    mock_provider_delay_seconds=0.0,
    mock_detector_delay_seconds=0.0,
)


def make_settings(**overrides: Any) -> Settings:
    return replace(_BASE_SETTINGS, **overrides)


def make_preferences(
    enabled_providers: tuple[str, ...] = ("youdao", "deepl", "google"),
    **overrides: Any,
) -> QueryPreferences:
    values: dict[str, Any] = {
        "language1": "zh-CHS",
        "language2": "en",
        "enabled_providers": enabled_providers,
    }
    values.update(overrides)
    return QueryPreferences(**values)


def quiet_logger(name: str = "querydesk.test") -> logging.Logger:
    logger = logging.getLogger(name)
    logger.setLevel(logging.CRITICAL)
    return logger
