from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

DICTIONARY_PROVIDER_IDS = ("linguee", "youdao")
TRANSLATION_PROVIDER_IDS = (
    "deepl",
    "google",
    "apple",
    "baidu",
    "tencent",
    "youdao_translate",
    "caiyun",
)
DETECTOR_IDS = ("apple", "tencent", "baidu", "google")


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def load_env_file(env_path: Path) -> None:
    if not env_path.exists():
        return

    for raw_line in env_path.read_text(encoding="utf-8").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        if line.startswith("export "):
            line = line[len("export ") :]

        key, separator, value = line.partition("=")
        if not separator:
            continue

        env_key = key.strip()
        if not env_key:
            continue

        env_value = _strip_quotes(value.strip())
        os.environ.setdefault(env_key, env_value)


def _resolve_project_path(project_root: Path, raw_path: str | None) -> str | None:
    if raw_path is None:
        return None
    candidate = Path(raw_path.strip()).expanduser()
    if not raw_path.strip():
        return None
    if candidate.is_absolute():
        return str(candidate)
    return str((project_root / candidate).resolve())


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_mode(
    key: str,
    default: str,
    allowed: tuple[str, ...],
) -> str:
    value = os.getenv(key, default).strip().lower()
    if value not in allowed:
        allowed_csv = ", ".join(allowed)
        raise ValueError(f"{key} must be one of: {allowed_csv}")
    return value


def _env_csv(key: str, default: str, allowed: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(key, default)
    items: list[str] = []
    for part in raw.split(","):
        item = part.strip().lower()
        if not item:
            continue
        if item not in allowed:
            allowed_csv = ", ".join(allowed)
            raise ValueError(f"{key} entries must be among: {allowed_csv}")
        if item not in items:
            items.append(item)
    return tuple(items)


@dataclass(frozen=True)
class Settings:
    service_name: str
    service_version: str
    environment: str
    log_level: str
    host: str
    port: int
    language1: str
    language2: str
    max_input_length: int
    debounce_seconds: float
    rate_limit_backoff_seconds: float
    detection_deadline_seconds: float
    detection_timeout_seconds: float
    request_timeout_seconds: float
    detector_mode: str
    enabled_detectors: tuple[str, ...]
    authoritative_detector: str
    reference_detector: str
    speed_optimized_detection: bool
    local_confirmed_confidence: float
    local_low_confidence: float
    provider_mode: str
    enable_linguee_dictionary: bool
    enable_youdao_dictionary: bool
    enable_deepl_translate: bool
    enable_google_translate: bool
    enable_apple_translate: bool
    enable_baidu_translate: bool
    enable_tencent_translate: bool
    enable_youdao_translate: bool
    enable_caiyun_translate: bool
    translation_order: str
    google_api_base_url: str
    deepl_api_base_url: str
    deepl_api_key: str | None
    auto_play_word_audio: bool
    audio_cache_dir: str | None
    audio_player_command: str
    audio_url_template: str
    mock_provider_delay_seconds: float = 0.05
    mock_detector_delay_seconds: float = 0.02
    realtime_enabled: bool = True
    realtime_client_queue_maxsize: int = 128

    @property
    def deepl_key_configured(self) -> bool:
        return bool(self.deepl_api_key)

    @property
    def preferred_languages(self) -> tuple[str, str]:
        return (self.language1, self.language2)

    def enabled_providers(self) -> tuple[str, ...]:
        flags = {
            "linguee": self.enable_linguee_dictionary,
            "youdao": self.enable_youdao_dictionary,
            "deepl": self.enable_deepl_translate,
            "google": self.enable_google_translate,
            "apple": self.enable_apple_translate,
            "baidu": self.enable_baidu_translate,
            "tencent": self.enable_tencent_translate,
            "youdao_translate": self.enable_youdao_translate,
            "caiyun": self.enable_caiyun_translate,
        }
        return tuple(
            provider_id
            for provider_id in DICTIONARY_PROVIDER_IDS + TRANSLATION_PROVIDER_IDS
            if flags[provider_id]
        )

    def redacted(self) -> dict[str, object]:
        return {
            "service_name": self.service_name,
            "service_version": self.service_version,
            "environment": self.environment,
            "log_level": self.log_level,
            "host": self.host,
            "port": self.port,
            "language1": self.language1,
            "language2": self.language2,
            "max_input_length": self.max_input_length,
            "debounce_seconds": self.debounce_seconds,
            "rate_limit_backoff_seconds": self.rate_limit_backoff_seconds,
            "detection_deadline_seconds": self.detection_deadline_seconds,
            "detection_timeout_seconds": self.detection_timeout_seconds,
            "request_timeout_seconds": self.request_timeout_seconds,
            "detector_mode": self.detector_mode,
            "enabled_detectors": list(self.enabled_detectors),
            "authoritative_detector": self.authoritative_detector,
            "reference_detector": self.reference_detector,
            "speed_optimized_detection": self.speed_optimized_detection,
            "local_confirmed_confidence": self.local_confirmed_confidence,
            "local_low_confidence": self.local_low_confidence,
            "provider_mode": self.provider_mode,
            "enabled_providers": list(self.enabled_providers()),
            "translation_order": self.translation_order,
            "google_api_base_url": self.google_api_base_url,
            "deepl_api_base_url": self.deepl_api_base_url,
            "deepl_key_configured": self.deepl_key_configured,
            "auto_play_word_audio": self.auto_play_word_audio,
            "audio_cache_dir_configured": bool(self.audio_cache_dir),
            "audio_player_command": self.audio_player_command,
            "mock_provider_delay_seconds": self.mock_provider_delay_seconds,
            "mock_detector_delay_seconds": self.mock_detector_delay_seconds,
            "realtime_enabled": self.realtime_enabled,
            "realtime_client_queue_maxsize": self.realtime_client_queue_maxsize,
        }


def build_settings(project_root: Path) -> Settings:
    load_env_file(project_root / ".env")

    return Settings(
        service_name=os.getenv("QUERYDESK_SERVICE_NAME", "querydesk"),
        service_version=os.getenv("QUERYDESK_SERVICE_VERSION", "0.1.0"),
        environment=os.getenv("QUERYDESK_ENV", "development"),
        log_level=os.getenv("QUERYDESK_LOG_LEVEL", "INFO").upper(),
        host=os.getenv("QUERYDESK_HOST", "127.0.0.1"),
        port=int(os.getenv("QUERYDESK_PORT", "8000")),
        language1=os.getenv("QUERY_LANGUAGE_1", "zh-CHS").strip(),
        language2=os.getenv("QUERY_LANGUAGE_2", "en").strip(),
        max_input_length=int(os.getenv("QUERY_MAX_INPUT_LENGTH", "1500")),
        debounce_seconds=float(os.getenv("QUERY_DEBOUNCE_SECONDS", "0.6")),
        rate_limit_backoff_seconds=float(
            os.getenv("QUERY_RATE_LIMIT_BACKOFF_SECONDS", "0.6")
        ),
        detection_deadline_seconds=float(
            os.getenv("DETECTION_DEADLINE_SECONDS", "2.0")
        ),
        detection_timeout_seconds=float(
            os.getenv("DETECTION_TIMEOUT_SECONDS", "6.0")
        ),
        request_timeout_seconds=float(os.getenv("REQUEST_TIMEOUT_SECONDS", "5.0")),
        detector_mode=_env_mode("DETECTOR_MODE", "live", ("live", "mock")),
        enabled_detectors=_env_csv(
            "ENABLED_DETECTORS",
            "apple,tencent,baidu,google",
            DETECTOR_IDS,
        ),
        authoritative_detector=os.getenv("AUTHORITATIVE_DETECTOR", "apple").strip().lower(),
        reference_detector=os.getenv("REFERENCE_DETECTOR", "baidu").strip().lower(),
        speed_optimized_detection=_env_bool("SPEED_OPTIMIZED_DETECTION", False),
        local_confirmed_confidence=float(
            os.getenv("LOCAL_DETECT_CONFIRMED_CONFIDENCE", "0.8")
        ),
        local_low_confidence=float(os.getenv("LOCAL_DETECT_LOW_CONFIDENCE", "0.2")),
        provider_mode=_env_mode("PROVIDER_MODE", "live", ("live", "mock")),
        enable_linguee_dictionary=_env_bool("ENABLE_LINGUEE_DICTIONARY", False),
        enable_youdao_dictionary=_env_bool("ENABLE_YOUDAO_DICTIONARY", True),
        enable_deepl_translate=_env_bool("ENABLE_DEEPL_TRANSLATE", True),
        enable_google_translate=_env_bool("ENABLE_GOOGLE_TRANSLATE", True),
        enable_apple_translate=_env_bool("ENABLE_APPLE_TRANSLATE", False),
        enable_baidu_translate=_env_bool("ENABLE_BAIDU_TRANSLATE", False),
        enable_tencent_translate=_env_bool("ENABLE_TENCENT_TRANSLATE", False),
        enable_youdao_translate=_env_bool("ENABLE_YOUDAO_TRANSLATE", False),
        enable_caiyun_translate=_env_bool("ENABLE_CAIYUN_TRANSLATE", False),
        translation_order=os.getenv("TRANSLATION_ORDER", ""),
        google_api_base_url=os.getenv(
            "GOOGLE_TRANSLATE_BASE_URL",
            "https://translate.googleapis.com",
        ),
        deepl_api_base_url=os.getenv("DEEPL_API_BASE_URL", "https://api-free.deepl.com"),
        deepl_api_key=os.getenv("DEEPL_API_KEY"),
        auto_play_word_audio=_env_bool("AUTO_PLAY_WORD_AUDIO", False),
        audio_cache_dir=_resolve_project_path(
            project_root,
            os.getenv("AUDIO_CACHE_DIR", ".cache/audio"),
        ),
        audio_player_command=os.getenv("AUDIO_PLAYER_COMMAND", "").strip(),
        audio_url_template=os.getenv(
            "AUDIO_URL_TEMPLATE",
            "https://dict.youdao.com/dictvoice?type=2&audio={word}",
        ),
        mock_provider_delay_seconds=float(
            os.getenv("MOCK_PROVIDER_DELAY_SECONDS", "0.05")
        ),
        mock_detector_delay_seconds=float(
            os.getenv("MOCK_DETECTOR_DELAY_SECONDS", "0.02")
        ),
        realtime_enabled=_env_bool("REALTIME_ENABLED", True),
        realtime_client_queue_maxsize=int(
            os.getenv("REALTIME_CLIENT_QUEUE_MAXSIZE", "128")
        ),
    )
