from __future__ import annotations

import re
from dataclasses import dataclass

AUTO_LANGUAGE_ID = "auto"

MAX_LINE_LENGTH_CHINESE = 45
MAX_LINE_LENGTH_ENGLISH = 95

_CHINESE_PATTERN = re.compile(r"[\u4e00-\u9fa5]")
_ENGLISH_OR_NUMBER_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")
_ENGLISH_PUNCTUATION_PATTERN = re.compile(
    r"[\u2000-\u206F\u2E00-\u2E7F\\'!\"#$%&()*+,\-./:;<=>?@\[\]^_`{|}~\u00b7]"
)
_CHINESE_PUNCTUATION_PATTERN = re.compile(
    "[。？！，、；：“”‘’（）"
    "《》〈〉【】『』「」﹃﹄"
    "〔〕…—～﹏￥]"
)
_WHITESPACE_PATTERN = re.compile(r"\s")


@dataclass(frozen=True)
class LanguageItem:
    language_id: str
    english_name: str
    emoji: str
    langdetect_ids: tuple[str, ...]
    google_id: str
    deepl_id: str | None = None

    def to_dict(self) -> dict[str, object]:
        return {
            "language_id": self.language_id,
            "english_name": self.english_name,
            "emoji": self.emoji,
        }


LANGUAGES: tuple[LanguageItem, ...] = (
    LanguageItem(AUTO_LANGUAGE_ID, "Auto Language", "🌐", (), "auto"),
    LanguageItem("zh-CHS", "Chinese-Simplified", "🇨🇳", ("zh-cn",), "zh-CN", "ZH"),
    LanguageItem("zh-CHT", "Chinese-Traditional", "🇭🇰", ("zh-tw",), "zh-TW", "ZH"),
    LanguageItem("en", "English", "🇬🇧", ("en",), "en", "EN"),
    LanguageItem("ja", "Japanese", "🇯🇵", ("ja",), "ja", "JA"),
    LanguageItem("ko", "Korean", "🇰🇷", ("ko",), "ko", "KO"),
    LanguageItem("fr", "French", "🇫🇷", ("fr",), "fr", "FR"),
    LanguageItem("es", "Spanish", "🇪🇸", ("es",), "es", "ES"),
    LanguageItem("it", "Italian", "🇮🇹", ("it",), "it", "IT"),
    LanguageItem("de", "German", "🇩🇪", ("de",), "de", "DE"),
    LanguageItem("pt", "Portuguese", "🇵🇹", ("pt",), "pt", "PT"),
    LanguageItem("ru", "Russian", "🇷🇺", ("ru",), "ru", "RU"),
    LanguageItem("nl", "Dutch", "🇳🇱", ("nl",), "nl", "NL"),
    LanguageItem("pl", "Polish", "🇵🇱", ("pl",), "pl", "PL"),
    LanguageItem("sv", "Swedish", "🇸🇪", ("sv",), "sv", "SV"),
    LanguageItem("tr", "Turkish", "🇹🇷", ("tr",), "tr", "TR"),
    LanguageItem("uk", "Ukrainian", "🇺🇦", ("uk",), "uk", "UK"),
    LanguageItem("ar", "Arabic", "🇸🇦", ("ar",), "ar"),
    LanguageItem("th", "Thai", "🇹🇭", ("th",), "th"),
    LanguageItem("vi", "Vietnamese", "🇻🇳", ("vi",), "vi"),
    LanguageItem("id", "Indonesian", "🇮🇩", ("id",), "id", "ID"),
    LanguageItem("hi", "Hindi", "🇮🇳", ("hi",), "hi"),
)

_BY_ID = {item.language_id: item for item in LANGUAGES}
_BY_LANGDETECT = {code: item for item in LANGUAGES for code in item.langdetect_ids}
_BY_GOOGLE = {item.google_id.lower(): item for item in LANGUAGES}


def get_language_item(language_id: str) -> LanguageItem:
    return _BY_ID.get(language_id, _BY_ID[AUTO_LANGUAGE_ID])


def is_known_language_id(language_id: str) -> bool:
    return language_id in _BY_ID


def is_valid_language_id(language_id: str) -> bool:
    """False for the empty string and the ``auto`` sentinel."""
    return bool(language_id) and language_id != AUTO_LANGUAGE_ID


def language_id_from_langdetect(code: str) -> str:
    item = _BY_LANGDETECT.get(code.lower())
    return item.language_id if item else ""


def language_id_from_google(code: str) -> str:
    lowered = code.strip().lower()
    item = _BY_GOOGLE.get(lowered)
    if item is None and lowered.startswith("zh"):
        item = _BY_ID["zh-CHS"]
    if item is None:
        item = _BY_GOOGLE.get(lowered.split("-")[0])
    return item.language_id if item and item.language_id != AUTO_LANGUAGE_ID else ""


def is_preferred_language(language_id: str, preferred: tuple[str, str]) -> bool:
    return is_valid_language_id(language_id) and language_id in preferred


def preferred_contains_english(preferred: tuple[str, str]) -> bool:
    return "en" in preferred


def preferred_contains_chinese(preferred: tuple[str, str]) -> bool:
    return any(language_id.startswith("zh") for language_id in preferred)


def auto_selected_target(from_language: str, preferred: tuple[str, str]) -> str:
    """Pick the other preferred language when source and target collide."""
    first, second = preferred
    if from_language == first:
        return second
    if from_language == second:
        return first
    return AUTO_LANGUAGE_ID


def from_to_title(from_language: str, to_language: str, only_emoji: bool = False) -> str:
    source = get_language_item(from_language)
    target = get_language_item(to_language)
    if only_emoji:
        return f"{source.emoji} --> {target.emoji}"
    return f"{source.english_name}{source.emoji} --> {target.english_name}{target.emoji}"


def remove_punctuation(text: str) -> str:
    without_chinese = _CHINESE_PUNCTUATION_PATTERN.sub("", text)
    return _ENGLISH_PUNCTUATION_PATTERN.sub("", without_chinese)


def is_english_or_number(text: str) -> bool:
    pure_text = remove_punctuation(_WHITESPACE_PATTERN.sub("", text))
    return bool(_ENGLISH_OR_NUMBER_PATTERN.match(pure_text))


def is_chinese(text: str) -> bool:
    return bool(_CHINESE_PATTERN.search(text))


def is_translation_too_long(translation: str, to_language: str) -> bool:
    if to_language.startswith("zh"):
        return len(translation) > MAX_LINE_LENGTH_CHINESE
    return len(translation) > MAX_LINE_LENGTH_ENGLISH
