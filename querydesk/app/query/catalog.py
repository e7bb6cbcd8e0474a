from __future__ import annotations

from querydesk.app.query.types import ProviderKind, ProviderSpec

PROVIDER_SPECS: dict[str, ProviderSpec] = {
    spec.provider_id: spec
    for spec in (
        ProviderSpec("linguee", ProviderKind.DICTIONARY, "Linguee Dictionary", headline_from="deepl"),
        ProviderSpec("youdao", ProviderKind.DICTIONARY, "Youdao Dictionary"),
        ProviderSpec("deepl", ProviderKind.TRANSLATION, "DeepL Translate"),
        ProviderSpec("google", ProviderKind.TRANSLATION, "Google Translate"),
        ProviderSpec("apple", ProviderKind.TRANSLATION, "Apple Translate"),
        ProviderSpec("baidu", ProviderKind.TRANSLATION, "Baidu Translate"),
        ProviderSpec("tencent", ProviderKind.TRANSLATION, "Tencent Translate"),
        ProviderSpec("youdao_translate", ProviderKind.TRANSLATION, "Youdao Translate"),
        ProviderSpec("caiyun", ProviderKind.TRANSLATION, "Caiyun Translate"),
    )
}

DEFAULT_DICTIONARY_ORDER = ("linguee", "youdao")
DEFAULT_TRANSLATION_ORDER = (
    "deepl",
    "google",
    "apple",
    "baidu",
    "tencent",
    "youdao_translate",
    "caiyun",
)


def _translation_aliases() -> dict[str, str]:
    aliases: dict[str, str] = {}
    for provider_id in DEFAULT_TRANSLATION_ORDER:
        title = PROVIDER_SPECS[provider_id].title.lower()
        aliases[provider_id] = provider_id
        aliases[title] = provider_id
        aliases[title.removesuffix(" translate")] = provider_id
    return aliases


def build_sort_order(manual_order: str) -> tuple[str, ...]:
    """Dictionaries first, then the user's translation order, then the rest.

    The manual order is a comma separated list of names such as
    ``"Baidu,DeepL,Tencent"``; unknown or repeated names are ignored.
    """
    aliases = _translation_aliases()
    remaining = list(DEFAULT_TRANSLATION_ORDER)
    user_order: list[str] = []
    for raw_name in manual_order.split(","):
        provider_id = aliases.get(raw_name.strip().lower())
        if provider_id is None or provider_id in user_order:
            continue
        user_order.append(provider_id)
        remaining.remove(provider_id)
    return DEFAULT_DICTIONARY_ORDER + tuple(user_order) + tuple(remaining)


def provider_title(provider_id: str) -> str:
    spec = PROVIDER_SPECS.get(provider_id)
    return spec.title if spec else provider_id


def provider_kind(provider_id: str) -> ProviderKind:
    spec = PROVIDER_SPECS.get(provider_id)
    return spec.kind if spec else ProviderKind.TRANSLATION
