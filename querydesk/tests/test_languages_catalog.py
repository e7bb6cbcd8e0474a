from __future__ import annotations

import unittest

from querydesk.app.languages import (
    auto_selected_target,
    from_to_title,
    get_language_item,
    is_chinese,
    is_english_or_number,
    is_translation_too_long,
    is_valid_language_id,
    language_id_from_google,
    language_id_from_langdetect,
)
from querydesk.app.query.catalog import build_sort_order


class LanguagesTest(unittest.TestCase):
    def test_valid_language_ids_exclude_empty_and_auto(self) -> None:
        self.assertFalse(is_valid_language_id(""))
        self.assertFalse(is_valid_language_id("auto"))
        self.assertTrue(is_valid_language_id("fr"))

    def test_unknown_id_resolves_to_auto_item(self) -> None:
        self.assertEqual(get_language_item("xx").language_id, "auto")

    def test_external_codes_map_to_canonical_ids(self) -> None:
        self.assertEqual(language_id_from_langdetect("zh-cn"), "zh-CHS")
        self.assertEqual(language_id_from_langdetect("xx"), "")
        self.assertEqual(language_id_from_google("zh-TW"), "zh-CHT")
        self.assertEqual(language_id_from_google("zh"), "zh-CHS")
        self.assertEqual(language_id_from_google("EN"), "en")
        self.assertEqual(language_id_from_google("auto"), "")

    def test_auto_selected_target_swaps_preferred_languages(self) -> None:
        preferred = ("zh-CHS", "en")
        self.assertEqual(auto_selected_target("en", preferred), "zh-CHS")
        self.assertEqual(auto_selected_target("zh-CHS", preferred), "en")
        self.assertEqual(auto_selected_target("fr", preferred), "auto")

    def test_translation_length_threshold_depends_on_target(self) -> None:
        self.assertFalse(is_translation_too_long("字" * 45, "zh-CHS"))
        self.assertTrue(is_translation_too_long("字" * 46, "zh-CHT"))
        self.assertFalse(is_translation_too_long("a" * 95, "en"))
        self.assertTrue(is_translation_too_long("a" * 96, "fr"))

    def test_character_class_helpers(self) -> None:
        self.assertTrue(is_english_or_number("Hello, world 2024!"))
        self.assertFalse(is_english_or_number("café"))
        self.assertTrue(is_chinese("今天天气不错"))
        self.assertFalse(is_chinese("hello"))

    def test_from_to_title(self) -> None:
        self.assertEqual(
            from_to_title("en", "zh-CHS"),
            "English🇬🇧 --> Chinese-Simplified🇨🇳",
        )
        self.assertEqual(from_to_title("en", "zh-CHS", only_emoji=True), "🇬🇧 --> 🇨🇳")


class SortOrderTest(unittest.TestCase):
    def test_default_order_puts_dictionaries_first(self) -> None:
        self.assertEqual(
            build_sort_order(""),
            (
                "linguee",
                "youdao",
                "deepl",
                "google",
                "apple",
                "baidu",
                "tencent",
                "youdao_translate",
                "caiyun",
            ),
        )

    def test_manual_order_moves_named_services_forward(self) -> None:
        order = build_sort_order("Baidu, DeepL,tencent translate,unknown,baidu")

        self.assertEqual(
            order,
            (
                "linguee",
                "youdao",
                "baidu",
                "deepl",
                "tencent",
                "google",
                "apple",
                "youdao_translate",
                "caiyun",
            ),
        )
        self.assertEqual(len(order), len(set(order)))


if __name__ == "__main__":
    unittest.main()
