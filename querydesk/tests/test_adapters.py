from __future__ import annotations

import asyncio
import tempfile
import unittest
from pathlib import Path

import httpx

from querydesk.app.audio.player import WordAudioPlayer
from querydesk.app.detection.detectors.google import GoogleLanguageDetector
from querydesk.app.detection.types import DetectorFailure
from querydesk.app.query.providers.base import ProviderFailure, ProviderRateLimited
from querydesk.app.query.providers.deepl import DeepLTranslateProvider
from querydesk.app.query.providers.google import GoogleTranslateProvider
from querydesk.app.query.types import QueryRequest
from querydesk.tests.support import make_settings, quiet_logger


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class GoogleAdaptersTest(unittest.IsolatedAsyncioTestCase):
    async def test_translation_segments_are_joined_and_split_by_line(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(
                200,
                json=[[["你好，", "Hello, ", None], ["世界\n", "world\n", None], ["再见", "bye", None]], None, "en"],
            )

        async with _client(handler) as client:
            provider = GoogleTranslateProvider(make_settings(), client=client)
            response = await provider.translate(QueryRequest("Hello, world\nbye", "auto", "zh-CHS", 1))

        self.assertEqual(response.translations, ("你好，世界", "再见"))
        self.assertEqual(seen[0].url.params["sl"], "auto")
        self.assertEqual(seen[0].url.params["tl"], "zh-CN")

    async def test_status_codes_map_to_typed_errors(self) -> None:
        request = QueryRequest("hello", "en", "zh-CHS", 1)
        async with _client(lambda _: httpx.Response(429)) as client:
            with self.assertRaises(ProviderRateLimited):
                await GoogleTranslateProvider(make_settings(), client=client).translate(request)
        async with _client(lambda _: httpx.Response(503)) as client:
            with self.assertRaises(ProviderFailure) as ctx:
                await GoogleTranslateProvider(make_settings(), client=client).translate(request)
        self.assertEqual(ctx.exception.code, "503")

    async def test_detector_reports_confirmed_language(self) -> None:
        payload = [[["hallo", "hello", None]], None, "de", None, None, None, 0.93]
        async with _client(lambda _: httpx.Response(200, json=payload)) as client:
            candidate = await GoogleLanguageDetector(make_settings(), client=client).detect("hallo")

        self.assertEqual(candidate.language_code, "de")
        self.assertEqual(candidate.source_id, "google")
        self.assertTrue(candidate.confirmed)

    async def test_detector_failure_is_typed(self) -> None:
        async with _client(lambda _: httpx.Response(500)) as client:
            with self.assertRaises(DetectorFailure):
                await GoogleLanguageDetector(make_settings(), client=client).detect("hallo")


class DeepLProviderTest(unittest.IsolatedAsyncioTestCase):
    async def test_requires_api_key(self) -> None:
        with self.assertRaises(ValueError):
            DeepLTranslateProvider(make_settings(deepl_api_key=None))

    async def test_translate_sends_key_and_language_codes(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"translations": [{"text": "Bonjour"}]})

        async with _client(handler) as client:
            provider = DeepLTranslateProvider(make_settings(), client=client)
            response = await provider.translate(QueryRequest("Hello", "en", "fr", 3))

        self.assertEqual(response.translations, ("Bonjour",))
        self.assertEqual(seen[0].headers["Authorization"], "DeepL-Auth-Key test-key")
        self.assertIn(b'"target_lang":"FR"', seen[0].content.replace(b" ", b""))

    async def test_quota_and_throttling(self) -> None:
        request = QueryRequest("Hello", "en", "fr", 3)
        async with _client(lambda _: httpx.Response(456)) as client:
            with self.assertRaises(ProviderFailure) as ctx:
                await DeepLTranslateProvider(make_settings(), client=client).translate(request)
        self.assertEqual(ctx.exception.code, "456")
        async with _client(lambda _: httpx.Response(429)) as client:
            with self.assertRaises(ProviderRateLimited):
                await DeepLTranslateProvider(make_settings(), client=client).translate(request)

    def test_supports_only_mapped_languages(self) -> None:
        provider = DeepLTranslateProvider(make_settings())

        self.assertTrue(provider.supports("auto", "zh-CHS"))
        self.assertFalse(provider.supports("en", "th"))


class WordAudioPlayerTest(unittest.IsolatedAsyncioTestCase):
    async def test_download_is_cached_by_word(self) -> None:
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(200, content=b"ID3-audio")

        with tempfile.TemporaryDirectory() as cache_dir:
            settings = make_settings(audio_cache_dir=cache_dir)
            async with _client(handler) as client:
                player = WordAudioPlayer(settings, quiet_logger(), client=client)
                player.download_and_play("good", "en")
                await player.wait_idle()
                player.download_and_play("good", "en")
                await player.wait_idle()

                path = player.cache_path("good", "en")
                self.assertTrue(path.exists())
                self.assertEqual(path.read_bytes(), b"ID3-audio")

        self.assertEqual(len(requests), 1)
        self.assertEqual(player.downloads, 1)
        self.assertEqual(player.cache_hits, 1)
        self.assertEqual(player.playbacks, 0)

    async def test_concurrent_requests_share_one_download(self) -> None:
        requests: list[httpx.Request] = []

        async def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            await asyncio.sleep(0.05)
            return httpx.Response(200, content=b"ID3-audio")

        with tempfile.TemporaryDirectory() as cache_dir:
            settings = make_settings(audio_cache_dir=cache_dir)
            async with _client(handler) as client:
                player = WordAudioPlayer(settings, quiet_logger(), client=client)
                player.download_and_play("good", "en")
                player.download_and_play("good", "en")
                await player.wait_idle()

                path = player.cache_path("good", "en")
                self.assertEqual(path.read_bytes(), b"ID3-audio")
                self.assertEqual(list(Path(cache_dir).glob("*.part")), [])

        self.assertEqual(len(requests), 1)
        self.assertEqual(player.downloads, 1)
        self.assertEqual(player.cache_hits, 1)
        self.assertIsNone(player.last_error)
        self.assertEqual(player.snapshot()["downloading"], 0)

    async def test_download_failure_is_logged_not_raised(self) -> None:
        with tempfile.TemporaryDirectory() as cache_dir:
            settings = make_settings(audio_cache_dir=cache_dir)
            async with _client(lambda _: httpx.Response(404)) as client:
                player = WordAudioPlayer(settings, quiet_logger(), client=client)
                player.download_and_play("zzz", "en")
                await player.wait_idle()

        self.assertIsNotNone(player.last_error)
        self.assertEqual(player.downloads, 0)


if __name__ == "__main__":
    unittest.main()
