from __future__ import annotations

import asyncio
import hashlib
import logging
import shlex
import uuid
from pathlib import Path
from urllib.parse import quote

import httpx

from querydesk.app.settings import Settings


class WordAudioPlayer:
    """Downloads word pronunciations into a local cache and plays them.

    ``download_and_play`` never raises to its caller; every failure ends up
    in the log and in ``snapshot()``.
    """

    def __init__(
        self,
        settings: Settings,
        logger: logging.Logger,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._settings = settings
        self._logger = logger
        self._client = client
        self._tasks: set[asyncio.Task[None]] = set()
        self._downloading: dict[Path, asyncio.Future[None]] = {}
        self.downloads = 0
        self.cache_hits = 0
        self.playbacks = 0
        self.last_error: str | None = None

    def cache_path(self, word: str, language_id: str) -> Path | None:
        if not self._settings.audio_cache_dir:
            return None
        digest = hashlib.md5(f"{language_id}:{word}".encode("utf-8")).hexdigest()
        return Path(self._settings.audio_cache_dir) / f"{digest}.mp3"

    def download_and_play(self, word: str, language_id: str) -> None:
        task = asyncio.create_task(
            self._download_and_play(word, language_id),
            name="word-audio",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def wait_idle(self) -> None:
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def stop(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await self.wait_idle()

    def snapshot(self) -> dict[str, object]:
        return {
            "cache_configured": bool(self._settings.audio_cache_dir),
            "player_configured": bool(self._settings.audio_player_command.strip()),
            "pending": len(self._tasks),
            "downloading": len(self._downloading),
            "downloads": self.downloads,
            "cache_hits": self.cache_hits,
            "playbacks": self.playbacks,
            "last_error": self.last_error,
        }

    async def _download_and_play(self, word: str, language_id: str) -> None:
        path = self.cache_path(word, language_id)
        if path is None:
            self._log("word_audio_skipped", word=word, reason="audio_cache_unconfigured")
            return

        try:
            if path.exists():
                self.cache_hits += 1
            elif path in self._downloading:
                # same word already on its way, play it once it lands
                await asyncio.shield(self._downloading[path])
                self.cache_hits += 1
            else:
                download = asyncio.ensure_future(self._download(word, path))
                self._downloading[path] = download
                try:
                    await download
                finally:
                    self._downloading.pop(path, None)
            await self._play(path)
        except asyncio.CancelledError:
            raise
        except (httpx.HTTPError, OSError) as exc:
            self.last_error = str(exc)
            self._logger.warning(
                "word_audio_failed",
                extra={
                    "event": "word_audio_failed",
                    "service_name": self._settings.service_name,
                    "service_version": self._settings.service_version,
                    "word": word,
                    "language_id": language_id,
                    "reason": str(exc),
                },
            )

    async def _download(self, word: str, path: Path) -> None:
        url = self._settings.audio_url_template.format(word=quote(word))
        timeout = httpx.Timeout(self._settings.request_timeout_seconds)
        if self._client is not None:
            response = await self._client.get(url, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
                response = await client.get(url)
        response.raise_for_status()

        path.parent.mkdir(parents=True, exist_ok=True)
        partial = path.with_name(f"{path.name}.{uuid.uuid4().hex}.part")
        partial.write_bytes(response.content)
        partial.replace(path)
        self.downloads += 1
        self._log("word_audio_downloaded", word=word, bytes=len(response.content))

    async def _play(self, path: Path) -> None:
        command = shlex.split(self._settings.audio_player_command)
        if not command:
            return

        process = await asyncio.create_subprocess_exec(
            *command,
            str(path),
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.DEVNULL,
        )
        return_code = await process.wait()
        if return_code != 0:
            raise OSError(f"audio player exited with status {return_code}")
        self.playbacks += 1

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
