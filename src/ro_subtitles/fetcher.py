from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

from .cache import SingleFlight, SubtitleCache
from .encoding import normalize
from .errors import NotFoundError, SubtitleError
from .extract import ArchiveKind, open_archive
from .matching import select_best
from .metadata import SeasonEpisodeTarget
from .text import prepare_subtitle_text

log = logging.getLogger("ro_subtitles.fetcher")


class SubtitleDownloader(Protocol):
    async def download(self, subtitle_id: str) -> bytes:
        ...


def text_cache_key(subtitle_id: str, target: SeasonEpisodeTarget) -> str:
    season = target.season if target.is_complete else ""
    episode = target.episode if target.is_complete else ""
    return f"srt:{subtitle_id}:{season}:{episode}"


def decode_payload(data: bytes, target: SeasonEpisodeTarget) -> str:
    """Turn a downloaded payload into subtitle text.

    Raises ``ArchiveExtractionError`` for unreadable archives and
    ``NotFoundError`` when nothing usable is inside.
    """
    with open_archive(data) as archive:
        if archive.kind is ArchiveKind.PLAIN:
            name = ""
            raw = data
        else:
            entries = archive.entries()
            entry = select_best(target, entries, key=lambda e: e.basename)
            if entry is None:
                raise NotFoundError(f"{archive.kind.value} archive has no .srt/.sub entries")
            log.debug("Selected %r out of %d entries", entry.name, len(entries))
            name = entry.name
            raw = archive.read(entry)

    text = prepare_subtitle_text(normalize(raw), name)
    if not text.strip():
        raise NotFoundError("Subtitle file is empty")
    return text


class SubtitleFetcher:
    """Download, unpack, decode and cache one subtitle."""

    def __init__(self, source: SubtitleDownloader, cache: SubtitleCache, ttl: Optional[float] = None) -> None:
        self._source = source
        self._cache = cache
        self._ttl = ttl
        self._inflight = SingleFlight()

    async def fetch_text(self, subtitle_id: str, target: SeasonEpisodeTarget) -> Optional[str]:
        key = text_cache_key(subtitle_id, target)
        cached = self._cache.get(key)
        if cached is not None:
            return cached
        return await self._inflight.run(key, lambda: self._resolve(key, subtitle_id, target))

    async def _resolve(self, key: str, subtitle_id: str, target: SeasonEpisodeTarget) -> Optional[str]:
        try:
            data = await self._source.download(subtitle_id)
            text = await asyncio.to_thread(decode_payload, data, target)
        except SubtitleError as exc:
            log.warning("Subtitle %s unavailable: %s", subtitle_id, exc)
            return None

        self._cache.set(key, text, ttl=self._ttl)
        log.info("Cached subtitle %s (%d chars)", key, len(text))
        return text
