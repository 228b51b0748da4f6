from __future__ import annotations

import logging
from typing import Dict, List, Mapping, Optional

from .cache import TTLCache
from .fetcher import SubtitleFetcher
from .metadata import NO_TARGET, SeasonEpisodeTarget, parse_stremio_id
from .search import SubtitleSearch
from .settings import Settings
from .sources.titrari import TitrariClient, build_http_client

log = logging.getLogger("ro_subtitles.service")

ID_PREFIX = "titrari"
STREAM_TITLE = "Titrari.ro • Direct SRT"
SUPPORTED_TYPES = {"movie", "series"}


def subtitle_url(base_url: str, subtitle_id: str, target: SeasonEpisodeTarget) -> str:
    return f"{base_url.rstrip('/')}/subtitle/{subtitle_id}.srt{target.query()}"


def parse_addon_id(raw_id: str) -> Optional[str]:
    """``titrari:123`` -> ``123``; anything else -> ``None``."""
    prefix, _, subtitle_id = (raw_id or "").partition(":")
    if prefix != ID_PREFIX or not subtitle_id:
        return None
    return subtitle_id.split(":", 1)[0]


class AddonService:
    """Operations the Stremio host calls, on top of search and fetch."""

    def __init__(self, search: SubtitleSearch, fetcher: SubtitleFetcher, client: Optional[TitrariClient] = None) -> None:
        self.search = search
        self.fetcher = fetcher
        self._client = client

    async def list_subtitles(self, media_type: str, raw_id: str, base_url: str) -> List[Dict[str, str]]:
        stremio_id = parse_stremio_id(raw_id)
        target = stremio_id.target if stremio_id.target.is_complete else NO_TARGET
        candidates = await self.search.search(stremio_id.base, media_type, target)
        return [
            {
                "id": f"{ID_PREFIX}:{candidate.internal_id}",
                "lang": candidate.lang,
                "url": subtitle_url(base_url, candidate.internal_id, target),
                "title": candidate.title,
            }
            for candidate in candidates
        ]

    def list_streams(self, raw_id: str, extra: Mapping[str, str], base_url: str) -> List[Dict[str, object]]:
        subtitle_id = parse_addon_id(raw_id)
        if subtitle_id is None:
            return []
        target = SeasonEpisodeTarget.from_values(extra.get("season"), extra.get("episode"))
        return [
            {
                "url": subtitle_url(base_url, subtitle_id, target),
                "title": STREAM_TITLE,
                "behaviorHints": {"notWebReady": False},
            }
        ]

    async def subtitle_text(self, subtitle_id: str, season: Optional[str] = None, episode: Optional[str] = None) -> Optional[str]:
        target = SeasonEpisodeTarget.from_values(season, episode)
        return await self.fetcher.fetch_text(subtitle_id, target)

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()


def build_service(settings: Settings) -> AddonService:
    """Composition root: one shared cache and HTTP client per process."""
    cache = TTLCache(default_ttl=None, max_size=settings.cache_max_size)
    client = TitrariClient(build_http_client(settings))
    search = SubtitleSearch(client, cache, ttl=settings.search_cache_ttl, empty_ttl=settings.empty_cache_ttl)
    fetcher = SubtitleFetcher(client, cache, ttl=settings.text_cache_ttl)
    return AddonService(search, fetcher, client=client)
