# -*- coding: utf-8 -*-
"""
titrari.ro client: catalog search page and archive download by id.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Optional

import httpx

from ..errors import NetworkError
from ..settings import Settings

log = logging.getLogger("ro_subtitles.sources.titrari")

SEARCH_PATH = "/index.php"
DOWNLOAD_PATH = "/get.php"

# Fixed advanced-search form values; z5 carries the IMDb number.
SEARCH_PARAMS = {
    "page": "numaicautamcaneiesepenas",
    "z7": "",
    "z2": "",
    "z3": "-1",
    "z4": "-1",
    "z8": "1",
    "z9": "All",
    "z11": "0",
    "z6": "0",
}


@dataclass
class SearchPage:
    body: str
    content_type: str = ""

    @property
    def is_json(self) -> bool:
        return "json" in self.content_type.lower()


def build_headers(settings: Settings) -> Dict[str, str]:
    """Return realistic browser-like headers."""
    return {
        "User-Agent": settings.user_agent,
        "Accept-Language": settings.accept_language,
        "Referer": settings.source_base_url.rstrip("/") + "/",
    }


def build_http_client(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> httpx.AsyncClient:
    return httpx.AsyncClient(
        base_url=settings.source_base_url,
        headers=build_headers(settings),
        timeout=settings.request_timeout,
        follow_redirects=True,
        transport=transport,
    )


class TitrariClient:
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def _get(self, path: str, params: Dict[str, str]) -> httpx.Response:
        try:
            response = await self._client.get(path, params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(f"{path} answered {exc.response.status_code}") from exc
        except httpx.HTTPError as exc:
            raise NetworkError(f"{path} failed: {exc.__class__.__name__}: {exc}") from exc
        log.debug("[titrari] %s %s -> %s (%d bytes)", path, params, response.status_code, len(response.content))
        return response

    async def search_page(self, imdb_number: str) -> SearchPage:
        params = dict(SEARCH_PARAMS, z5=imdb_number)
        response = await self._get(SEARCH_PATH, params)
        return SearchPage(body=response.text, content_type=response.headers.get("content-type", ""))

    async def download(self, subtitle_id: str) -> bytes:
        response = await self._get(DOWNLOAD_PATH, {"id": str(subtitle_id)})
        if not response.content:
            raise NetworkError(f"Empty download for subtitle {subtitle_id}")
        return response.content

    async def aclose(self) -> None:
        await self._client.aclose()
