from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol

from bs4 import BeautifulSoup

from .cache import SubtitleCache
from .errors import ParseError, SubtitleError
from .matching import filter_records
from .metadata import SeasonEpisodeTarget, strip_external_prefix
from .sources.titrari import SearchPage

log = logging.getLogger("ro_subtitles.search")

LANGUAGE = "ro"
DEFAULT_TITLE = "Titrari.ro"
SERIES_TYPE = "series"

SUB_ID_RE = re.compile(r"id=(\d+)")
DOWNLOADS_RE = re.compile(r"Descarcari[:\s]*(\d+)", re.IGNORECASE)
WHITESPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class SubtitleCandidate:
    internal_id: str
    title: str
    lang: str = LANGUAGE


@dataclass(frozen=True)
class SubtitleRecord:
    """One listing row before filtering and ranking."""

    internal_id: str
    title: str
    info: str = ""
    downloads: Optional[int] = None

    @property
    def haystack(self) -> str:
        return f"{self.title} {self.info}"


class CatalogSource(Protocol):
    async def search_page(self, imdb_number: str) -> SearchPage:
        ...


def _collapse(text: str) -> str:
    return WHITESPACE_RE.sub(" ", text or "").strip()


def _parse_downloads(text: str) -> Optional[int]:
    match = DOWNLOADS_RE.search(text or "")
    return int(match.group(1)) if match else None


def parse_search_html(html: str) -> List[SubtitleRecord]:
    """Extract listing rows from the titrari.ro search page."""
    soup = BeautifulSoup(html, "html.parser")
    records: List[SubtitleRecord] = []
    for link in soup.select('a[href*="get.php?id="]'):
        match = SUB_ID_RE.search(link.get("href") or "")
        if not match:
            continue
        row = link.find_parent("tr")
        if row is None:
            title = _collapse(link.get_text())
            info = title
        else:
            title_links = row.select('h1 a, .row1 a[style*="color:black"]')
            title = _collapse(" ".join(a.get_text() for a in title_links))
            if not title:
                heading = row.find("h1")
                title = _collapse(heading.get_text()) if heading else ""
            info = _collapse(row.get_text(" "))
        records.append(
            SubtitleRecord(
                internal_id=match.group(1),
                title=title,
                info=info,
                downloads=_parse_downloads(info),
            )
        )
    return records


def parse_search_json(body: str) -> List[SubtitleRecord]:
    """Structured variant: a list (or ``{"results": [...]}``) of row objects."""
    try:
        payload = json.loads(body)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON search payload: {exc}") from exc
    if isinstance(payload, dict):
        payload = payload.get("results") or payload.get("subtitles") or []
    if not isinstance(payload, list):
        raise ParseError("JSON search payload is not a list")

    records: List[SubtitleRecord] = []
    for row in payload:
        if not isinstance(row, dict) or row.get("id") in (None, ""):
            continue
        downloads = row.get("downloads")
        try:
            downloads = int(downloads) if downloads is not None else None
        except (TypeError, ValueError):
            downloads = None
        info = _collapse(str(row.get("info") or ""))
        records.append(
            SubtitleRecord(
                internal_id=str(row["id"]),
                title=_collapse(str(row.get("title") or "")),
                info=info,
                downloads=downloads if downloads is not None else _parse_downloads(info),
            )
        )
    return records


def parse_search_page(page: SearchPage) -> List[SubtitleRecord]:
    if page.is_json or page.body.lstrip().startswith(("[", "{")):
        return parse_search_json(page.body)
    return parse_search_html(page.body)


def dedupe_records(records: Iterable[SubtitleRecord]) -> List[SubtitleRecord]:
    seen = set()
    unique: List[SubtitleRecord] = []
    for record in records:
        if record.internal_id in seen:
            continue
        seen.add(record.internal_id)
        unique.append(record)
    return unique


def rank_records(records: Iterable[SubtitleRecord]) -> List[SubtitleRecord]:
    """Most downloaded first.

    Without any download count the rows are ordered by title length, longest
    first. That ordering carries no real quality signal; it only keeps the
    output deterministic.
    """
    items = list(records)
    if any(r.downloads is not None for r in items):
        return sorted(items, key=lambda r: -1 if r.downloads is None else r.downloads, reverse=True)
    return sorted(items, key=lambda r: len(r.title), reverse=True)


def search_cache_key(external_id: str, media_type: str, target: SeasonEpisodeTarget) -> str:
    season = target.season if target.is_complete else 0
    episode = target.episode if target.is_complete else 0
    return f"search:{media_type}:{external_id}:{season}:{episode}"


class SubtitleSearch:
    def __init__(
        self,
        source: CatalogSource,
        cache: SubtitleCache,
        ttl: Optional[float] = None,
        empty_ttl: Optional[float] = None,
    ) -> None:
        self._source = source
        self._cache = cache
        self._ttl = ttl
        self._empty_ttl = empty_ttl

    async def search(
        self, external_id: str, media_type: str, target: SeasonEpisodeTarget
    ) -> List[SubtitleCandidate]:
        key = search_cache_key(external_id, media_type, target)
        cached = self._cache.get(key)
        if cached is not None:
            return list(cached)

        imdb_number = strip_external_prefix(external_id)
        if not imdb_number:
            return []

        try:
            page = await self._source.search_page(imdb_number)
            records = parse_search_page(page)
        except SubtitleError as exc:
            log.warning("Search for %s failed: %s", external_id, exc)
            return []

        records = dedupe_records(records)
        if media_type == SERIES_TYPE:
            records = filter_records(target, records, text=lambda r: r.haystack)
        ranked = rank_records(records)

        candidates = tuple(
            SubtitleCandidate(internal_id=r.internal_id, title=r.title or DEFAULT_TITLE) for r in ranked
        )
        self._cache.set(key, candidates, ttl=self._ttl if candidates else self._empty_ttl)
        log.info("Search %s -> %d candidates", key, len(candidates))
        return list(candidates)
