"""Season/episode heuristics over archive entry names and search rows."""

from __future__ import annotations

import re
from typing import Callable, Dict, Iterable, List, Optional, Pattern, Sequence, TypeVar

from .metadata import SeasonEpisodeTarget

T = TypeVar("T")

# name -> template; {season}/{episode} are filled with plain integers.
PATTERNS: Dict[str, str] = {
    "episode_sxe": r"S0*{season}E0*{episode}(?!\d)",
    "episode_x": r"(?<!\d)0*{season}x0*{episode}(?!\d)",
    "season_word": r"(?:Sezon(?:ul)?|Season)[\s._-]*0*{season}(?!\d)",
    "season_short": r"(?<![a-z0-9])S0*{season}(?![\dE])",
}

EPISODE_PATTERNS = ("episode_sxe", "episode_x")
SEASON_PATTERNS = ("season_word", "season_short")


def compile_pattern(name: str, target: SeasonEpisodeTarget) -> Pattern[str]:
    template = PATTERNS[name]
    return re.compile(
        template.format(season=target.season or 0, episode=target.episode or 0),
        re.IGNORECASE,
    )


def _combined(names: Sequence[str], target: SeasonEpisodeTarget) -> Pattern[str]:
    return re.compile("|".join(f"(?:{compile_pattern(n, target).pattern})" for n in names), re.IGNORECASE)


def episode_pattern(target: SeasonEpisodeTarget) -> Pattern[str]:
    """``S01E03`` / ``S1E3`` / ``1x03`` / ``1x3`` for season 1 episode 3."""
    return _combined(EPISODE_PATTERNS, target)


def season_pattern(target: SeasonEpisodeTarget) -> Pattern[str]:
    """``Sezon 2`` / ``Season.02`` / a bare ``S02`` without an episode."""
    return _combined(SEASON_PATTERNS, target)


def matches_episode(text: str, target: SeasonEpisodeTarget) -> bool:
    if not target.is_complete:
        return False
    return bool(episode_pattern(target).search(text or ""))


def matches_season(text: str, target: SeasonEpisodeTarget) -> bool:
    if not target.is_complete:
        return False
    return bool(season_pattern(target).search(text or ""))


def select_best(
    target: Optional[SeasonEpisodeTarget],
    candidates: Iterable[T],
    key: Callable[[T], str] = str,
) -> Optional[T]:
    """Pick the archive entry for ``target``.

    The first exact episode match wins; otherwise the first candidate, since
    single-file releases are often named generically.
    """
    items = list(candidates)
    if not items:
        return None
    if target is None or not target.is_complete:
        return items[0]
    pattern = episode_pattern(target)
    for item in items:
        if pattern.search(key(item) or ""):
            return item
    return items[0]


def filter_records(
    target: Optional[SeasonEpisodeTarget],
    records: Iterable[T],
    text: Callable[[T], str] = str,
) -> List[T]:
    """Keep search rows that mention the episode or at least the season."""
    items = list(records)
    if target is None or not target.is_complete:
        return items
    episode = episode_pattern(target)
    season = season_pattern(target)
    kept: List[T] = []
    for item in items:
        haystack = text(item) or ""
        if episode.search(haystack) or season.search(haystack):
            kept.append(item)
    return kept
