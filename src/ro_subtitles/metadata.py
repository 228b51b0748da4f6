from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional, Union
from urllib.parse import unquote

EXTERNAL_PREFIX_RE = re.compile(r"^tt", re.IGNORECASE)


def _positive_int(value: Union[str, int, None]) -> Optional[int]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = int(str(value).strip())
    except ValueError:
        return None
    return number if number > 0 else None


@dataclass(frozen=True)
class SeasonEpisodeTarget:
    """Optional season/episode pair narrowing a lookup to one episode."""

    season: Optional[int] = None
    episode: Optional[int] = None

    @classmethod
    def from_values(cls, season: Union[str, int, None], episode: Union[str, int, None]) -> "SeasonEpisodeTarget":
        return cls(season=_positive_int(season), episode=_positive_int(episode))

    @property
    def is_complete(self) -> bool:
        return self.season is not None and self.episode is not None

    def query(self) -> str:
        """Query string suffix for subtitle URLs, empty for movies."""
        if not self.is_complete:
            return ""
        return f"?season={self.season}&episode={self.episode}"


NO_TARGET = SeasonEpisodeTarget()


@dataclass
class StremioID:
    base: str
    target: SeasonEpisodeTarget


def parse_stremio_id(raw_id: str) -> StremioID:
    """Parse Stremio IDs that may be URL-encoded once or twice.

    Examples of incoming IDs:
    - tt0369179                   (movie)
    - tt0369179:1:2               (series S01E02)
    - tt0369179%3A1%3A2           (encoded once)
    - tt0369179%253A1%253A2       (encoded twice)
    """
    s = raw_id or ""
    for _ in range(2):
        decoded = unquote(s)
        if decoded == s:
            break
        s = decoded

    parts = s.split(":")
    base = parts[0] if parts else s
    season = parts[1] if len(parts) > 1 and parts[1] else None
    episode = parts[2] if len(parts) > 2 and parts[2] else None
    return StremioID(base=base, target=SeasonEpisodeTarget.from_values(season, episode))


def strip_external_prefix(external_id: str) -> str:
    """``tt1234567`` -> ``1234567``, the form the catalog search expects."""
    return EXTERNAL_PREFIX_RE.sub("", (external_id or "").strip())
