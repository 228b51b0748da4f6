"""Line-level cleanup of decoded subtitles and MicroDVD ``.sub`` conversion."""

from __future__ import annotations

import re
from typing import List, NamedTuple, Optional

DEFAULT_FPS = 23.976
DETECTION_SAMPLE = 50

UNPRINTABLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f]")
MICRODVD_CUE_RE = re.compile(r"^\{(\d+)\}\{(\d+)\}(.*)$")
MICRODVD_STYLE_RE = re.compile(r"\{[^}]*\}")


class Cue(NamedTuple):
    start: int
    end: int
    lines: List[str]


def clean_subtitle_text(text: str) -> str:
    """Canonical line endings and no stray control characters."""
    text = text.replace("\ufeff", "").replace("\r\n", "\n").replace("\r", "\n")
    body = "\n".join(line.rstrip() for line in UNPRINTABLE_RE.sub("", text).split("\n"))
    body = body.rstrip("\n")
    return body + "\n" if body else ""


def looks_like_microdvd(text: str) -> bool:
    sample = [line for line in (raw.strip() for raw in text.split("\n")) if line][:DETECTION_SAMPLE]
    hits = sum(1 for line in sample if MICRODVD_CUE_RE.match(line))
    return hits >= 3 or (hits > 0 and hits == len(sample))


def frame_to_ms(frame: int, fps: float) -> int:
    return round(max(frame, 0) * 1000 / fps)


def format_timestamp(ms: int) -> str:
    hours, ms = divmod(ms, 3_600_000)
    minutes, ms = divmod(ms, 60_000)
    seconds, ms = divmod(ms, 1000)
    return f"{hours:02}:{minutes:02}:{seconds:02},{ms:03}"


def _cue_lines(body: str) -> List[str]:
    return [part.strip() for part in MICRODVD_STYLE_RE.sub("", body).split("|") if part.strip()]


def parse_microdvd(text: str) -> List[Cue]:
    """``{start}{end}line|line`` cues; unmatched lines continue the previous cue."""
    cues: List[Cue] = []
    for raw in text.split("\n"):
        line = raw.strip()
        if not line:
            continue
        match = MICRODVD_CUE_RE.match(line)
        if match:
            start, end, body = match.groups()
            cues.append(Cue(int(start), int(end), _cue_lines(body)))
        elif cues:
            cues[-1].lines.extend(_cue_lines(line))
    return cues


def _frame_rate_hint(cue: Cue) -> Optional[float]:
    # {1}{1}23.976
    if cue.start != 1 or cue.end != 1:
        return None
    try:
        return float(" ".join(cue.lines))
    except ValueError:
        return None


def microdvd_to_srt(text: str, fps: Optional[float] = None) -> str:
    """Convert frame-based MicroDVD cues to SRT.

    An explicit ``fps`` wins over a ``{1}{1}<fps>`` hint in the file, which
    wins over ``DEFAULT_FPS``. Returns ``text`` untouched when no cue can be
    read.
    """
    cues = parse_microdvd(text)
    rate = fps if fps and fps > 0 else DEFAULT_FPS
    hint = _frame_rate_hint(cues[0]) if cues else None
    if hint is not None:
        cues = cues[1:]
        if fps is None and hint > 0:
            rate = hint
    if not cues:
        return text

    blocks = []
    for number, cue in enumerate(cues, start=1):
        start = format_timestamp(frame_to_ms(cue.start, rate))
        end = format_timestamp(frame_to_ms(max(cue.end, cue.start + 1), rate))
        blocks.append("\n".join([str(number), f"{start} --> {end}", *cue.lines]))
    return "\n\n".join(blocks) + "\n"


def prepare_subtitle_text(text: str, name: str = "") -> str:
    """Clean decoded text and turn MicroDVD ``.sub`` files into SRT."""
    text = clean_subtitle_text(text)
    if name.lower().endswith(".sub") and looks_like_microdvd(text):
        text = clean_subtitle_text(microdvd_to_srt(text))
    return text
