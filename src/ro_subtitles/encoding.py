"""Character-encoding recovery for Romanian subtitle files.

Subtitles on titrari.ro come in three flavours: clean UTF-8, legacy
single-byte files (CP1250 / ISO-8859-2 era) and UTF-8 that was re-read as a
Western codepage at some point and saved again (mojibake). ``normalize``
turns all of them into readable UTF-8 text with comma-below diacritics.
"""

from __future__ import annotations

import logging
import re
from typing import Tuple

log = logging.getLogger("ro_subtitles.encoding")

LEGACY_ENCODING = "latin-1"
UTF8_BOM = "\ufeff"

ROMANIAN_LETTERS = "ăâîșțĂÂÎȘȚşţŞŢ"
ROMANIAN_LETTERS_RE = re.compile(f"[{ROMANIAN_LETTERS}]")


def _double_encoded(letter: str) -> Tuple[str, ...]:
    raw = letter.encode("utf-8")
    forms = {raw.decode(LEGACY_ENCODING)}
    try:
        forms.add(raw.decode("cp1252"))
    except UnicodeDecodeError:
        pass
    return tuple(sorted(forms))


# UTF-8 bytes that were decoded as CP1252 or Latin-1, e.g. "È™" for "ș".
_MOJIBAKE_TARGETS = {
    "ă": "ă", "Ă": "Ă",
    "â": "â", "Â": "Â",
    "î": "î", "Î": "Î",
    "ș": "ș", "Ș": "Ș",
    "ț": "ț", "Ț": "Ț",
    "ş": "ș", "Ş": "Ș",
    "ţ": "ț", "Ţ": "Ț",
}

MOJIBAKE_TABLE: Tuple[Tuple[str, str], ...] = tuple(
    (broken, fixed)
    for source, fixed in _MOJIBAKE_TARGETS.items()
    for broken in _double_encoded(source)
)


def _c1_as_cp1250() -> Tuple[Tuple[str, str], ...]:
    pairs = []
    for code in range(0x80, 0xA0):
        try:
            pairs.append((chr(code), bytes([code]).decode("cp1250")))
        except UnicodeDecodeError:
            continue
    return tuple(pairs)


# CP1250 bytes read as Latin-1, then cedilla forms folded to comma-below.
# 0x80-0x9F land on C1 controls under Latin-1; in CP1250 they are quotes,
# dashes, the ellipsis and a few letters.
LEGACY_TABLE: Tuple[Tuple[str, str], ...] = _c1_as_cp1250() + (
    ("ª", "Ș"),
    ("º", "ș"),
    ("Þ", "Ț"),
    ("þ", "ț"),
    ("Ã", "Ă"),
    ("ã", "ă"),
    ("Ş", "Ș"),
    ("ş", "ș"),
    ("Ţ", "Ț"),
    ("ţ", "ț"),
)

SUBSTITUTIONS: Tuple[Tuple[str, str], ...] = MOJIBAKE_TABLE + LEGACY_TABLE


def fix_diacritics(text: str) -> str:
    """Apply the substitution table, longest sequences first."""
    for broken, fixed in SUBSTITUTIONS:
        if broken in text:
            text = text.replace(broken, fixed)
    return text


def has_mojibake(text: str) -> bool:
    return any(broken in text for broken, _fixed in MOJIBAKE_TABLE)


def normalize(data: bytes) -> str:
    """Decode subtitle bytes and repair Romanian diacritics.

    Never raises; the worst case is Latin-1 text with some residual garbling.
    """
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError:
        log.debug("Payload is not UTF-8, decoding as %s", LEGACY_ENCODING)
        return fix_diacritics(data.decode(LEGACY_ENCODING))

    if text.startswith(UTF8_BOM):
        text = text[1:]
    if ROMANIAN_LETTERS_RE.search(text) or has_mojibake(text):
        return fix_diacritics(text)

    legacy = data.decode(LEGACY_ENCODING)
    if legacy.startswith("ï»¿"):
        legacy = legacy[3:]
    return fix_diacritics(legacy)
