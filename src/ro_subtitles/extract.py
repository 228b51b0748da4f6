from __future__ import annotations

import enum
import io
import logging
import os
import zipfile
from dataclasses import dataclass
from typing import List, Optional, Union
from zlib import error as zlib_error

import rarfile
from rarfile import Error as RarError

from .errors import ArchiveExtractionError

SUBTITLE_EXTENSIONS = (".srt", ".sub")
ZIP_SIGNATURE = b"PK"
RAR_SIGNATURE = b"Rar!"

log = logging.getLogger("ro_subtitles.extract")


class ArchiveKind(str, enum.Enum):
    ZIP = "zip"
    RAR = "rar"
    PLAIN = "plain"


@dataclass(frozen=True)
class ArchiveEntry:
    """A subtitle file listed inside an archive; bytes are read on demand."""

    name: str
    size: int = 0

    @property
    def basename(self) -> str:
        return os.path.basename(self.name.replace("\\", "/"))


def detect_kind(data: bytes) -> ArchiveKind:
    if data[:2] == ZIP_SIGNATURE:
        return ArchiveKind.ZIP
    if data[:4] == RAR_SIGNATURE:
        return ArchiveKind.RAR
    return ArchiveKind.PLAIN


def is_subtitle_name(name: str) -> bool:
    return name.lower().endswith(SUBTITLE_EXTENSIONS)


class Archive:
    """Read-only view over a downloaded payload.

    Use as a context manager; the underlying ZIP/RAR handle stays open until
    exit so that ``read`` only decompresses the entry it is asked for.
    """

    def __init__(self, data: bytes) -> None:
        self.data = data
        self.kind = detect_kind(data)
        self._handle: Optional[Union[zipfile.ZipFile, rarfile.RarFile]] = None

    def __enter__(self) -> "Archive":
        self.open()
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def open(self) -> None:
        if self.kind is ArchiveKind.PLAIN or self._handle is not None:
            return
        try:
            if self.kind is ArchiveKind.ZIP:
                self._handle = zipfile.ZipFile(io.BytesIO(self.data))
            else:
                self._handle = rarfile.RarFile(io.BytesIO(self.data), errors="strict")
        except (zipfile.BadZipFile, RarError, EOFError, OSError, ValueError) as exc:
            raise ArchiveExtractionError(f"Cannot open {self.kind.value} archive: {exc}") from exc

    def close(self) -> None:
        if self._handle is not None:
            self._handle.close()
            self._handle = None

    def entries(self) -> List[ArchiveEntry]:
        """Subtitle files in archive order; empty for plain payloads."""
        if self.kind is ArchiveKind.PLAIN:
            return []
        self.open()
        try:
            infos = [(info.filename, info.file_size) for info in self._handle.infolist() if not info.is_dir()]
        except (zipfile.BadZipFile, RarError, EOFError, OSError, ValueError) as exc:
            raise ArchiveExtractionError(f"Cannot list {self.kind.value} archive: {exc}") from exc
        entries = [ArchiveEntry(name=name, size=size) for name, size in infos if is_subtitle_name(name)]
        log.debug("%s archive lists %d subtitle entries out of %d", self.kind.value, len(entries), len(infos))
        return entries

    def read(self, entry: ArchiveEntry) -> bytes:
        if self.kind is ArchiveKind.PLAIN:
            return self.data
        self.open()
        try:
            return self._handle.read(entry.name)
        except rarfile.RarCannotExec as exc:
            raise ArchiveExtractionError(
                "RAR archive extraction failed. Install 'unrar', 'unar', or 'bsdtar' on the host."
            ) from exc
        # RuntimeError covers encrypted ZIP entries, NotImplementedError unsupported methods
        except (zipfile.BadZipFile, RarError, KeyError, EOFError, OSError, RuntimeError, zlib_error) as exc:
            raise ArchiveExtractionError(f"Cannot read {entry.name!r}: {exc}") from exc


def open_archive(data: bytes) -> Archive:
    return Archive(data)
