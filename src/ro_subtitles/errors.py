from __future__ import annotations


class SubtitleError(RuntimeError):
    """Base class for failures inside the subtitle pipeline."""


class NetworkError(SubtitleError):
    """Raised when the remote catalog cannot be reached or answers with an error."""


class ParseError(SubtitleError):
    """Raised when a downloaded payload or search page cannot be parsed."""


class ArchiveExtractionError(ParseError):
    """Raised when a downloaded archive cannot be opened or read."""


class NotFoundError(SubtitleError):
    """Raised when nothing usable is left after filtering."""
