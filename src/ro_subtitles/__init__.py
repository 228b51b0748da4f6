"""Romanian subtitles from titrari.ro for Stremio."""

__version__ = "3.0.0"
