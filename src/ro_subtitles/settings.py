from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Titrari.ro addon settings.

    All settings can be overridden via environment variables or .env file.
    Environment variables should use uppercase names (e.g., REQUEST_TIMEOUT=20).

    Cache policy:
        search_cache_ttl  seconds a non-empty search result is reused (6 hours)
        empty_cache_ttl   seconds an empty search result is reused
        text_cache_ttl    seconds fetched subtitle text is reused; unset = forever
    """
    source_base_url: str = "https://titrari.ro"
    public_base_url: Optional[str] = None
    force_https: bool = False
    request_timeout: float = 15.0
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
    )
    accept_language: str = "ro-RO,ro;q=0.9,en;q=0.8"

    search_cache_ttl: float = 6 * 60 * 60
    empty_cache_ttl: float = 300
    text_cache_ttl: Optional[float] = None
    cache_max_size: Optional[int] = None

    log_level: str = "INFO"
    json_logs: bool = False
    port: int = 7000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()
