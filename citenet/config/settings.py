from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Optional

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class ProviderName(str, Enum):
    """
    Bibliographic metadata providers the engine knows how to talk to.
    """
    OPENALEX = "openalex"
    SEMANTIC_SCHOLAR = "semantic_scholar"
    CROSSREF = "crossref"
    OPENCITATIONS = "opencitations"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
        env_prefix="CITENET_"
    )

    # ------------------------------------------------------------------
    # Core paths
    # ------------------------------------------------------------------
    DATA_DIR: Path = Field(
        default=Path("data"),
        description="Base data directory for saved sessions and exports.",
    )

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------
    default_provider: ProviderName = Field(
        default=ProviderName.OPENALEX,
        description="Provider used when a session is created without an explicit one.",
    )

    MAILTO: str = Field(
        default="citenet@example.org",
        description="Contact address sent to providers with a polite pool (OpenAlex, Crossref, OpenCitations).",
    )

    SEMANTIC_SCHOLAR_API_KEY: Optional[SecretStr] = Field(
        default=None,
        description="Optional x-api-key for Semantic Scholar. Unauthenticated requests are heavily rate limited.",
    )

    request_timeout: float = Field(
        default=30.0,
        description="Timeout in seconds for a single HTTP request to a provider.",
    )

    provider_max_retries: int = Field(
        default=3,
        description="Attempts per HTTP request before a batch is reported as failed (429 / 5xx only).",
    )

    retry_backoff_seconds: float = Field(
        default=2.0,
        description="Base delay for exponential backoff between retries.",
    )

    openalex_max_citing_pages: int = Field(
        default=5,
        description=(
            "Upper bound on cursor pages (200 works each) fetched per chunk when "
            "collecting citing works from OpenAlex."
        ),
    )

    # ------------------------------------------------------------------
    # Sessions / ranking
    # ------------------------------------------------------------------
    max_sessions: int = Field(
        default=5,
        description="Maximum number of open sessions; the oldest is evicted on overflow.",
    )

    suggestion_cap: int = Field(
        default=20,
        description="How many incoming / outgoing suggestion candidates are resolved per session.",
    )

    default_visible_suggestions: int = Field(
        default=10,
        description="Default size of the visible suggestion slice (capped by the number of candidates).",
    )

    collaboration_max_authors: int = Field(
        default=50,
        description="Adaptive threshold search stops once at most this many authors remain.",
    )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------
    autosave: bool = Field(
        default=False,
        description="If True, sessions are written to sessions_dir after every completed stage.",
    )

    snapshot_max_suggestions: int = Field(
        default=100,
        description="Suggestion lists are truncated to this length when a snapshot is written.",
    )

    # ------------------------------------------------------------------
    # Web
    # ------------------------------------------------------------------
    API_KEY: Optional[SecretStr] = Field(
        default=None,
        description="Key expected in the X-API-Key header of mutating routes. If None, auth is disabled.",
    )

    rate_limit_requests: int = Field(
        default=30,
        description="Session builds one client may start per rate-limit window.",
    )

    rate_limit_window_seconds: float = Field(
        default=60.0,
        description="Length of the sliding rate-limit window.",
    )

    # ------------------------------------------------------------------
    # Convenience derived paths
    # ------------------------------------------------------------------
    @property
    def sessions_dir(self) -> Path:
        return self.DATA_DIR / "sessions"

    @property
    def exports_dir(self) -> Path:
        return self.DATA_DIR / "exports"


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """
    Singleton-style accessor so we only construct Settings once and
    ensure directories exist on first access.
    """
    global _settings
    if _settings is None:
        _settings = Settings()

        _settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
        _settings.sessions_dir.mkdir(parents=True, exist_ok=True)
        _settings.exports_dir.mkdir(parents=True, exist_ok=True)

    return _settings


settings = get_settings()
