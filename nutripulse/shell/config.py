"""Application configuration read from the environment."""

import os
from dataclasses import dataclass, field
from pathlib import Path


DEFAULT_ALLOWED_ORIGINS = ("http://localhost:5173",)


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [part.strip() for part in value.split(",") if part.strip()]


@dataclass
class AppConfig:
    """Runtime settings.

    Attributes:
        data_dir: Directory for the local durable cache
        firestore_project: GCP project ID (None for default)
        firestore_database: Firestore database name
        gemini_api_key: API key for content generation (None disables AI)
        gemini_model: Model name used for all AI calls
        allowed_origins: CORS origins for the HTTP app
        host: Bind address
        port: Bind port
        log_level: Root logging level name
    """

    data_dir: Path = field(default_factory=lambda: Path.home() / ".nutripulse")
    firestore_project: str | None = None
    firestore_database: str | None = "nutripulse"
    gemini_api_key: str | None = None
    gemini_model: str = "gemini-2.5-flash"
    allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_ALLOWED_ORIGINS))
    host: str = "0.0.0.0"
    port: int = 8080
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Build a config from NUTRIPULSE_*, FIRESTORE_*, GEMINI_* and HOST/PORT."""
        env = os.environ
        data_dir = env.get("NUTRIPULSE_DATA_DIR")
        return cls(
            data_dir=Path(data_dir) if data_dir else Path.home() / ".nutripulse",
            firestore_project=env.get("FIRESTORE_PROJECT") or None,
            firestore_database=env.get("FIRESTORE_DATABASE", "nutripulse") or None,
            gemini_api_key=env.get("GEMINI_API_KEY") or None,
            gemini_model=env.get("GEMINI_MODEL", "gemini-2.5-flash"),
            allowed_origins=_split_csv(env.get("NUTRIPULSE_ALLOWED_ORIGINS")) or list(DEFAULT_ALLOWED_ORIGINS),
            host=env.get("HOST", "0.0.0.0"),
            port=int(env.get("PORT", 8080)),
            log_level=env.get("NUTRIPULSE_LOG_LEVEL", "INFO").upper(),
        )
