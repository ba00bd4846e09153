"""
Centralized configuration for Paperlib.

All configuration values should be imported from this module.
Supports environment variable overrides for containerization.
"""

import os
from pathlib import Path
from dataclasses import dataclass
from dotenv import load_dotenv

# Load .env file if it exists
load_dotenv()


def _env_flag(name: str, default: str = "0") -> bool:
    return os.environ.get(name, default).strip().lower() in ("1", "true", "yes", "on")


@dataclass
class Config:
    """Paperlib configuration."""

    # ==========================================================================
    # Paths
    # ==========================================================================
    @property
    def APP_DATA_ROOT(self) -> Path:
        return Path(
            os.environ.get("PAPERLIB_DATA_ROOT", str(Path.home() / ".paperlib"))
        ).expanduser()

    @property
    def FILES_DIR(self) -> Path:
        """Content-addressed PDF storage: <APP_DATA_ROOT>/files/<sha256>.pdf"""
        override = os.environ.get("PAPERLIB_FILES_DIR")
        return Path(override).expanduser() if override else self.APP_DATA_ROOT / "files"

    @property
    def TELEMETRY_LOG_PATH(self) -> Path:
        return self.APP_DATA_ROOT / "logs" / "import_runs.jsonl"

    # ==========================================================================
    # HTTP
    # ==========================================================================
    @property
    def CONTACT_EMAIL(self) -> str:
        return os.environ.get("CONTACT_EMAIL", "paperlib@example.com")

    @property
    def USER_AGENT(self) -> str:
        return os.environ.get(
            "PAPERLIB_USER_AGENT",
            f"Paperlib/1.0 (document importer; mailto:{self.CONTACT_EMAIL})",
        )

    @property
    def HTTP_TIMEOUT(self) -> float:
        return float(os.environ.get("HTTP_TIMEOUT", "30"))

    @property
    def MAX_REDIRECTS(self) -> int:
        return int(os.environ.get("MAX_REDIRECTS", "1"))

    # ==========================================================================
    # External APIs
    # ==========================================================================
    @property
    def ARXIV_API_URL(self) -> str:
        return os.environ.get("ARXIV_API_URL", "http://export.arxiv.org/api/query")

    @property
    def CROSSREF_API_URL(self) -> str:
        return os.environ.get("CROSSREF_API_URL", "https://api.crossref.org/works")

    @property
    def RESOLVE_DOI_VIA_CROSSREF(self) -> bool:
        return _env_flag("RESOLVE_DOI_VIA_CROSSREF")

    # ==========================================================================
    # Processing
    # ==========================================================================
    @property
    def EXTRACT_MAX_PAGES(self) -> int:
        return int(os.environ.get("EXTRACT_MAX_PAGES", "3"))

    @property
    def LOG_LEVEL(self) -> str:
        return os.environ.get("LOG_LEVEL", "INFO")

    @property
    def TELEMETRY_ENABLED(self) -> bool:
        return _env_flag("PAPERLIB_TELEMETRY")

    # ==========================================================================
    # Validation
    # ==========================================================================
    def validate(self) -> list[str]:
        """Return list of configuration errors."""
        errors = []

        if self.HTTP_TIMEOUT <= 0:
            errors.append(f"HTTP_TIMEOUT must be positive: {self.HTTP_TIMEOUT}")

        if self.MAX_REDIRECTS < 0:
            errors.append(f"MAX_REDIRECTS must be >= 0: {self.MAX_REDIRECTS}")

        if self.EXTRACT_MAX_PAGES < 1:
            errors.append(f"EXTRACT_MAX_PAGES must be >= 1: {self.EXTRACT_MAX_PAGES}")

        if self.FILES_DIR.exists() and not self.FILES_DIR.is_dir():
            errors.append(f"FILES_DIR is not a directory: {self.FILES_DIR}")

        return errors

    def ensure_dirs(self):
        """Create required directories if they don't exist."""
        self.FILES_DIR.mkdir(parents=True, exist_ok=True)

    def __repr__(self) -> str:
        return (
            f"Config(\n"
            f"  APP_DATA_ROOT={self.APP_DATA_ROOT}\n"
            f"  FILES_DIR={self.FILES_DIR}\n"
            f"  USER_AGENT={self.USER_AGENT}\n"
            f"  HTTP_TIMEOUT={self.HTTP_TIMEOUT}\n"
            f"  MAX_REDIRECTS={self.MAX_REDIRECTS}\n"
            f"  RESOLVE_DOI_VIA_CROSSREF={self.RESOLVE_DOI_VIA_CROSSREF}\n"
            f")"
        )


# Global config instance
config = Config()
