"""Configuration management via environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()


def _split_env(name: str, default: str) -> list[str]:
    return [part.strip() for part in os.getenv(name, default).split(",") if part.strip()]


@dataclass
class Config:
    """Application configuration."""

    # Paths
    scan_path: Path = field(default_factory=lambda: Path(os.getenv("SCAN_PATH", "/data/source")))
    # Prefix cut from absolute file paths to build the stored file_name
    base_path: str = field(default_factory=lambda: os.getenv("BASE_PATH", ""))
    excluded_paths: list[str] = field(
        default_factory=lambda: _split_env("EXCLUDED_PATHS", "vendor,migrations")
    )
    extensions: tuple[str, ...] = field(
        default_factory=lambda: tuple(_split_env("FILE_EXTENSIONS", ".php"))
    )

    # Document store
    db_path: Path = field(default_factory=lambda: Path(os.getenv("DB_PATH", "/data/php_atlas.db")))
    collection: str = field(default_factory=lambda: os.getenv("DB_COLLECTION", "files"))

    # Scanning
    auto_scan: bool = field(default_factory=lambda: os.getenv("AUTO_SCAN", "true").lower() == "true")
    progress_every: int = field(default_factory=lambda: int(os.getenv("PROGRESS_EVERY", "100")))

    # Server settings
    host: str = field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = field(default_factory=lambda: int(os.getenv("PORT", "8000")))

    # Search settings
    default_search_limit: int = field(default_factory=lambda: int(os.getenv("DEFAULT_SEARCH_LIMIT", "20")))

    def relative_path(self, file_path: str | Path) -> str:
        """Return the file path with the base path cut off, if it starts with it."""
        path_str = Path(file_path).as_posix()
        base = self.base_path.replace("\\", "/")
        if base and path_str.startswith(base):
            return path_str[len(base):]
        return path_str

    def validate(self) -> list[str]:
        """Validate configuration, return list of errors."""
        errors = []

        if not self.scan_path.exists():
            errors.append(f"Scan path does not exist: {self.scan_path}")

        if not self.extensions:
            errors.append("FILE_EXTENSIONS must name at least one extension")

        if self.progress_every < 0:
            errors.append(f"PROGRESS_EVERY must not be negative: {self.progress_every}")

        return errors


# Global config instance
config = Config()
