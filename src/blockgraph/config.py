"""
blockgraph Configuration

Settings are loaded from:
1. Environment variables (prefixed with BLOCKGRAPH_)
2. ~/.blockgraph/.env file

Key settings:
- BLOCKGRAPH_HIDE_PARTS: Build graphs without Part nodes by default
- BLOCKGRAPH_MAX_DIRECTORIES: Upper bound on directories visited per scan
- BLOCKGRAPH_COLLECT_FILE_STATS: Count files/lines under each block directory
- BLOCKGRAPH_LOG_LEVEL: Logging level for the CLI
"""

from functools import lru_cache
import logging
from pathlib import Path
from typing import List

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

DEFAULT_EXCLUDED_DIRS = ["node_modules", ".git", ".vscode", "dist", "Build", "Bin", "bin", "obj"]
DEFAULT_SYSTEM_DIRS = [
    "build", "Build", "bin", "Bin", "obj", "Obj",
    "node_modules", "dist", ".git", ".vscode", ".vs",
    "__pycache__", ".idea", ".cache",
    "tmp", "temp", "logs",
]
DEFAULT_SOURCE_EXTENSIONS = [
    ".cs", ".xml", ".sql", ".config", ".json",
    ".txt", ".query", ".domainsettings", ".csproj",
    ".ps1", ".lst", ".xaml", ".presentations", ".yml",
    ".resx", ".condition", ".bat", ".cmd", ".ts", ".sandboxsettings",
    ".tt", ".js", ".autotests", ".mpx", ".css", ".mrt", ".tsx",
    ".java", ".h", ".html", ".sh", ".sln", ".jobxml", ".psm1",
]


class Settings(BaseSettings):
    """blockgraph configuration settings."""

    app_name: str = "Block Graph"

    # Definition source
    definition_file_name: str = ".block-definition.yml"
    scopes_catalog_file_name: str = ".scopes-catalog.yml"
    block_catalog_file_name: str = ".block-catalog.yml"
    excluded_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDED_DIRS))
    max_directories: int = Field(
        default=50_000,
        description="Directories visited per scan before discovery stops",
    )

    # File statistics
    collect_file_stats: bool = True
    system_dirs: List[str] = Field(default_factory=lambda: list(DEFAULT_SYSTEM_DIRS))
    source_extensions: List[str] = Field(default_factory=lambda: list(DEFAULT_SOURCE_EXTENSIONS))

    # Graph
    hide_parts: bool = False

    log_level: str = "WARNING"

    model_config = SettingsConfigDict(
        env_prefix="BLOCKGRAPH_",
        env_file=Path.home() / ".blockgraph" / ".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    @field_validator("max_directories")
    @classmethod
    def _positive_bound(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_directories must be at least 1")
        return value

    @field_validator("source_extensions")
    @classmethod
    def _lower_extensions(cls, value: List[str]) -> List[str]:
        return [ext.lower() for ext in value]

    @field_validator("log_level")
    @classmethod
    def _known_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Load and cache settings."""
    return Settings()


def reload_settings() -> Settings:
    """Clear cached settings (useful for tests) and reload."""
    get_settings.cache_clear()
    return get_settings()


__all__ = ["Settings", "get_settings", "reload_settings"]
