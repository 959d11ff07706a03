"""Definition source: load block definitions and catalogs from a project tree.

This service handles:
- Discovery of `.block-definition.yml` files (bounded worklist walk)
- YAML decoding and normalization of each definition
- The `.scopes-catalog.yml` scope tree and `.block-catalog.yml` glossary
- Per-block file/line statistics
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import yaml
from pydantic import ValidationError

from ..config import Settings, get_settings
from .models import BlockDefinition, CatalogEntry, ProjectData, ScopeDefinition
from .normalizer import normalize_record

logger = logging.getLogger(__name__)

# Keys of a scopes-catalog entry that describe the entry rather than child scopes
SCOPE_RESERVED_KEYS = {
    "description", "ignore", "blockName", "blockPart", "aspects",
    "parents", "scope", "extend", "based",
}


class DefinitionSourceError(Exception):
    """Raised when a project tree cannot be loaded at all."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


@dataclass
class DirectoryError:
    path: str
    error: str


@dataclass
class DiscoveryResult:
    files: List[Path] = field(default_factory=list)
    errors: List[DirectoryError] = field(default_factory=list)
    visited: int = 0
    truncated: bool = False


@dataclass
class FileStats:
    total_files: int = 0
    total_lines: int = 0


def _relative(path: Path, root: Path) -> str:
    try:
        return path.relative_to(root).as_posix()
    except ValueError:
        return path.as_posix()


def _is_nested(directory: str, parent: str) -> bool:
    if directory == parent:
        return False
    return parent == "" or directory.startswith(parent + "/")


class DefinitionSource:
    """Reads block definitions, scopes and catalog from a directory tree."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    # ========================================
    # Discovery
    # ========================================

    def discover(self, root: Path) -> DiscoveryResult:
        """Find every definition file below root.

        Directories are visited breadth-first from an explicit queue; a
        directory that cannot be listed is recorded and skipped.
        """
        result = DiscoveryResult()
        excluded = set(self.settings.excluded_dirs)
        queue = deque([root])

        while queue:
            if result.visited >= self.settings.max_directories:
                result.truncated = True
                logger.warning(
                    f"Stopped discovery after {result.visited} directories "
                    f"({len(queue)} left unvisited)"
                )
                break

            directory = queue.popleft()
            result.visited += 1
            try:
                entries = sorted(directory.iterdir(), key=lambda p: p.name)
            except OSError as e:
                logger.warning(f"Cannot read directory {directory}: {e}")
                result.errors.append(DirectoryError(path=str(directory), error=str(e)))
                continue

            for entry in entries:
                if entry.is_dir() and not entry.is_symlink():
                    if entry.name not in excluded:
                        queue.append(entry)
                elif entry.name == self.settings.definition_file_name and entry.is_file():
                    result.files.append(entry)

        logger.info(f"Found {len(result.files)} definition files in {result.visited} directories")
        return result

    # ========================================
    # Parsing
    # ========================================

    def _read_yaml(self, path: Path) -> Tuple[bool, Any]:
        try:
            return True, yaml.safe_load(path.read_text(encoding="utf-8"))
        except (OSError, UnicodeDecodeError, yaml.YAMLError) as e:
            logger.warning(f"Error parsing file {path}: {e}")
            return False, None

    def parse_definition(self, path: Path, root: Path) -> Optional[BlockDefinition]:
        """Decode one definition file; None when it cannot be parsed."""
        ok, data = self._read_yaml(path)
        if not ok:
            return None
        relative = _relative(path, root)
        block = normalize_record(data, source=relative)
        if block is None:
            return None

        directory = _relative(path.parent, root)
        updates: Dict[str, Any] = {
            "file_path": relative,
            "directory": "" if directory == "." else directory,
        }
        if self.settings.collect_file_stats and not block.ignore:
            stats = self.count_files_and_lines(path.parent)
            updates["files_count"] = stats.total_files
            updates["code_lines"] = stats.total_lines
        return block.model_copy(update=updates)

    def load_block_definitions(self, root: Path) -> List[BlockDefinition]:
        discovery = self.discover(root)
        blocks: List[BlockDefinition] = []
        ignored = 0
        for path in discovery.files:
            block = self.parse_definition(path, root)
            if block is None:
                continue
            if block.ignore:
                ignored += 1
                continue
            blocks.append(block)
        logger.info(f"Blocks: {len(blocks)} parsed, {ignored} ignored")
        return blocks

    # ========================================
    # Catalogs
    # ========================================

    def parse_scopes(self, data: Mapping[str, Any], parent_path: str = "") -> List[ScopeDefinition]:
        """Convert a nested scopes mapping into ScopeDefinition trees."""
        scopes: List[ScopeDefinition] = []
        for key, value in data.items():
            name = str(key).strip("/")
            if not name:
                continue
            scope_path = f"{parent_path}/{name}"
            value = value if isinstance(value, Mapping) else {}
            child_data = {k: v for k, v in value.items() if k not in SCOPE_RESERVED_KEYS}
            scopes.append(
                ScopeDefinition(
                    path=scope_path,
                    name=name,
                    description=str(value.get("description") or ""),
                    children=self.parse_scopes(child_data, scope_path),
                )
            )
        return scopes

    def load_scopes_catalog(self, root: Path) -> Optional[List[ScopeDefinition]]:
        """Scopes from the catalog at the project root, or None when absent."""
        path = root / self.settings.scopes_catalog_file_name
        if not path.is_file():
            logger.info("No scopes catalog found")
            return None
        ok, data = self._read_yaml(path)
        if not ok or not isinstance(data, Mapping):
            logger.warning(f"Scopes catalog {path} is not a mapping; ignoring it")
            return None
        return self.parse_scopes(data)

    def load_block_catalog(self, root: Path) -> Optional[Dict[str, CatalogEntry]]:
        """Glossary from the catalog at the project root, or None when absent."""
        path = root / self.settings.block_catalog_file_name
        if not path.is_file():
            logger.info("No block catalog found")
            return None
        ok, data = self._read_yaml(path)
        if not ok or not isinstance(data, Mapping):
            logger.warning(f"Block catalog {path} is not a mapping; ignoring it")
            return None

        catalog: Dict[str, CatalogEntry] = {}
        for name, entry in data.items():
            if isinstance(entry, Mapping):
                fields = {k: v for k, v in entry.items() if v is not None}
                try:
                    catalog[str(name)] = CatalogEntry.model_validate({**fields, "name": str(name)})
                except ValidationError as e:
                    logger.warning(f"Skipping catalog entry '{name}' in {path}: {e.error_count()} invalid field(s)")
            elif isinstance(entry, str):
                catalog[str(name)] = CatalogEntry(name=str(name), description=entry)
            elif entry is None:
                catalog[str(name)] = CatalogEntry(name=str(name))
            else:
                logger.warning(f"Skipping catalog entry '{name}' in {path}: unsupported value")
        return catalog

    def apply_scope_stats(self, scopes: Iterable[ScopeDefinition], blocks: Iterable[BlockDefinition]) -> None:
        """Fill scope file/line totals from the block records placed under each scope.

        Only block-level records carrying stats count. A record whose directory
        lies inside another counted record's directory is already included there.
        """
        counted = [b for b in blocks if not b.block_part and b.files_count is not None]
        for top in scopes:
            for scope in top.walk():
                members = [
                    b for b in counted
                    if b.scope == scope.path or b.scope.startswith(scope.path + "/")
                ]
                if not members:
                    continue
                directories = [b.directory for b in members]
                files = lines = 0
                for block in members:
                    if any(_is_nested(block.directory, other) for other in directories):
                        continue
                    files += block.files_count or 0
                    lines += block.code_lines or 0
                scope.files_count = files
                scope.code_lines = lines

    # ========================================
    # File statistics
    # ========================================

    def is_source_file(self, name: str) -> bool:
        return any(name.lower().endswith(ext) for ext in self.settings.source_extensions)

    def count_files_and_lines(self, directory: Path) -> FileStats:
        """Count source files and their lines under directory."""
        stats = FileStats()
        system_dirs = set(self.settings.system_dirs)
        queue = deque([directory])
        while queue:
            current = queue.popleft()
            try:
                entries = list(current.iterdir())
            except OSError as e:
                logger.warning(f"Error reading directory {current}: {e}")
                continue
            for entry in entries:
                if entry.is_dir() and not entry.is_symlink():
                    if entry.name not in system_dirs:
                        queue.append(entry)
                elif entry.is_file() and self.is_source_file(entry.name):
                    stats.total_files += 1
                    try:
                        with entry.open("rb") as fh:
                            stats.total_lines += sum(1 for _ in fh)
                    except OSError as e:
                        logger.warning(f"Cannot read file {entry}: {e}")
        return stats

    # ========================================
    # Project
    # ========================================

    def load_project(self, root: Path) -> ProjectData:
        """Load blocks, scopes catalog and block catalog for a project."""
        root = Path(root).expanduser()
        if not root.is_dir():
            raise DefinitionSourceError(
                f"Project directory not found: {root}",
                {"root": str(root)},
            )

        blocks = self.load_block_definitions(root)
        scopes = self.load_scopes_catalog(root)
        catalog = self.load_block_catalog(root)
        if scopes and self.settings.collect_file_stats:
            self.apply_scope_stats(scopes, blocks)
        logger.info(
            f"Project data loaded: {len(blocks)} blocks, "
            f"{'no' if scopes is None else len(scopes)} top-level scopes, "
            f"catalog {'present' if catalog else 'missing'}"
        )
        return ProjectData(scopes=scopes, blocks=blocks, catalog=catalog)
