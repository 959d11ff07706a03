"""Record normalization.

Turns raw decoded definition records (untyped mappings) into
BlockDefinition models:
- defaults for missing optional fields
- comma-separated fields (parents, based, extend) split into lists
- slash-separated blockPart split into segments
- legacy `parents` schema adapted to the canonical `scope` path
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Mapping, Optional

from pydantic import ValidationError

from .models import SCOPE_SEPARATOR, BlockDefinition

logger = logging.getLogger(__name__)

UNKNOWN_BLOCK_NAME = "Unknown"


def split_list(value: Any, separator: str = ",") -> List[str]:
    """Split a delimiter-separated string (or list of strings) into trimmed tokens."""
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(separator)
    elif isinstance(value, (list, tuple)):
        items = []
        for item in value:
            if item is None:
                continue
            items.extend(str(item).split(separator))
    else:
        items = [str(value)]
    return [item.strip() for item in items if item and item.strip()]


def split_part(value: Any) -> List[str]:
    """blockPart is '/'-separated when given as a string."""
    return split_list(value, separator=SCOPE_SEPARATOR)


def normalize_scope(value: Any) -> str:
    """Canonicalize a scope path to '/A/B'. Empty means top level."""
    segments = split_list(value, separator=SCOPE_SEPARATOR)
    if not segments:
        return ""
    return SCOPE_SEPARATOR + SCOPE_SEPARATOR.join(segments)


def _text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, (list, tuple)):
        return ", ".join(str(v) for v in value if v is not None)
    return str(value)


def normalize_record(raw: Any, source: str = "") -> Optional[BlockDefinition]:
    """Build a BlockDefinition from a raw record.

    Returns None (and logs a warning) when the record is not a mapping or
    cannot be validated; missing optional fields never fail.
    """
    if not isinstance(raw, Mapping):
        logger.warning(f"Skipping malformed record {source or '<input>'}: expected a mapping, got {type(raw).__name__}")
        return None

    if "scope" in raw and raw.get("scope") is not None:
        scope = normalize_scope(raw.get("scope"))
    else:
        # Legacy schema: ordered parents list instead of a scope path
        scope = normalize_scope(split_list(raw.get("parents")))

    block_name = raw.get("blockName")
    if block_name is None or not str(block_name).strip():
        block_name = UNKNOWN_BLOCK_NAME

    try:
        return BlockDefinition(
            file_path=_text(raw.get("filePath")),
            directory=_text(raw.get("directory")),
            scope=scope,
            block_name=str(block_name).strip(),
            block_part=split_part(raw.get("blockPart")),
            description=_text(raw.get("description")),
            aspects=_text(raw.get("aspects")),
            ignore=bool(raw.get("ignore") or False),
            based=split_list(raw.get("based")),
            extend=split_list(raw.get("extend")),
            files_count=raw.get("filesCount"),
            code_lines=raw.get("codeLines"),
        )
    except ValidationError as e:
        logger.warning(f"Skipping malformed record {source or '<input>'}: {e.error_count()} validation error(s)")
        return None


def filter_ignored(blocks: Iterable[BlockDefinition]) -> List[BlockDefinition]:
    """Drop records flagged `ignore`. This is final, not a visibility toggle."""
    return [block for block in blocks if not block.ignore]


def normalize_records(
    records: Iterable[Any],
    drop_ignored: bool = True,
) -> List[BlockDefinition]:
    """Normalize a batch of raw records, preserving input order."""
    blocks: List[BlockDefinition] = []
    malformed = 0
    ignored = 0
    for index, raw in enumerate(records):
        block = normalize_record(raw, source=f"record #{index}")
        if block is None:
            malformed += 1
            continue
        if drop_ignored and block.ignore:
            ignored += 1
            continue
        blocks.append(block)

    logger.info(f"Normalized records: {len(blocks)} kept, {ignored} ignored, {malformed} malformed")
    return blocks
