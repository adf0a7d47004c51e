"""Seed directory reader for default CMS documents.

A seed directory holds one ``<collection>-<id>.json`` metadata file per
document. Pages and templates may ship a sibling ``<collection>-<id>.jinja``
source file; template sources are split into header, body and footer on the
template divider line.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from pagecms.exceptions import MigrationError

logger = logging.getLogger(__name__)

PACKAGED_SEED_DIR = Path(__file__).resolve().parent.parent / "seed"

METADATA_SUFFIX = ".json"
SOURCE_SUFFIX = ".jinja"
COLLECTION_SEPARATOR = "-"

TEMPLATE_DIVIDER = "//////////////////// TEMPLATE DIVIDER ////////////////////"
_TEMPLATE_DIVIDER_RE = re.compile(rf"^{re.escape(TEMPLATE_DIVIDER)}\r?\n", re.MULTILINE)


@dataclass(frozen=True)
class SeedEntry:
    """One seed metadata file and its optional source sibling."""

    collection: str
    id: str
    metadata_path: Path

    @property
    def source_path(self) -> Path:
        return self.metadata_path.with_suffix(SOURCE_SUFFIX)


def resolve_seed_dir(override: Path | None = None) -> Path:
    """Return the project-local seed directory if it exists, else the packaged one."""
    if override is not None and override.is_dir():
        return override
    return PACKAGED_SEED_DIR


def parse_seed_name(path: Path) -> tuple[str, str]:
    """Split a seed file name into ``(collection, id)`` at the first separator."""
    collection, sep, doc_id = path.stem.partition(COLLECTION_SEPARATOR)
    if not sep or not collection or not doc_id:
        msg = f"Seed file name must be <collection>{COLLECTION_SEPARATOR}<id>: {path.name}"
        raise MigrationError(msg)
    return collection, doc_id


def discover_seed_entries(seed_dir: Path) -> list[SeedEntry]:
    """List the seed metadata files in a directory, sorted by name."""
    if not seed_dir.is_dir():
        raise MigrationError(f"Seed directory not found: {seed_dir}")
    entries: list[SeedEntry] = []
    for path in sorted(seed_dir.glob(f"*{METADATA_SUFFIX}")):
        collection, doc_id = parse_seed_name(path)
        entries.append(SeedEntry(collection=collection, id=doc_id, metadata_path=path))
    return entries


def read_seed_document(entry: SeedEntry) -> dict[str, Any]:
    """Read and parse a seed metadata file."""
    try:
        raw = entry.metadata_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise MigrationError(f"Unable to read seed file {entry.metadata_path}: {exc}") from exc

    try:
        document = json.loads(raw)
    except json.JSONDecodeError as exc:
        msg = f"Invalid JSON in seed file {entry.metadata_path.name}: {exc}"
        raise MigrationError(msg) from exc

    if not isinstance(document, dict):
        msg = f"Seed file {entry.metadata_path.name} must contain a JSON object"
        raise MigrationError(msg)
    return document


def read_seed_source(entry: SeedEntry) -> str | None:
    """Read the source file paired with a seed entry.

    Returns None when the file is absent or unreadable; not every page or
    template ships a source file.
    """
    try:
        return entry.source_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError):
        logger.debug("No source file for %s.%s", entry.collection, entry.id)
        return None


def split_template_source(
    source: str, collection: str, doc_id: str
) -> tuple[str | None, str | None, str | None]:
    """Split template source into header, body and footer.

    Empty parts become None. Anything other than exactly two divider lines
    is an error.
    """
    parts = _TEMPLATE_DIVIDER_RE.split(source)
    if len(parts) != 3:
        msg = f"CMS Template source must have three parts: {collection}.{doc_id} ({len(parts)})"
        raise MigrationError(msg)
    header, body, footer = (part or None for part in parts)
    return header, body, footer
