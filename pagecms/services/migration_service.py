"""Seed migration: load default documents into the document store."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from pagecms.filesystem.seed_loader import (
    SeedEntry,
    discover_seed_entries,
    read_seed_document,
    read_seed_source,
    split_template_source,
)
from pagecms.schemas.cms import PAGES_COLLECTION, TEMPLATES_COLLECTION
from pagecms.services.datetime_service import timestamp

if TYPE_CHECKING:
    from pathlib import Path

    from pagecms.store.document_store import DocumentStore

logger = logging.getLogger(__name__)

_SOURCE_COLLECTIONS = frozenset({PAGES_COLLECTION, TEMPLATES_COLLECTION})


@dataclass
class MigrationResult:
    """Outcome of one migration run, as ``collection.id`` labels."""

    upserted: list[str] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)


async def build_seed_document(
    entry: SeedEntry, existing: dict[str, Any] | None = None
) -> dict[str, Any]:
    """Build the document to upsert for a seed entry.

    Pages receive their source verbatim as ``body``; templates have theirs
    split into ``header``/``body``/``footer``. A re-seeded record keeps the
    ``created`` timestamp of the document it replaces.
    """
    document = await asyncio.to_thread(read_seed_document, entry)
    document["_id"] = entry.id
    if entry.collection not in _SOURCE_COLLECTIONS:
        return document

    source = await asyncio.to_thread(read_seed_source, entry)
    if source is not None:
        if entry.collection == PAGES_COLLECTION:
            document["body"] = source
        else:
            header, body, footer = split_template_source(source, entry.collection, entry.id)
            document["header"] = header
            document["body"] = body
            document["footer"] = footer

    now = timestamp()
    created = existing.get("created") if existing else None
    document["created"] = created or now
    document["updated"] = now
    return document


async def migrate(store: DocumentStore, seed_dir: Path, force: bool = False) -> MigrationResult:
    """Ensure every seed-defined document exists in the store.

    Without ``force`` existing documents are left untouched, so repeated runs
    write nothing. With ``force`` every seed document is overwritten. The
    first failure aborts the run.
    """
    logger.info("Migrating seed data from %s (force=%s)", seed_dir, force)
    entries = await asyncio.to_thread(discover_seed_entries, seed_dir)
    result = MigrationResult()

    for entry in entries:
        label = f"{entry.collection}.{entry.id}"
        existing = await store.find_one(entry.collection, {"_id": entry.id})
        if existing is not None and not force:
            result.skipped.append(label)
            continue

        document = await build_seed_document(entry, existing)
        await store.replace_one(
            entry.collection, {"_id": entry.id}, document, {"upsert": True}
        )
        logger.info("Upserted %s", label)
        result.upserted.append(label)

    logger.info(
        "Migration complete: %d upserted, %d skipped",
        len(result.upserted),
        len(result.skipped),
    )
    return result
