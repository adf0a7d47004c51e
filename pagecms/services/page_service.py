"""Page service: URL resolution, settings bootstrap and page rendering."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pagecms.exceptions import PageNotFoundError, SettingsNotFoundError
from pagecms.rendering.renderer import render_page
from pagecms.schemas.cms import (
    HOME_PAGE_ID,
    PAGES_COLLECTION,
    SETTINGS_COLLECTION,
    SETTINGS_ID,
    TEMPLATES_COLLECTION,
    CMSSettings,
    Page,
    Template,
)
from pagecms.services.migration_service import migrate

if TYPE_CHECKING:
    from pathlib import Path

    from pagecms.store.document_store import DocumentStore

logger = logging.getLogger(__name__)


@dataclass
class ResolvedPage:
    """A page together with its template and canonical URL."""

    page: Page
    template: Template | None
    url: str

    def to_document(self) -> dict[str, Any]:
        """The page record as shown in debug output, template inlined."""
        document = self.page.to_document()
        document["url"] = self.url
        document["template"] = (
            self.template.to_document() if self.template is not None else self.page.template
        )
        return document


def page_url(page_id: str) -> str:
    """Canonical URL for a page: ``/`` for home, ``/<id>`` otherwise."""
    return "/" if page_id == HOME_PAGE_ID else f"/{page_id}"


def split_path(path: str) -> list[str]:
    """Split a request path into lowercase segments, root first.

    Trailing slashes are dropped; empty segments become ``home``.
    """
    # "/blog/" resolves like "/blog", not from "home" upward.
    segments = path.lower().rstrip("/").split("/")
    return [segment or HOME_PAGE_ID for segment in segments]


def lookup_order(path: str) -> list[str]:
    """Page ids to try for a path, most specific segment first."""
    return list(reversed(split_path(path)))


async def find_page(store: DocumentStore, page_id: str) -> ResolvedPage | None:
    """Look up a page by id and attach its template."""
    document = await store.find_one(PAGES_COLLECTION, {"_id": page_id})
    if document is None:
        return None

    page = Page.model_validate(document)
    logger.debug("Page found: %s", page.id)

    template: Template | None = None
    if page.template:
        template_document = await store.find_one(TEMPLATES_COLLECTION, {"_id": page.template})
        if template_document is not None:
            template = Template.model_validate(template_document)
        else:
            logger.warning("Template %r for page %r not found", page.template, page.id)

    return ResolvedPage(page=page, template=template, url=page_url(page.id))


async def resolve_page(store: DocumentStore, path: str, seed_dir: Path) -> ResolvedPage:
    """Resolve a request path to a page.

    Segments are tried from the deepest to the root. When nothing matches,
    seed data is migrated and ``home`` is looked up again.
    """
    for index, segment in enumerate(lookup_order(path), start=1):
        logger.debug("URL segment (%d): %s", index, segment)
        resolved = await find_page(store, segment)
        if resolved is not None:
            return resolved

    logger.info("No page found for %s, migrating seed data", path)
    await migrate(store, seed_dir)
    resolved = await find_page(store, HOME_PAGE_ID)
    if resolved is None:
        raise PageNotFoundError("Unable to find Home page")
    return resolved


async def ensure_settings(
    store: DocumentStore, seed_dir: Path, force: bool = False
) -> CMSSettings:
    """Fetch the settings record, migrating seed data when it is missing."""
    document = await store.find_one(SETTINGS_COLLECTION, {"_id": SETTINGS_ID})
    if document is None or force:
        await migrate(store, seed_dir, force=force)
        document = await store.find_one(SETTINGS_COLLECTION, {"_id": SETTINGS_ID})

    if document is None:
        raise SettingsNotFoundError("Unable to find CMS settings")
    return CMSSettings.model_validate(document)


@dataclass
class CMSContext:
    """Request-independent state shared by the resolver and renderer."""

    store: DocumentStore
    seed_dir: Path
    debug: bool = False
    settings: CMSSettings | None = None

    async def load_settings(self, force: bool = False) -> CMSSettings:
        self.settings = await ensure_settings(self.store, self.seed_dir, force=force)
        return self.settings

    async def get_settings(self) -> CMSSettings:
        """Return the settings, loading them on first use."""
        if self.settings is None:
            return await self.load_settings()
        return self.settings


async def render_path(context: CMSContext, path: str) -> str:
    """Resolve and render the page for a request path."""
    settings = await context.get_settings()
    resolved = await resolve_page(context.store, path, context.seed_dir)
    return render_page(
        resolved.page,
        resolved.template,
        settings,
        debug=context.debug,
        page_document=resolved.to_document(),
    )
