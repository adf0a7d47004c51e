"""Stored CMS document schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

PAGES_COLLECTION = "cmsPages"
TEMPLATES_COLLECTION = "cmsTemplates"
SETTINGS_COLLECTION = "cms"
SETTINGS_ID = "settings"
HOME_PAGE_ID = "home"


class CMSDocument(BaseModel):
    """Base for documents keyed by ``_id``; unknown fields are kept."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(alias="_id")

    def to_document(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


class Template(CMSDocument):
    """Page template with three independently rendered fragments."""

    header: str | None = None
    body: str | None = None
    footer: str | None = None
    created: str | None = None
    updated: str | None = None


class Page(CMSDocument):
    """A page; its ``id`` doubles as the URL segment."""

    title: str = ""
    tagline: str | None = None
    description: str | None = None
    excerpt: str | None = None
    template: str | None = None
    body: str | None = None
    created: str | None = None
    updated: str | None = None

    @property
    def is_home(self) -> bool:
        return self.id == HOME_PAGE_ID

    @property
    def summary(self) -> str | None:
        """Description, falling back to the excerpt."""
        return self.description or self.excerpt


class CMSSettings(CMSDocument):
    """Site-wide rendering settings (singleton ``cms/settings``)."""

    id: str = Field(default=SETTINGS_ID, alias="_id")
    title: str = ""
    tagline: str | None = None
    bootstrap_css: str | None = None
    bootstrap_js: str | None = None
    jquery_js: str | None = None
    popper_js: str | None = None
    fontawesome_css: str | None = None
