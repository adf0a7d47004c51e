"""Shared API dependencies: settings and CMS context."""

from __future__ import annotations

from fastapi import Request

from pagecms.config import Settings
from pagecms.services.page_service import CMSContext


def get_settings(request: Request) -> Settings:
    """Get application settings from app state."""
    settings: Settings = request.app.state.settings
    return settings


def get_cms_context(request: Request) -> CMSContext:
    """Get the CMS context (store, seed directory, settings) from app state."""
    context: CMSContext = request.app.state.cms
    return context
