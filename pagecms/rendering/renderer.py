"""Staged page renderer.

A page is rendered in three stages: the template header, the page body and
the template footer. Each stage is a Jinja2 template evaluated in a sandbox,
and a failing stage is replaced by an inline error panel so the rest of the
page still renders.
"""

from __future__ import annotations

import json
import logging
from functools import lru_cache
from typing import TYPE_CHECKING, Any

from jinja2 import Template as JinjaTemplate
from jinja2.sandbox import ImmutableSandboxedEnvironment

from pagecms import __description__, __version__
from pagecms.rendering.document import Alert, HtmlDocument

if TYPE_CHECKING:
    from pagecms.schemas.cms import CMSSettings, Page, Template

logger = logging.getLogger(__name__)

PACKAGE_INFO: dict[str, str] = {
    "name": "pagecms",
    "description": __description__,
    "version": __version__,
}

HEADER_ERROR = "Template header error"
BODY_ERROR = "Page body error"
FOOTER_ERROR = "Template footer error"


class RenderError(RuntimeError):
    """Raised when a render stage cannot produce its output."""


# Built-in containers are read-only so stages cannot alter shared settings.
_environment = ImmutableSandboxedEnvironment(
    autoescape=True,
    extensions=["jinja2.ext.do"],
)


@lru_cache(maxsize=256)
def _compile(source: str) -> JinjaTemplate:
    return _environment.from_string(source)


class OutputHandle:
    """The ``output`` object visible to stage templates.

    Only the header stage may create the document; later stages can reach
    it through ``output.current``.
    """

    def __init__(self) -> None:
        self.current: HtmlDocument | None = None
        self._can_create = True

    def document(self, title: str) -> HtmlDocument:
        if not self._can_create:
            raise RenderError("Only the template header may create the output document")
        self.current = HtmlDocument(str(title))
        return self.current

    def seal(self, document: HtmlDocument) -> None:
        self.current = document
        self._can_create = False


def evaluate_stage(source: str | None, context: dict[str, Any]) -> str:
    """Render one stage fragment; empty fragments produce no output."""
    if not source:
        return ""
    return _compile(source).render(context)


def enable_theme(document: HtmlDocument, settings: CMSSettings) -> None:
    document.bootstrap(
        css=settings.bootstrap_css,
        js=settings.bootstrap_js,
        jquery_js=settings.jquery_js,
        popper_js=settings.popper_js,
        fontawesome_css=settings.fontawesome_css,
    )


def fallback_document(page: Page, settings: CMSSettings) -> HtmlDocument:
    """Document used when the template header cannot build one."""
    document = HtmlDocument(PACKAGE_INFO["description"] if page.is_home else page.title)
    enable_theme(document, settings)
    return document


def _describe(exc: BaseException) -> str:
    return f"{type(exc).__name__}: {exc}"


def debug_panel(
    page_document: dict[str, Any], template: Template | None, page: Page
) -> Alert:
    """Diagnostic panel with the page record and raw stage sources."""
    panel = Alert(theme="info")
    panel.display_heading("Source")
    panel.heading("Page JSON")
    panel.monospace(json.dumps(page_document, indent=4, default=str))
    panel.heading("Template header")
    panel.monospace(template.header if template is not None else None)
    panel.heading("Page body")
    panel.monospace(page.body)
    panel.heading("Template footer")
    panel.monospace(template.footer if template is not None else None)
    return panel


def render_page(
    page: Page,
    template: Template | None,
    settings: CMSSettings,
    debug: bool = False,
    page_document: dict[str, Any] | None = None,
) -> str:
    """Render a page through its template and return the HTML string.

    Stage failures never propagate: a broken header falls back to a plain
    themed document, and every failing stage leaves an error panel.
    """
    output = OutputHandle()
    context: dict[str, Any] = {
        "page": page,
        "template": template,
        "settings": settings,
        "package": PACKAGE_INFO,
        "output": output,
    }

    document: HtmlDocument
    try:
        if template is None:
            raise RenderError(f"Template not found: {page.template}")
        header_html = evaluate_stage(template.header, context)
        if output.current is None:
            raise RenderError("Template header did not create the output document")
        document = output.current
        document.add(header_html)
    except Exception as exc:
        logger.warning("Template header failed for page %s: %s", page.id, exc, exc_info=True)
        document = fallback_document(page, settings)
        document.alert(HEADER_ERROR, _describe(exc))
    output.seal(document)

    try:
        document.add(evaluate_stage(page.body, context))
    except Exception as exc:
        logger.warning("Page body failed for page %s: %s", page.id, exc, exc_info=True)
        document.alert(BODY_ERROR, _describe(exc))

    if debug:
        document.add(debug_panel(page_document or page.to_document(), template, page))

    try:
        if template is None:
            raise RenderError(f"Template not found: {page.template}")
        document.add(evaluate_stage(template.footer, context))
    except Exception as exc:
        logger.warning("Template footer failed for page %s: %s", page.id, exc, exc_info=True)
        document.alert(FOOTER_ERROR, _describe(exc))

    return str(document)
