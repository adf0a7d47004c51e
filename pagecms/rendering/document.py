"""HTML output document assembled by the page renderer."""

from __future__ import annotations

import html

_DEFAULT_MONOSPACE_CLASSES = "border-left border-info ml-3 pl-3"


def _esc(value: object) -> str:
    return html.escape(str(value), quote=True)


class Alert:
    """A Bootstrap alert panel built from headings, text and code blocks."""

    def __init__(self, theme: str = "info") -> None:
        self.theme = theme
        self._parts: list[str] = []

    def display_heading(self, text: str, level: int = 1) -> Alert:
        self._parts.append(f'<h{level} class="display-{level}">{_esc(text)}</h{level}>')
        return self

    def heading(self, text: str, level: int = 2) -> Alert:
        self._parts.append(f"<h{level}>{_esc(text)}</h{level}>")
        return self

    def text(self, text: str) -> Alert:
        self._parts.append(f"<p>{_esc(text)}</p>")
        return self

    def monospace(self, text: str | None, classes: str = _DEFAULT_MONOSPACE_CLASSES) -> Alert:
        self._parts.append(f'<pre class="{_esc(classes)}">{_esc(text or "")}</pre>')
        return self

    def __str__(self) -> str:
        body = "".join(self._parts)
        return f'<div class="alert alert-{_esc(self.theme)}" role="alert">{body}</div>'


class HtmlDocument:
    """An HTML5 page: head metadata, Bootstrap assets and body fragments.

    Body fragments are trusted HTML; everything passed as text (title,
    metadata, alert content) is escaped on output.
    """

    def __init__(self, title: str, lang: str = "en") -> None:
        self.title = title
        self.lang = lang
        self._metadata: list[tuple[str, str]] = []
        self._stylesheets: list[str] = []
        self._scripts: list[str] = []
        self._fragments: list[str] = []

    def metadata(self, name: str, content: str) -> None:
        """Add a ``<meta name=... content=...>`` tag."""
        self._metadata.append((name, content))

    def stylesheet(self, href: str | None) -> None:
        if href and href not in self._stylesheets:
            self._stylesheets.append(href)

    def script(self, src: str | None) -> None:
        if src and src not in self._scripts:
            self._scripts.append(src)

    def bootstrap(
        self,
        css: str | None = None,
        js: str | None = None,
        jquery_js: str | None = None,
        popper_js: str | None = None,
        fontawesome_css: str | None = None,
    ) -> None:
        """Enable Bootstrap theming; scripts load jQuery and Popper first."""
        self.stylesheet(css)
        self.stylesheet(fontawesome_css)
        self.script(jquery_js)
        self.script(popper_js)
        self.script(js)

    def add(self, fragment: object) -> None:
        """Append a trusted HTML fragment (or an ``Alert``) to the body."""
        text = str(fragment)
        if text:
            self._fragments.append(text)

    def alert(self, heading: str, detail: object = None, theme: str = "danger") -> Alert:
        """Append an alert panel with a heading and optional detail text."""
        panel = Alert(theme=theme).heading(heading, level=1)
        if detail is not None:
            panel.text(str(detail))
        self.add(panel)
        return panel

    @property
    def fragments(self) -> list[str]:
        return list(self._fragments)

    def __str__(self) -> str:
        head = [
            '<meta charset="utf-8">',
            '<meta name="viewport" content="width=device-width, initial-scale=1">',
            f"<title>{_esc(self.title)}</title>",
        ]
        head.extend(
            f'<meta name="{_esc(name)}" content="{_esc(content)}">'
            for name, content in self._metadata
        )
        head.extend(f'<link rel="stylesheet" href="{_esc(href)}">' for href in self._stylesheets)
        scripts = [f'<script src="{_esc(src)}"></script>' for src in self._scripts]

        return "\n".join(
            [
                "<!DOCTYPE html>",
                f'<html lang="{_esc(self.lang)}">',
                "<head>",
                *head,
                "</head>",
                "<body>",
                *self._fragments,
                *scripts,
                "</body>",
                "</html>",
            ]
        )
