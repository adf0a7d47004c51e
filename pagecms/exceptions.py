"""Application-level exception types.

Convention:
- ``InternalServerError`` and its subclasses are structural failures whose
  details must never reach clients (store failures, broken seed data, missing
  home page or settings). The global handler logs the full message at ERROR
  and returns a plain "Internal Server Error" (500).
- ``ConfigurationError`` is raised while validating settings at startup and
  aborts the process before any request is served.
- Content failures inside a single render stage are not exceptions at this
  level; the renderer catches them and shows an inline panel instead.
"""

from __future__ import annotations


class ConfigurationError(ValueError):
    """Raised when required connection parameters are missing or inconsistent."""


class InternalServerError(Exception):
    """Raised for internal errors whose details must not be exposed to clients.

    The global exception handler in ``pagecms/main.py`` catches this, logs
    the full message server-side, and returns HTTP 500.
    """


class StoreError(InternalServerError):
    """Raised when a document store operation fails or receives bad arguments."""


class MigrationError(InternalServerError):
    """Raised when seed data cannot be loaded into the document store."""


class PageNotFoundError(InternalServerError):
    """Raised when no page resolves, not even ``home`` after migration."""


class SettingsNotFoundError(InternalServerError):
    """Raised when the CMS settings record is missing after migration."""
