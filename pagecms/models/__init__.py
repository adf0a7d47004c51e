"""SQLAlchemy ORM models for PageCMS."""

from pagecms.models.base import Base
from pagecms.models.document import StoredDocument

__all__ = [
    "Base",
    "StoredDocument",
]
