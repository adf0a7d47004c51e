"""Stored document model."""

from __future__ import annotations

from typing import Any

from sqlalchemy import JSON, Text
from sqlalchemy.orm import Mapped, mapped_column

from pagecms.models.base import Base


class StoredDocument(Base):
    """A JSON document identified by ``_id`` within a named collection."""

    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(Text, primary_key=True)
    doc_id: Mapped[str] = mapped_column(Text, primary_key=True)
    data: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False)
