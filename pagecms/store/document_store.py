"""Generic document store client backed by an async SQLAlchemy engine.

Documents are JSON objects grouped into named collections and keyed by
``_id``. The client exposes the familiar find/insert/replace/update/delete
operations with filter and options mappings. Every operation runs in its own
session drawn from the engine's pool.
"""

from __future__ import annotations

import copy
import json
import logging
import uuid
from collections.abc import Mapping
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import date, datetime
from numbers import Number
from typing import TYPE_CHECKING, Any

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from pagecms.database import create_engine
from pagecms.exceptions import StoreError
from pagecms.models import Base, StoredDocument
from pagecms.services.datetime_service import format_iso

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

    from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

    from pagecms.config import Settings

logger = logging.getLogger(__name__)

_MISSING: Any = object()

_COMPARISONS = {
    "$gt": lambda value, operand: value > operand,
    "$gte": lambda value, operand: value >= operand,
    "$lt": lambda value, operand: value < operand,
    "$lte": lambda value, operand: value <= operand,
}


@dataclass(frozen=True)
class InsertOneResult:
    inserted_id: str


@dataclass(frozen=True)
class UpdateResult:
    matched_count: int
    modified_count: int
    upserted_id: str | None = None


@dataclass(frozen=True)
class DeleteResult:
    deleted_count: int


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return format_iso(value)
    if isinstance(value, date):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _to_json_document(document: Mapping[str, Any]) -> dict[str, Any]:
    """Return a detached, JSON-compatible copy of a document."""
    try:
        result: dict[str, Any] = json.loads(json.dumps(dict(document), default=_json_default))
    except (TypeError, ValueError) as exc:
        raise StoreError(f"Document store document is not JSON serializable: {exc}") from exc
    return result


def _require_collection(collection: object) -> str:
    if not collection or not isinstance(collection, str):
        raise StoreError("Document store collection is required")
    return collection


def _mapping_arg(value: object, name: str) -> dict[str, Any]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise StoreError(f"Document store {name} must be a mapping: {type(value).__name__}")
    return dict(value)


def _required_mapping_arg(value: object, name: str) -> dict[str, Any]:
    if not value or not isinstance(value, Mapping):
        raise StoreError(
            f"Document store {name} is required and must be a mapping: {type(value).__name__}"
        )
    return dict(value)


def _get_path(document: Mapping[str, Any], path: str) -> Any:
    current: Any = document
    for part in path.split("."):
        if not isinstance(current, Mapping) or part not in current:
            return _MISSING
        current = current[part]
    return current


def _set_path(document: dict[str, Any], path: str, value: Any) -> None:
    parts = path.split(".")
    current = document
    for part in parts[:-1]:
        child = current.get(part)
        if not isinstance(child, dict):
            child = {}
            current[part] = child
        current = child
    current[parts[-1]] = value


def _unset_path(document: dict[str, Any], path: str) -> None:
    parts = path.split(".")
    current: Any = document
    for part in parts[:-1]:
        current = current.get(part) if isinstance(current, dict) else None
        if current is None:
            return
    if isinstance(current, dict):
        current.pop(parts[-1], None)


def _is_operator_mapping(value: object) -> bool:
    return isinstance(value, Mapping) and bool(value) and all(
        isinstance(key, str) and key.startswith("$") for key in value
    )


def _equals(value: Any, expected: Any) -> bool:
    if expected is None:
        return value is _MISSING or value is None
    return value is not _MISSING and value == expected


def _apply_operator(value: Any, operator: str, operand: Any) -> bool:
    if operator == "$eq":
        return _equals(value, operand)
    if operator == "$ne":
        return not _equals(value, operand)
    if operator in ("$in", "$nin"):
        if not isinstance(operand, (list, tuple)):
            raise StoreError(f"Document store {operator} operand must be a list")
        found = any(_equals(value, candidate) for candidate in operand)
        return found if operator == "$in" else not found
    if operator == "$exists":
        return (value is not _MISSING) == bool(operand)
    if operator in _COMPARISONS:
        if value is _MISSING or value is None:
            return False
        try:
            return bool(_COMPARISONS[operator](value, operand))
        except TypeError:
            return False
    raise StoreError(f"Unsupported filter operator: {operator}")


def matches(document: Mapping[str, Any], filter: Mapping[str, Any]) -> bool:
    """Return True when a document satisfies every condition of a filter."""
    for path, condition in filter.items():
        value = _get_path(document, path)
        if _is_operator_mapping(condition):
            if not all(_apply_operator(value, op, arg) for op, arg in condition.items()):
                return False
        elif not _equals(value, condition):
            return False
    return True


def apply_update(document: Mapping[str, Any], update: Mapping[str, Any]) -> dict[str, Any]:
    """Apply ``$set``/``$unset``/``$inc`` operators to a copy of a document."""
    if not _is_operator_mapping(update):
        raise StoreError("Document store update must only contain update operators")

    result = copy.deepcopy(dict(document))
    for operator, fields in update.items():
        if not isinstance(fields, Mapping):
            raise StoreError(f"Document store {operator} argument must be a mapping")
        for path, value in fields.items():
            if operator == "$set":
                _set_path(result, path, value)
            elif operator == "$unset":
                _unset_path(result, path)
            elif operator == "$inc":
                current = _get_path(result, path)
                if current is _MISSING:
                    current = 0
                if not isinstance(current, Number) or not isinstance(value, Number):
                    raise StoreError(f"Cannot apply $inc to non-numeric field: {path}")
                _set_path(result, path, current + value)  # type: ignore[operator]
            else:
                raise StoreError(f"Unsupported update operator: {operator}")

    if "_id" in document and result.get("_id") != document["_id"]:
        raise StoreError("Document store updates may not change _id")
    return result


def _sort_documents(
    documents: list[dict[str, Any]], sort: object
) -> list[dict[str, Any]]:
    if isinstance(sort, Mapping):
        keys = list(sort.items())
    elif isinstance(sort, (list, tuple)):
        keys = [(item, 1) if isinstance(item, str) else tuple(item) for item in sort]
    else:
        raise StoreError("Document store sort option must be a mapping or list")

    result = list(documents)
    try:
        for path, direction in reversed(keys):

            def sort_key(doc: dict[str, Any], path: str = path) -> tuple[Any, ...]:
                value = _get_path(doc, path)
                return (0,) if value is _MISSING or value is None else (1, value)

            result.sort(key=sort_key, reverse=direction == -1)
    except TypeError as exc:
        raise StoreError(f"Cannot sort documents: {exc}") from exc
    return result


def _project(document: dict[str, Any], projection: object) -> dict[str, Any]:
    if isinstance(projection, (list, tuple)):
        projection = {field: 1 for field in projection}
    if not isinstance(projection, Mapping):
        raise StoreError("Document store projection option must be a mapping or list")

    include_id = bool(projection.get("_id", 1))
    fields = {k: v for k, v in projection.items() if k != "_id"}
    if any(fields.values()):
        result = {}
        for path, flag in fields.items():
            value = _get_path(document, path)
            if flag and value is not _MISSING:
                _set_path(result, path, value)
    else:
        result = copy.deepcopy(document)
        for path in fields:
            _unset_path(result, path)
        result.pop("_id", None)
    if include_id and "_id" in document:
        result["_id"] = document["_id"]
    return result


class DocumentStore:
    """CRUD access to JSON documents stored in a relational table."""

    def __init__(
        self,
        engine: AsyncEngine,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        self._engine = engine
        self._session_factory = session_factory

    @classmethod
    def from_settings(cls, settings: Settings) -> DocumentStore:
        engine, session_factory = create_engine(settings)
        return cls(engine, session_factory)

    async def init(self) -> None:
        """Create the documents table if it does not exist."""
        try:
            async with self._engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as exc:
            raise StoreError(f"Failed to initialize document store: {exc}") from exc

    async def close(self) -> None:
        await self._engine.dispose()

    @asynccontextmanager
    async def _session(self) -> AsyncGenerator[AsyncSession]:
        try:
            async with self._session_factory() as session:
                yield session
        except SQLAlchemyError as exc:
            raise StoreError(f"Document store operation failed: {exc}") from exc

    async def _matching(
        self, session: AsyncSession, collection: str, filter: Mapping[str, Any]
    ) -> list[StoredDocument]:
        stmt = select(StoredDocument).where(StoredDocument.collection == collection)
        doc_id = filter.get("_id")
        if isinstance(doc_id, str):
            stmt = stmt.where(StoredDocument.doc_id == doc_id)
        stmt = stmt.order_by(StoredDocument.doc_id)
        result = await session.execute(stmt)
        return [row for row in result.scalars() if matches(row.data, filter)]

    # Queries

    async def find(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> list[dict[str, Any]]:
        """Return all documents matching the filter.

        Supported options: ``sort``, ``skip``, ``limit``, ``projection``.
        """
        collection = _require_collection(collection)
        filter = _mapping_arg(filter, "filter")
        options = _mapping_arg(options, "options")

        async with self._session() as session:
            rows = await self._matching(session, collection, filter)
        documents = [dict(row.data) for row in rows]

        if options.get("sort"):
            documents = _sort_documents(documents, options["sort"])
        skip = int(options.get("skip") or 0)
        if skip:
            documents = documents[skip:]
        limit = int(options.get("limit") or 0)
        if limit:
            documents = documents[:limit]
        if options.get("projection") is not None:
            documents = [_project(doc, options["projection"]) for doc in documents]
        return documents

    async def find_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        """Return the first document matching the filter, or None."""
        options = {**_mapping_arg(options, "options"), "limit": 1}
        documents = await self.find(collection, filter, options)
        return documents[0] if documents else None

    # Writes

    async def insert_one(
        self,
        collection: str,
        document: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> InsertOneResult:
        """Insert a new document, generating an ``_id`` when absent."""
        collection = _require_collection(collection)
        data = _to_json_document(_required_mapping_arg(document, "document"))
        _mapping_arg(options, "options")

        doc_id = str(data.setdefault("_id", uuid.uuid4().hex))
        async with self._session() as session:
            if await session.get(StoredDocument, (collection, doc_id)) is not None:
                raise StoreError(f"Duplicate _id in {collection}: {doc_id}")
            session.add(StoredDocument(collection=collection, doc_id=doc_id, data=data))
            try:
                await session.commit()
            except IntegrityError as exc:
                raise StoreError(f"Duplicate _id in {collection}: {doc_id}") from exc
        return InsertOneResult(inserted_id=doc_id)

    async def replace_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        document: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> UpdateResult:
        """Replace the first matching document.

        With ``{"upsert": True}`` the document is inserted when nothing
        matches; its ``_id`` comes from the document, then the filter.
        """
        collection = _require_collection(collection)
        filter = _mapping_arg(filter, "filter")
        data = _to_json_document(_required_mapping_arg(document, "document"))
        options = _mapping_arg(options, "options")

        async with self._session() as session:
            rows = await self._matching(session, collection, filter)
            if rows:
                row = rows[0]
                if "_id" in data and data["_id"] != row.data.get("_id"):
                    raise StoreError("Document store replacement may not change _id")
                data["_id"] = row.data.get("_id", row.doc_id)
                modified = row.data != data
                row.data = data
                await session.commit()
                return UpdateResult(matched_count=1, modified_count=int(modified))

            if not options.get("upsert"):
                return UpdateResult(matched_count=0, modified_count=0)

            if "_id" not in data:
                filter_id = filter.get("_id")
                data["_id"] = filter_id if isinstance(filter_id, str) else uuid.uuid4().hex
            doc_id = str(data["_id"])
            if await self._insert_or_conflict(session, collection, doc_id, data):
                return UpdateResult(matched_count=0, modified_count=0, upserted_id=doc_id)

        # A concurrent writer inserted the same _id first: replace its record.
        logger.debug("Upsert of %s.%s raced an insert, replacing", collection, doc_id)
        return await self.replace_one(collection, {"_id": doc_id}, data)

    async def _insert_or_conflict(
        self,
        session: AsyncSession,
        collection: str,
        doc_id: str,
        data: dict[str, Any],
    ) -> bool:
        """Insert a new row; return False when the ``_id`` already exists."""
        session.add(StoredDocument(collection=collection, doc_id=doc_id, data=data))
        try:
            await session.commit()
        except IntegrityError:
            await session.rollback()
            return False
        return True

    async def _update(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: Mapping[str, Any] | None,
        *,
        many: bool,
    ) -> UpdateResult:
        collection = _require_collection(collection)
        filter = _mapping_arg(filter, "filter")
        update = _required_mapping_arg(update, "update")
        options = _mapping_arg(options, "options")

        async with self._session() as session:
            rows = await self._matching(session, collection, filter)
            if not many:
                rows = rows[:1]

            modified_count = 0
            for row in rows:
                updated = _to_json_document(apply_update(row.data, update))
                if updated != row.data:
                    row.data = updated
                    modified_count += 1
            if rows:
                await session.commit()
                return UpdateResult(matched_count=len(rows), modified_count=modified_count)

            if not options.get("upsert"):
                return UpdateResult(matched_count=0, modified_count=0)

            seed: dict[str, Any] = {}
            for path, condition in filter.items():
                if _is_operator_mapping(condition):
                    if "$eq" in condition:
                        _set_path(seed, path, condition["$eq"])
                else:
                    _set_path(seed, path, condition)
            data = _to_json_document(apply_update(seed, update))
            data.setdefault("_id", uuid.uuid4().hex)
            doc_id = str(data["_id"])
            if await self._insert_or_conflict(session, collection, doc_id, data):
                return UpdateResult(matched_count=0, modified_count=0, upserted_id=doc_id)

        logger.debug("Upsert of %s.%s raced an insert, updating", collection, doc_id)
        return await self._update(collection, {"_id": doc_id}, update, None, many=False)

    async def update_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> UpdateResult:
        """Apply update operators to the first matching document."""
        return await self._update(collection, filter, update, options, many=False)

    async def update_many(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        update: Mapping[str, Any],
        options: Mapping[str, Any] | None = None,
    ) -> UpdateResult:
        """Apply update operators to every matching document."""
        return await self._update(collection, filter, update, options, many=True)

    async def _delete(
        self,
        collection: str,
        filter: Mapping[str, Any] | None,
        options: Mapping[str, Any] | None,
        *,
        many: bool,
    ) -> DeleteResult:
        collection = _require_collection(collection)
        filter = _mapping_arg(filter, "filter")
        _mapping_arg(options, "options")

        async with self._session() as session:
            rows = await self._matching(session, collection, filter)
            if not many:
                rows = rows[:1]
            for row in rows:
                await session.delete(row)
            await session.commit()
        return DeleteResult(deleted_count=len(rows))

    async def delete_one(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> DeleteResult:
        return await self._delete(collection, filter, options, many=False)

    async def delete_many(
        self,
        collection: str,
        filter: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> DeleteResult:
        return await self._delete(collection, filter, options, many=True)
