"""Shared test fixtures for PageCMS."""

from __future__ import annotations

import shutil
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient

from pagecms.config import Settings
from pagecms.filesystem.seed_loader import PACKAGED_SEED_DIR
from pagecms.main import create_app
from pagecms.store.document_store import DocumentStore

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator
    from pathlib import Path

    from fastapi import FastAPI


@asynccontextmanager
async def create_test_client(
    settings: Settings, app: FastAPI | None = None
) -> AsyncGenerator[AsyncClient]:
    """Create an HTTP test client with a fully started app.

    ASGITransport does not run the lifespan, so it is entered explicitly.
    """
    if app is None:
        app = create_app(settings)
    async with app.router.lifespan_context(app):
        async with AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
        ) as ac:
            yield ac


def write_seed(seed_dir: Path, name: str, content: str) -> Path:
    """Write one seed file and return its path."""
    path = seed_dir / name
    path.write_text(content, encoding="utf-8")
    return path


@pytest.fixture
def seed_dir(tmp_path: Path) -> Path:
    """A writable copy of the packaged seed directory."""
    target = tmp_path / "seed"
    shutil.copytree(PACKAGED_SEED_DIR, target)
    return target


@pytest.fixture
def empty_seed_dir(tmp_path: Path) -> Path:
    target = tmp_path / "empty-seed"
    target.mkdir()
    return target


@pytest.fixture
def test_settings(tmp_path: Path, seed_dir: Path) -> Settings:
    """Create test settings with temporary paths."""
    return Settings(
        _env_file=None,  # type: ignore[call-arg]
        debug=False,
        store_database=str(tmp_path / "test.db"),
        seed_dir=seed_dir,
    )


@pytest.fixture
async def store(test_settings: Settings) -> AsyncGenerator[DocumentStore]:
    """An initialized document store on a temporary sqlite database."""
    document_store = DocumentStore.from_settings(test_settings)
    await document_store.init()
    yield document_store
    await document_store.close()
