"""Tests for page resolution and the settings bootstrap."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any
from unittest.mock import AsyncMock, patch

import pytest
from hypothesis import given
from hypothesis import strategies as st

from pagecms.exceptions import PageNotFoundError, SettingsNotFoundError
from pagecms.services.migration_service import migrate
from pagecms.services.page_service import (
    CMSContext,
    ensure_settings,
    find_page,
    lookup_order,
    page_url,
    render_path,
    resolve_page,
    split_path,
)

if TYPE_CHECKING:
    from pathlib import Path

    from pagecms.store.document_store import DocumentStore

_SEGMENT = st.text(alphabet="abcdefghijklmnopqrstuvwxyz0123456789-_.", min_size=1, max_size=12)


class RecordingStore:
    """In-memory stand-in recording every ``find_one`` lookup."""

    def __init__(self, documents: dict[tuple[str, str], dict[str, Any]]) -> None:
        self.documents = documents
        self.lookups: list[tuple[str, str]] = []

    async def find_one(
        self, collection: str, filter: dict[str, Any], options: Any = None
    ) -> dict[str, Any] | None:
        self.lookups.append((collection, filter["_id"]))
        document = self.documents.get((collection, filter["_id"]))
        return dict(document) if document is not None else None


def _home_only() -> RecordingStore:
    return RecordingStore(
        {
            ("cmsPages", "home"): {"_id": "home", "title": "Home", "template": "public"},
            ("cmsTemplates", "public"): {"_id": "public", "header": None, "footer": None},
        }
    )


class TestSplitPath:
    def test_root(self) -> None:
        assert split_path("/") == ["home"]
        assert split_path("") == ["home"]

    def test_segments_are_lowercased(self) -> None:
        assert split_path("/Blog/Post-1") == ["home", "blog", "post-1"]

    def test_trailing_slash_dropped(self) -> None:
        assert split_path("/blog/") == ["home", "blog"]

    def test_empty_inner_segment_becomes_home(self) -> None:
        assert split_path("/a//b") == ["home", "a", "home", "b"]

    def test_lookup_order_is_deepest_first(self) -> None:
        assert lookup_order("/blog/2024/my-post") == ["my-post", "2024", "blog", "home"]

    @given(st.lists(_SEGMENT, max_size=6))
    def test_lookup_order_reverses_segments(self, segments: list[str]) -> None:
        path = "/" + "/".join(segments)
        assert lookup_order(path) == [*reversed(segments), "home"]


class TestPageUrl:
    def test_home_is_root(self) -> None:
        assert page_url("home") == "/"

    def test_other_pages(self) -> None:
        assert page_url("about") == "/about"


class TestFindPage:
    @pytest.mark.asyncio
    async def test_attaches_template_and_url(self) -> None:
        store = _home_only()
        resolved = await find_page(store, "home")  # type: ignore[arg-type]

        assert resolved is not None
        assert resolved.page.title == "Home"
        assert resolved.url == "/"
        assert resolved.template is not None
        assert resolved.template.id == "public"
        assert store.lookups == [("cmsPages", "home"), ("cmsTemplates", "public")]

    @pytest.mark.asyncio
    async def test_missing_template_is_not_an_error(self) -> None:
        store = RecordingStore(
            {("cmsPages", "about"): {"_id": "about", "title": "About", "template": "gone"}}
        )
        resolved = await find_page(store, "about")  # type: ignore[arg-type]

        assert resolved is not None
        assert resolved.template is None
        assert resolved.url == "/about"
        assert resolved.to_document()["template"] == "gone"

    @pytest.mark.asyncio
    async def test_missing_page(self) -> None:
        assert await find_page(_home_only(), "nope") is None  # type: ignore[arg-type]


class TestResolvePage:
    @pytest.mark.asyncio
    async def test_deepest_segment_wins(self, tmp_path: Path) -> None:
        store = _home_only()
        store.documents[("cmsPages", "blog")] = {"_id": "blog", "title": "Blog"}
        store.documents[("cmsPages", "post-1")] = {"_id": "post-1", "title": "Post"}

        resolved = await resolve_page(store, "/blog/post-1", tmp_path)  # type: ignore[arg-type]

        assert resolved.page.id == "post-1"
        assert store.lookups == [("cmsPages", "post-1")]

    @pytest.mark.asyncio
    async def test_falls_back_toward_root(self, tmp_path: Path) -> None:
        store = _home_only()
        store.documents[("cmsPages", "blog")] = {"_id": "blog", "title": "Blog"}

        resolved = await resolve_page(store, "/blog/post-1", tmp_path)  # type: ignore[arg-type]

        assert resolved.page.id == "blog"
        assert resolved.url == "/blog"
        assert store.lookups == [("cmsPages", "post-1"), ("cmsPages", "blog")]

    @pytest.mark.asyncio
    async def test_unknown_path_resolves_home(self, tmp_path: Path) -> None:
        store = _home_only()

        with patch("pagecms.services.page_service.migrate", new_callable=AsyncMock) as m:
            resolved = await resolve_page(
                store, "/blog/2024/my-post", tmp_path  # type: ignore[arg-type]
            )

        m.assert_not_called()
        assert resolved.page.id == "home"
        assert [page_id for coll, page_id in store.lookups if coll == "cmsPages"] == [
            "my-post",
            "2024",
            "blog",
            "home",
        ]

    @pytest.mark.asyncio
    async def test_migrates_when_nothing_matches(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        resolved = await resolve_page(store, "/anything", seed_dir)

        assert resolved.page.id == "home"
        assert resolved.template is not None
        assert await store.find_one("cms", {"_id": "settings"}) is not None

    @pytest.mark.asyncio
    async def test_missing_home_after_migration_fails(self, tmp_path: Path) -> None:
        store = RecordingStore({})

        with (
            patch("pagecms.services.page_service.migrate", new_callable=AsyncMock) as m,
            pytest.raises(PageNotFoundError, match="Home page"),
        ):
            await resolve_page(store, "/x", tmp_path)  # type: ignore[arg-type]

        m.assert_awaited_once_with(store, tmp_path)


class TestEnsureSettings:
    @pytest.mark.asyncio
    async def test_existing_settings_skip_migration(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        await store.insert_one("cms", {"_id": "settings", "title": "Mine"})

        with patch("pagecms.services.page_service.migrate", new_callable=AsyncMock) as m:
            settings = await ensure_settings(store, seed_dir)

        m.assert_not_called()
        assert settings.title == "Mine"

    @pytest.mark.asyncio
    async def test_missing_settings_are_migrated(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        settings = await ensure_settings(store, seed_dir)
        assert settings.id == "settings"
        assert settings.title == "PageCMS"
        assert settings.bootstrap_css

    @pytest.mark.asyncio
    async def test_force_reseeds(self, store: DocumentStore, seed_dir: Path) -> None:
        await migrate(store, seed_dir)
        await store.update_one("cms", {"_id": "settings"}, {"$set": {"title": "Old"}})

        settings = await ensure_settings(store, seed_dir, force=True)

        assert settings.title == "PageCMS"

    @pytest.mark.asyncio
    async def test_still_missing_is_fatal(
        self, store: DocumentStore, empty_seed_dir: Path
    ) -> None:
        with pytest.raises(SettingsNotFoundError):
            await ensure_settings(store, empty_seed_dir)


class TestCMSContext:
    @pytest.mark.asyncio
    async def test_settings_loaded_lazily_once(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        context = CMSContext(store=store, seed_dir=seed_dir)

        first = await context.get_settings()
        with patch("pagecms.services.page_service.ensure_settings") as ensure:
            second = await context.get_settings()

        ensure.assert_not_called()
        assert first is second

    @pytest.mark.asyncio
    async def test_render_path_on_empty_store(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        context = CMSContext(store=store, seed_dir=seed_dir)

        html = await render_path(context, "/")

        assert "<title>A minimal content management server</title>" in html
        assert "Welcome to PageCMS" in html
        assert "error" not in html.lower()

    @pytest.mark.asyncio
    async def test_parallel_first_requests_on_empty_store(
        self, store: DocumentStore, seed_dir: Path
    ) -> None:
        context = CMSContext(store=store, seed_dir=seed_dir)

        pages = await asyncio.gather(*(render_path(context, "/") for _ in range(8)))

        assert all("Welcome to PageCMS" in html for html in pages)
        assert len(await store.find("cmsPages")) == 2
