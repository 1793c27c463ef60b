"""Tests for slugs, draft stores and the materializer.

Run with: pytest tests/test_materializer.py -v
"""

from __future__ import annotations

import json

import httpx
import pytest

from release_builder.errors import PersistenceError
from release_builder.materializer import (
    DEFAULT_RELEASE_TEMPLATE_HTML,
    DraftMaterializer,
    InMemoryDraftStore,
    PostgrestDraftStore,
    build_slug,
    slugify,
    to_base36,
)
from release_builder.schemas import Actor, DraftInsert, DraftMode
from tests.conftest import fixed_clock

ACTOR = Actor(user_id="user-1", organization_id="org-1")


class TestSlugs:
    @pytest.mark.parametrize(
        "text, expected",
        [
            ("  My Release!  ", "my-release"),
            ("Q1   Launch -- v2.0", "q1-launch-v20"),
            ("snake_case stays", "snake_case-stays"),
            ("Café déjà vu", "caf-dj-vu"),
            ("!!!", ""),
            ("", ""),
        ],
    )
    def test_slugify(self, text: str, expected: str):
        assert slugify(text) == expected

    def test_base36(self):
        assert to_base36(0) == "0"
        assert to_base36(35) == "z"
        assert to_base36(36) == "10"
        assert to_base36(1700000000000) == "loyw3v28"

    def test_base36_rejects_negative(self):
        with pytest.raises(ValueError):
            to_base36(-1)

    def test_build_slug(self):
        assert build_slug("Sprint 42 Notes", 36) == "sprint-42-notes-10"

    def test_build_slug_empty_title(self):
        assert build_slug("???", 35) == "release-notes-z"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture
def draft() -> DraftInsert:
    return DraftInsert(
        organization_id="org-1",
        author_id="user-1",
        title="Notes",
        slug="notes-1",
        content_html="<p>x</p>",
        source_ticket_ids=["PR-1"],
    )


class TestPostgrestDraftStore:
    @pytest.mark.asyncio
    async def test_insert_returns_id(self, draft: DraftInsert):
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json=[{"id": "draft-1"}])

        store = PostgrestDraftStore("https://db.example.com/", api_key="key", transport=httpx.MockTransport(handler))
        assert await store.insert(draft) == "draft-1"

        request = seen[0]
        assert request.url.path == "/rest/v1/release_notes"
        assert request.url.params["select"] == "id"
        assert request.headers["apikey"] == "key"
        assert request.headers["Prefer"] == "return=representation"
        body = json.loads(request.content)
        assert body["status"] == "draft"
        assert body["source_ticket_ids"] == ["PR-1"]

    @pytest.mark.asyncio
    async def test_rejected_insert(self, draft: DraftInsert):
        store = PostgrestDraftStore(
            "https://db.example.com",
            api_key="key",
            transport=httpx.MockTransport(lambda r: httpx.Response(409, json={"message": "duplicate key"})),
        )
        with pytest.raises(PersistenceError, match="duplicate key"):
            await store.insert(draft)

    @pytest.mark.asyncio
    async def test_missing_id(self, draft: DraftInsert):
        store = PostgrestDraftStore(
            "https://db.example.com",
            api_key="key",
            transport=httpx.MockTransport(lambda r: httpx.Response(201, json=[])),
        )
        with pytest.raises(PersistenceError, match="no id"):
            await store.insert(draft)


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------


class TestDraftMaterializer:
    @pytest.mark.asyncio
    async def test_materialize(self, jira_items):
        store = InMemoryDraftStore()
        record = await DraftMaterializer(store, clock=fixed_clock).materialize(
            ACTOR, "  Sprint Notes  ", "<p>Hi</p>", jira_items
        )

        assert record.id in store.records
        assert record.title == "Sprint Notes"
        assert record.slug == "sprint-notes-mm7p6yo0"
        assert record.status == "draft"
        assert record.content_markdown == ""
        assert record.organization_id == "org-1"
        assert record.author_id == "user-1"
        assert record.source_ticket_ids == ["1", "2", "3"]

    @pytest.mark.asyncio
    async def test_every_call_inserts_a_new_row(self, jira_items):
        store = InMemoryDraftStore()
        materializer = DraftMaterializer(store, clock=fixed_clock)
        first = await materializer.materialize(ACTOR, "Notes", "<p>a</p>", jira_items)
        second = await materializer.materialize(ACTOR, "Notes", "<p>a</p>", jira_items)
        assert first.id != second.id
        assert len(store.records) == 2

    @pytest.mark.asyncio
    async def test_template_quick_draft(self):
        store = InMemoryDraftStore()
        record = await DraftMaterializer(store, clock=fixed_clock).create_quick_draft(ACTOR, DraftMode.TEMPLATE)
        assert record.title == "Release Notes Template 2026-03-01"
        assert record.content_html == DEFAULT_RELEASE_TEMPLATE_HTML
        assert record.source_ticket_ids == []

    @pytest.mark.asyncio
    async def test_scratch_quick_draft(self):
        record = await DraftMaterializer(InMemoryDraftStore(), clock=fixed_clock).create_quick_draft(
            Actor(user_id="solo"), DraftMode.SCRATCH
        )
        assert record.title == "New Release Notes 2026-03-01"
        assert record.content_html == ""
        assert record.organization_id == "solo"

    @pytest.mark.asyncio
    async def test_store_failure_propagates(self, jira_items):
        class FailingStore:
            async def insert(self, draft):
                raise PersistenceError("Failed to save generated draft: HTTP 500")

        with pytest.raises(PersistenceError):
            await DraftMaterializer(FailingStore(), clock=fixed_clock).materialize(
                ACTOR, "Notes", "<p>a</p>", jira_items
            )
