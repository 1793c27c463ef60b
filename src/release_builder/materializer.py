"""Turning generated content into a persisted draft record.

Every successful generation produces exactly one new draft row; there is
no deduplication against earlier submissions. Slugs are the slugified
title plus the base-36 creation time in milliseconds, with no uniqueness
check against the store.

Two stores are provided:
- PostgrestDraftStore writes to the ``release_notes`` table over the
  PostgREST API of the hosted database
- InMemoryDraftStore keeps records in a dict, for tests and local runs
"""

from __future__ import annotations

import re
import uuid
from typing import Protocol

import httpx

from release_builder.clock import Clock, epoch_millis, utc_now
from release_builder.errors import PersistenceError
from release_builder.logging_config import get_logger
from release_builder.schemas import Actor, ChangeItem, DraftInsert, DraftMode, DraftRecord

logger = get_logger(__name__)

DEFAULT_SLUG = "release-notes"

DEFAULT_RELEASE_TEMPLATE_HTML = """
<h2>Summary</h2>
<p>Add a short summary of what shipped in this release.</p>
<h2>New Features</h2>
<ul>
  <li>Describe the key feature and user impact.</li>
</ul>
<h2>Improvements</h2>
<ul>
  <li>Capture notable quality or workflow improvements.</li>
</ul>
<h2>Fixes</h2>
<ul>
  <li>List important bugs fixed for users.</li>
</ul>
""".strip()

_BASE36_DIGITS = "0123456789abcdefghijklmnopqrstuvwxyz"

# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


def slugify(text: str) -> str:
    """URL-friendly slug: lowercase ASCII word characters joined by hyphens.

    >>> slugify("  My Release!  ")
    'my-release'
    """
    if not text:
        return ""
    slug = text.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w\-]+", "", slug, flags=re.ASCII)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def to_base36(value: int) -> str:
    if value < 0:
        raise ValueError("base36 encoding needs a non-negative integer")
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def build_slug(title: str, now_ms: int) -> str:
    return f"{slugify(title) or DEFAULT_SLUG}-{to_base36(now_ms)}"


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


class DraftStoreProtocol(Protocol):
    """Persistence collaborator for release note drafts."""

    async def insert(self, draft: DraftInsert) -> str:
        """Insert one draft row and return its id.

        Raises:
            PersistenceError: If the insert fails or returns no id
        """
        ...


class PostgrestDraftStore:
    """Inserts drafts into the ``release_notes`` table through PostgREST.

    Usage:
        store = PostgrestDraftStore("https://xyz.supabase.co", api_key="...")
        draft_id = await store.insert(draft)
    """

    TABLE = "release_notes"

    def __init__(
        self,
        base_url: str,
        api_key: str,
        access_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {
            "apikey": api_key,
            "Authorization": f"Bearer {access_token or api_key}",
            "Content-Type": "application/json",
            "Prefer": "return=representation",
        }

    async def insert(self, draft: DraftInsert) -> str:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(
                    f"/rest/v1/{self.TABLE}",
                    params={"select": "id"},
                    json=draft.model_dump(mode="json"),
                )
        except httpx.HTTPError as exc:
            raise PersistenceError(f"Failed to save generated draft: {exc}") from exc

        if not resp.is_success:
            raise PersistenceError(f"Failed to save generated draft: {_store_message(resp)}")

        try:
            rows = resp.json()
        except ValueError as exc:
            raise PersistenceError("Failed to save generated draft: unreadable response") from exc
        row = rows[0] if isinstance(rows, list) and rows else rows
        draft_id = row.get("id") if isinstance(row, dict) else None
        if not draft_id:
            raise PersistenceError("Failed to create draft: no id returned")
        return str(draft_id)


def _store_message(resp: httpx.Response) -> str:
    try:
        data = resp.json()
    except ValueError:
        return f"HTTP {resp.status_code}"
    if isinstance(data, dict) and data.get("message"):
        return str(data["message"])
    return f"HTTP {resp.status_code}"


class InMemoryDraftStore:
    """Dict-backed store; ids are random UUIDs."""

    def __init__(self) -> None:
        self.records: dict[str, DraftRecord] = {}

    async def insert(self, draft: DraftInsert) -> str:
        draft_id = str(uuid.uuid4())
        self.records[draft_id] = DraftRecord(id=draft_id, **draft.model_dump())
        return draft_id


# ---------------------------------------------------------------------------
# Materializer
# ---------------------------------------------------------------------------


class DraftMaterializer:
    """Creates draft records for generated content and quick drafts."""

    def __init__(self, store: DraftStoreProtocol, clock: Clock = utc_now) -> None:
        self.store = store
        self._clock = clock

    async def materialize(
        self,
        actor: Actor,
        title: str,
        content_html: str,
        items: list[ChangeItem],
    ) -> DraftRecord:
        """Insert one draft for generated content.

        Args:
            actor: User the draft belongs to
            title: Release note title (trimmed before storing)
            content_html: Generated HTML
            items: The selected items; their external ids become
                   ``source_ticket_ids``

        Returns:
            The persisted DraftRecord

        Raises:
            PersistenceError: If the insert fails
        """
        draft = DraftInsert(
            organization_id=actor.org_id,
            author_id=actor.user_id,
            title=title.strip(),
            slug=build_slug(title, epoch_millis(self._clock())),
            content_html=content_html,
            content_markdown="",
            source_ticket_ids=[item.external_id for item in items],
        )
        return await self._insert(draft)

    async def create_quick_draft(self, actor: Actor, mode: DraftMode) -> DraftRecord:
        """Insert an empty or templated draft without fetching or generating."""
        now = self._clock()
        date_label = now.date().isoformat()
        if mode == DraftMode.TEMPLATE:
            title = f"Release Notes Template {date_label}"
            content = DEFAULT_RELEASE_TEMPLATE_HTML
        else:
            title = f"New Release Notes {date_label}"
            content = ""
        draft = DraftInsert(
            organization_id=actor.org_id,
            author_id=actor.user_id,
            title=title,
            slug=build_slug(title, epoch_millis(now)),
            content_html=content,
            content_markdown="",
            source_ticket_ids=[],
        )
        return await self._insert(draft)

    async def _insert(self, draft: DraftInsert) -> DraftRecord:
        try:
            draft_id = await self.store.insert(draft)
        except PersistenceError as e:
            logger.error("draft_insert_failed", slug=draft.slug, error=e.message)
            raise
        logger.info(
            "draft_created",
            draft_id=draft_id,
            slug=draft.slug,
            source_items=len(draft.source_ticket_ids),
        )
        return DraftRecord(id=draft_id, **draft.model_dump())
