"""Shared fixtures: a pinned clock, sample items and fake collaborators."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

import pytest

from release_builder.errors import GenerationError
from release_builder.generator import DraftGenerator
from release_builder.materializer import DraftMaterializer, InMemoryDraftStore
from release_builder.schemas import (
    ChangeItem,
    ChangeKind,
    GenerationRequest,
    GenerationResult,
    Provider,
    SourceOption,
)
from release_builder.session import BuilderServices

FIXED_NOW = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)


def fixed_clock() -> datetime:
    return FIXED_NOW


async def until(predicate, timeout: float = 2.0) -> None:
    """Yield to the event loop until ``predicate()`` holds."""
    async with asyncio.timeout(timeout):
        while not predicate():
            await asyncio.sleep(0.001)


def make_item(
    item_id: str,
    kind: ChangeKind = ChangeKind.ISSUE,
    provider: Provider = Provider.JIRA,
    title: str | None = None,
    description: str = "",
    labels: list[str] | None = None,
    status: str = "Done",
) -> ChangeItem:
    return ChangeItem(
        id=item_id,
        external_id=item_id.upper(),
        title=title or f"Item {item_id}",
        description=description,
        status=status,
        author="Dev",
        labels=labels or [],
        updated_at="2026-02-20T10:00:00.000Z",
        kind=kind,
        provider=provider,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeAdapter:
    """Adapter returning canned items, or raising a canned error.

    When ``gate`` is given, calls wait for it to be set before answering.
    """

    def __init__(
        self,
        provider: Provider,
        items: list[ChangeItem] | None = None,
        sources: list[SourceOption] | None = None,
        error: Exception | None = None,
        gate: asyncio.Event | None = None,
    ) -> None:
        self.provider = provider
        self.items = items or []
        self.sources = sources or []
        self.error = error
        self.gate = gate
        self.fetch_calls: list = []
        self.source_calls = 0

    async def list_sources(self) -> list[SourceOption]:
        self.source_calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return list(self.sources)

    async def fetch_items(self, filter_config) -> list[ChangeItem]:
        self.fetch_calls.append(filter_config)
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return list(self.items)


class FakeGenerationClient:
    """Records requests; returns ``content`` or raises GenerationError."""

    def __init__(
        self, content: str | None = "<p>Release notes</p>", gate: asyncio.Event | None = None
    ) -> None:
        self.content = content
        self.gate = gate
        self.requests: list[GenerationRequest] = []

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        self.requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if not self.content:
            raise GenerationError("AI returned empty content")
        return GenerationResult(content=self.content)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def jira_items() -> list[ChangeItem]:
    return [
        make_item("1", title="PROJ-1: Add dark mode", labels=["Story"]),
        make_item("2", title="PROJ-2: Fix login crash", labels=["Bug"], description="Crash on submit"),
        make_item("3", title="PROJ-3: Improve search speed", labels=["Task", "performance"]),
    ]


@pytest.fixture
def generation_client() -> FakeGenerationClient:
    return FakeGenerationClient()


@pytest.fixture
def draft_store() -> InMemoryDraftStore:
    return InMemoryDraftStore()


@pytest.fixture
def adapters(jira_items: list[ChangeItem]) -> dict[Provider, FakeAdapter]:
    return {
        Provider.GITHUB: FakeAdapter(Provider.GITHUB),
        Provider.JIRA: FakeAdapter(
            Provider.JIRA,
            items=jira_items,
            sources=[SourceOption(id="PROJ", label="Project (PROJ)")],
        ),
        Provider.LINEAR: FakeAdapter(Provider.LINEAR),
    }


@pytest.fixture
def services(
    adapters: dict[Provider, FakeAdapter],
    generation_client: FakeGenerationClient,
    draft_store: InMemoryDraftStore,
) -> BuilderServices:
    return BuilderServices(
        adapters=adapters,
        generator=DraftGenerator(generation_client),
        materializer=DraftMaterializer(draft_store, clock=fixed_clock),
        clock=fixed_clock,
    )
