"""Session controller for the release builder workflow.

A BuilderSession owns one BuilderState and drives it through the pipeline:

1. Pick a provider and fill in its filter (source step)
2. Fetch items through the provider's adapter (lands on the items step,
   everything selected)
3. Adjust the selection, title, tone and company details
4. Generate a draft through the AI collaborator and persist it (lands on
   the edit step with ``draft_id`` set)
5. Hand off to the external editor / publish flow

The session never rejects concurrent operations itself. It raises the
busy flags on the state for the duration of each operation, and the HTTP
layer refuses a second operation of the same kind while a flag is up.
Overlapping fetches resolve last-write-wins.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any

from release_builder.clock import Clock, iso_timestamp, utc_now
from release_builder.config import BuilderConfig
from release_builder.errors import BuilderError, ValidationError
from release_builder.generator import DraftGenerator, HttpGenerationClient
from release_builder.logging_config import bind_session, get_logger
from release_builder.materializer import (
    DraftMaterializer,
    DraftStoreProtocol,
    InMemoryDraftStore,
    PostgrestDraftStore,
)
from release_builder.providers import IntegrationsAPI, ProviderAdapter, build_adapters
from release_builder.schemas import (
    Actor,
    BuilderState,
    BuilderStep,
    ChangeItem,
    DraftMode,
    DraftRecord,
    GitHubFilter,
    JiraFilter,
    LinearFilter,
    Provider,
    SourceOption,
    Tone,
)
from release_builder.selection import SelectionStore
from release_builder.steps import editor_path, read_step, request_step

logger = get_logger(__name__)


def read_intent(value: str | None) -> DraftMode | None:
    """Quick draft intent from outside; "ai" and unknown values mean none."""
    try:
        return DraftMode(value) if value else None
    except ValueError:
        return None


def default_title(provider: Provider, now: datetime) -> str:
    return f"{provider.value.upper()} Release Notes - {now.month}/{now.day}/{now.year}"


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------


@dataclass
class BuilderServices:
    """Collaborators shared by every session of one process."""

    adapters: dict[Provider, ProviderAdapter]
    generator: DraftGenerator
    materializer: DraftMaterializer
    clock: Clock = utc_now

    @classmethod
    def from_config(cls, config: BuilderConfig, clock: Clock = utc_now) -> BuilderServices:
        """Wire the HTTP-backed adapters, generation client and draft store."""
        api = IntegrationsAPI(config.api_base_url, token=config.api_token, timeout=config.http_timeout_s)
        generation_client = HttpGenerationClient(
            config.resolved_generation_url,
            token=config.api_token,
            timeout=config.http_timeout_s,
        )
        store: DraftStoreProtocol
        if config.persistence_url and config.persistence_key:
            store = PostgrestDraftStore(
                config.persistence_url,
                api_key=config.persistence_key,
                timeout=config.http_timeout_s,
            )
        else:
            logger.warning("draft_store_in_memory", reason="persistence_url or persistence_key not set")
            store = InMemoryDraftStore()
        return cls(
            adapters=build_adapters(api, clock=clock),
            generator=DraftGenerator(generation_client),
            materializer=DraftMaterializer(store, clock=clock),
            clock=clock,
        )


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class BuilderSession:
    """One release builder workflow for one user.

    Usage:
        session = await BuilderSession.start(actor, services)
        session.update_filter(Provider.GITHUB, {"repository": "acme/api"})
        await session.fetch_items()
        session.toggle_item("commit-abc123")
        draft = await session.generate_draft()
    """

    def __init__(
        self,
        actor: Actor,
        services: BuilderServices,
        state: BuilderState | None = None,
        session_id: str | None = None,
        lookback_days: int = 30,
    ) -> None:
        self.id = session_id or uuid.uuid4().hex
        self.actor = actor
        self.services = services
        self.state = state or BuilderState(
            github=GitHubFilter(lookback_days=lookback_days),
            jira=JiraFilter(lookback_days=lookback_days),
            linear=LinearFilter(lookback_days=lookback_days),
        )
        self.selection = SelectionStore(self.state)
        self.closed = False

    @classmethod
    async def start(
        cls,
        actor: Actor,
        services: BuilderServices,
        step: str | None = None,
        intent: str | None = None,
        lookback_days: int = 30,
    ) -> BuilderSession:
        """Create a session, honouring an initial step name and quick-draft intent.

        The initial step is still guarded, so on a fresh session anything
        but Source is ignored.
        """
        session = cls(actor, services, lookback_days=lookback_days)
        request_step(session.state, read_step(step))
        mode = read_intent(intent)
        if mode is not None:
            await session.create_quick_draft(mode)
        logger.info("session_started", session_id=session.id, user_id=actor.user_id)
        return session

    def close(self) -> None:
        """Tear the session down; outstanding responses are discarded on arrival."""
        self.closed = True
        logger.info("session_closed", session_id=self.id)

    @property
    def adapter(self) -> ProviderAdapter:
        return self.services.adapters[self.state.provider]

    @asynccontextmanager
    async def _operation(self, busy_flag: str, name: str) -> AsyncIterator[None]:
        bind_session(self.id, self.state.provider.value)
        setattr(self.state, busy_flag, True)
        self.state.error = None
        try:
            yield
        except BuilderError as e:
            if not self.closed:
                self.state.error = e.message
            logger.warning(f"{name}_failed", session_id=self.id, code=e.code, error=e.message)
            raise
        finally:
            setattr(self.state, busy_flag, False)

    # -- source step --------------------------------------------------------

    def set_provider(self, provider: Provider) -> None:
        """Switch the active provider; other providers' filters are kept."""
        self.state.provider = provider

    def update_filter(self, provider: Provider, changes: dict[str, Any]) -> None:
        """Apply ``changes`` to one provider's filter.

        Keys that aren't fields of the filter are ignored.

        Raises:
            ValueError: If a changed value fails validation (the filter is
                        left as it was)
        """
        current = self.state.filter_for(provider)
        updated = type(current).model_validate({**current.model_dump(), **changes})
        setattr(self.state, provider.value, updated)

    async def load_sources(self, refresh: bool = False) -> list[SourceOption]:
        """List selectable sources of the active provider, cached per provider."""
        provider = self.state.provider
        if not refresh and self.state.sources.get(provider):
            return self.state.sources[provider]

        async with self._operation("loading_source", "load_sources"):
            sources = await self.services.adapters[provider].list_sources()
        if self.closed:
            return sources
        self.state.sources[provider] = sources
        self.state.sources_loaded_at = iso_timestamp(self.services.clock())
        return sources

    # -- items step ---------------------------------------------------------

    async def fetch_items(self) -> list[ChangeItem]:
        """Fetch items for the active provider and replace the item list.

        On success everything is selected, a default title is seeded and
        the workflow lands on the items step. On failure the previous items,
        selection and step are left as they were.

        Raises:
            FetchError: If the provider call fails
            ValidationError: If the active provider has no usable selector
        """
        provider = self.state.provider
        filter_config = self.state.filter_for(provider).model_copy()

        async with self._operation("fetching_items", "fetch_items"):
            items = await self.services.adapters[provider].fetch_items(filter_config)

        if self.closed:
            logger.info("fetch_result_discarded", session_id=self.id, provider=provider.value)
            return items

        now = self.services.clock()
        self.selection.load_items(items)
        self.state.items_loaded_at = iso_timestamp(now)
        self.state.title = default_title(provider, now)
        request_step(self.state, BuilderStep.ITEMS)
        logger.info("items_fetched", session_id=self.id, provider=provider.value, count=len(items))
        return items

    def toggle_item(self, item_id: str) -> bool:
        return self.selection.toggle_item(item_id)

    def select_all(self) -> None:
        self.selection.select_all()

    def clear_selection(self) -> None:
        self.selection.clear()

    def set_search_query(self, query: str) -> None:
        self.selection.set_search_query(query)

    # -- generate step ------------------------------------------------------

    def set_generation_inputs(
        self,
        title: str | None = None,
        tone: Tone | None = None,
        company_details: str | None = None,
    ) -> None:
        if title is not None:
            self.state.title = title
        if tone is not None:
            self.state.tone = tone
        if company_details is not None:
            self.state.company_details = company_details

    async def generate_draft(self) -> DraftRecord:
        """Generate release notes for the selection and persist one draft.

        Returns:
            The created DraftRecord; the session is then on the edit step

        Raises:
            ValidationError: Missing title or empty selection (no network call)
            GenerationError: The AI collaborator failed; step stays generate
            PersistenceError: The insert failed; the content is dropped
        """
        if not self.state.title.strip():
            self.state.error = "Provide a release note title before generating"
            raise ValidationError(self.state.error)
        selected = self.selection.selected_items()
        if not selected:
            self.state.error = "Select at least one item before generating"
            raise ValidationError(self.state.error)

        self.state.draft_id = None
        request_step(self.state, BuilderStep.GENERATE)

        async with self._operation("generating_draft", "generate_draft"):
            result = await self.services.generator.generate(
                selected,
                tone=self.state.tone,
                company_details=self.state.company_details,
            )
            record = await self.services.materializer.materialize(
                self.actor,
                self.state.title,
                result.content,
                selected,
            )

        if not self.closed:
            self._land_on_draft(record)
        return record

    async def create_quick_draft(self, mode: DraftMode) -> DraftRecord:
        """Create a scratch or template draft and jump to the edit step."""
        async with self._operation("generating_draft", "create_quick_draft"):
            record = await self.services.materializer.create_quick_draft(self.actor, mode)
        if not self.closed:
            self._land_on_draft(record)
        return record

    def _land_on_draft(self, record: DraftRecord) -> None:
        self.state.draft_id = record.id
        request_step(self.state, BuilderStep.EDIT)

    # -- navigation ---------------------------------------------------------

    def navigate(self, step: str | BuilderStep | None) -> bool:
        """Request a step by name; unknown or unreachable steps are ignored."""
        return request_step(self.state, step)

    def publish(self) -> str | None:
        """Move to the publish step and return the editor hand-off path.

        Publishing itself happens in the external editor; nothing is
        fetched or generated here.
        """
        if not request_step(self.state, BuilderStep.PUBLISH):
            return None
        return editor_path(self.state)


class SessionRegistry:
    """In-process map of live sessions keyed by id.

    Sessions untouched for ``max_idle_s`` seconds are closed and dropped the
    next time a session is added, unless an operation is still in flight.
    Clients that are done with a session should still DELETE it.
    """

    def __init__(self, max_idle_s: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.max_idle_s = max_idle_s
        self._clock = clock
        self._sessions: dict[str, BuilderSession] = {}
        self._last_seen: dict[str, float] = {}

    def add(self, session: BuilderSession) -> BuilderSession:
        self.evict_idle()
        self._sessions[session.id] = session
        self._last_seen[session.id] = self._clock()
        return session

    def get(self, session_id: str) -> BuilderSession:
        """Raises KeyError for unknown ids."""
        session = self._sessions[session_id]
        self._last_seen[session_id] = self._clock()
        return session

    def discard(self, session_id: str) -> None:
        self._last_seen.pop(session_id, None)
        session = self._sessions.pop(session_id, None)
        if session is not None:
            session.close()

    def evict_idle(self) -> int:
        """Discard sessions idle for longer than ``max_idle_s``; returns how many."""
        now = self._clock()
        expired = [
            session_id
            for session_id, seen in self._last_seen.items()
            if now - seen > self.max_idle_s and not _is_busy(self._sessions[session_id])
        ]
        for session_id in expired:
            self.discard(session_id)
        if expired:
            logger.info("sessions_evicted", count=len(expired), open_sessions=len(self._sessions))
        return len(expired)

    def __len__(self) -> int:
        return len(self._sessions)


def _is_busy(session: BuilderSession) -> bool:
    state = session.state
    return state.loading_source or state.fetching_items or state.generating_draft
