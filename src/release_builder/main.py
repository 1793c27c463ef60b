"""FastAPI application for the release builder.

This module exposes builder sessions over HTTP and hosts the AI generation
endpoint:
- /sessions/...                      - drive one release builder workflow
- POST /api/release-notes/generate   - turn commits/tickets into HTML notes
- GET /health                        - health check for load balancers

Architecture notes:
- FastAPI handles HTTP concerns (routing, validation, serialization)
- BuilderSession handles the workflow; this layer only translates
- Busy flags on the session state are checked here: a second operation of
  the same kind while one is in flight gets 409 Conflict
- BuilderError subclasses carry their own HTTP status

To run locally:
    uvicorn release_builder.main:app --reload --port 8000
"""

from __future__ import annotations

import os
import time
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any, Literal

from fastapi import Body, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware

from release_builder.config import load_config
from release_builder.errors import BuilderError
from release_builder.llm import LLMClient, LLMConfig
from release_builder.logging_config import get_logger, setup_logging
from release_builder.prompts.release_notes import build_system_prompt, build_user_prompt
from release_builder.schemas import (
    Actor,
    BuilderStep,
    ChangeItem,
    DraftMode,
    DraftRecord,
    GenerationRequest,
    GitHubFilter,
    JiraFilter,
    LinearFilter,
    Provider,
    SourceOption,
    Tone,
)
from release_builder.session import BuilderServices, BuilderSession, SessionRegistry
from release_builder.steps import accessible_steps, editor_path

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Application Lifespan (startup/shutdown)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Build the shared collaborators once at startup."""
    setup_logging()
    config = load_config(os.environ.get("RELEASE_BUILDER_CONFIG"))
    app.state.config = config
    app.state.services = BuilderServices.from_config(config)
    app.state.sessions = SessionRegistry(max_idle_s=config.session_idle_timeout_s)
    app.state.llm = LLMClient(LLMConfig(model=os.environ.get("OPENAI_MODEL", LLMConfig().model)))
    logger.info("app_started", api_base_url=config.api_base_url)
    yield
    logger.info("app_stopped", open_sessions=len(app.state.sessions))


# ---------------------------------------------------------------------------
# FastAPI App
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Release Builder",
    description="Assemble AI-drafted release notes from GitHub, Jira and Linear",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


class LoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request, call_next):
        start = time.time()
        response = await call_next(request)
        logger.info(
            "http_request",
            method=request.method,
            path=request.url.path,
            status_code=response.status_code,
            duration_s=round(time.time() - start, 3),
        )
        return response


app.add_middleware(LoggingMiddleware)


# ---------------------------------------------------------------------------
# Error Handling
# ---------------------------------------------------------------------------


@app.exception_handler(BuilderError)
async def builder_error_handler(request: Request, exc: BuilderError) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.message, "code": exc.code},
    )


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    """Invalid filter or input values that slipped past request validation."""
    return JSONResponse(
        status_code=422,
        content={"error": str(exc), "code": "validation_error"},
    )


# ---------------------------------------------------------------------------
# Request / Response Models
# ---------------------------------------------------------------------------


class StartSessionRequest(BaseModel):
    user_id: str = Field(..., min_length=1)
    organization_id: str | None = None
    step: str | None = Field(None, description="Initial step name; guarded")
    intent: str | None = Field(None, description="scratch or template creates a quick draft")


class ProviderRequest(BaseModel):
    provider: Provider


class SourcesRequest(BaseModel):
    refresh: bool = False


class SelectionRequest(BaseModel):
    action: Literal["all", "clear"]


class SearchRequest(BaseModel):
    query: str = ""


class GenerationInputs(BaseModel):
    title: str | None = None
    tone: Tone | None = None
    company_details: str | None = None


class QuickDraftRequest(BaseModel):
    mode: DraftMode


class GenerateNotesRequest(GenerationRequest):
    """Generation request plus an optional template the notes should follow."""

    template: str | None = None


class SessionView(BaseModel):
    """Everything a client needs to render the current state of a session."""

    id: str
    step: BuilderStep
    provider: Provider
    github: GitHubFilter
    jira: JiraFilter
    linear: LinearFilter
    sources: list[SourceOption]
    items: list[ChangeItem] = Field(description="Items matching the search query")
    total_items: int
    selected_ids: list[str]
    search_query: str
    title: str
    tone: Tone
    company_details: str
    draft_id: str | None
    editor_path: str | None
    accessible_steps: dict[str, bool]
    busy: dict[str, bool]
    error: str | None
    sources_loaded_at: str | None
    items_loaded_at: str | None

    @classmethod
    def from_session(cls, session: BuilderSession) -> SessionView:
        state = session.state
        return cls(
            id=session.id,
            step=state.step,
            provider=state.provider,
            github=state.github,
            jira=state.jira,
            linear=state.linear,
            sources=state.sources.get(state.provider, []),
            items=session.selection.visible_items(),
            total_items=len(state.items),
            selected_ids=[item.id for item in session.selection.selected_items()],
            search_query=state.search_query,
            title=state.title,
            tone=state.tone,
            company_details=state.company_details,
            draft_id=state.draft_id,
            editor_path=editor_path(state),
            accessible_steps={step.value: ok for step, ok in accessible_steps(state).items()},
            busy={
                "loading_source": state.loading_source,
                "fetching_items": state.fetching_items,
                "generating_draft": state.generating_draft,
            },
            error=state.error,
            sources_loaded_at=state.sources_loaded_at,
            items_loaded_at=state.items_loaded_at,
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def get_session(request: Request, session_id: str) -> BuilderSession:
    registry: SessionRegistry = request.app.state.sessions
    try:
        return registry.get(session_id)
    except KeyError:
        raise HTTPException(status_code=404, detail=f"Session {session_id} not found")


def ensure_idle(session: BuilderSession, busy_flag: str) -> None:
    """Reject a second in-flight operation of the same kind."""
    if getattr(session.state, busy_flag):
        raise HTTPException(
            status_code=409,
            detail=f"An operation ({busy_flag}) is already in progress for this session",
        )


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health_check() -> dict[str, str]:
    return {"status": "healthy"}


@app.post("/sessions", response_model=SessionView, status_code=201)
async def start_session(body: StartSessionRequest, request: Request) -> SessionView:
    services: BuilderServices = request.app.state.services
    config = getattr(request.app.state, "config", None)
    session = await BuilderSession.start(
        Actor(user_id=body.user_id, organization_id=body.organization_id),
        services,
        step=body.step,
        intent=body.intent,
        lookback_days=config.default_lookback_days if config else 30,
    )
    request.app.state.sessions.add(session)
    return SessionView.from_session(session)


@app.get("/sessions/{session_id}", response_model=SessionView)
async def read_session(session_id: str, request: Request, step: str | None = None) -> SessionView:
    """Return the session; a ``step`` query parameter requests navigation first.

    Unknown or currently unreachable step names leave the step unchanged.
    """
    session = get_session(request, session_id)
    if step is not None:
        session.navigate(step)
    return SessionView.from_session(session)


@app.delete("/sessions/{session_id}", status_code=204)
async def discard_session(session_id: str, request: Request) -> None:
    get_session(request, session_id)
    request.app.state.sessions.discard(session_id)


@app.put("/sessions/{session_id}/provider", response_model=SessionView)
async def set_provider(session_id: str, body: ProviderRequest, request: Request) -> SessionView:
    session = get_session(request, session_id)
    session.set_provider(body.provider)
    return SessionView.from_session(session)


@app.patch("/sessions/{session_id}/filters/{provider}", response_model=SessionView)
async def update_filter(
    session_id: str,
    provider: Provider,
    request: Request,
    changes: dict[str, Any] = Body(...),
) -> SessionView:
    session = get_session(request, session_id)
    session.update_filter(provider, changes)
    return SessionView.from_session(session)


@app.post("/sessions/{session_id}/sources", response_model=SessionView)
async def load_sources(session_id: str, body: SourcesRequest, request: Request) -> SessionView:
    session = get_session(request, session_id)
    ensure_idle(session, "loading_source")
    await session.load_sources(refresh=body.refresh)
    return SessionView.from_session(session)


@app.post("/sessions/{session_id}/items", response_model=SessionView)
async def fetch_items(session_id: str, request: Request) -> SessionView:
    session = get_session(request, session_id)
    ensure_idle(session, "fetching_items")
    await session.fetch_items()
    return SessionView.from_session(session)


@app.post("/sessions/{session_id}/items/{item_id}/toggle", response_model=SessionView)
async def toggle_item(session_id: str, item_id: str, request: Request) -> SessionView:
    session = get_session(request, session_id)
    session.toggle_item(item_id)
    return SessionView.from_session(session)


@app.post("/sessions/{session_id}/selection", response_model=SessionView)
async def change_selection(session_id: str, body: SelectionRequest, request: Request) -> SessionView:
    session = get_session(request, session_id)
    if body.action == "all":
        session.select_all()
    else:
        session.clear_selection()
    return SessionView.from_session(session)


@app.put("/sessions/{session_id}/search", response_model=SessionView)
async def set_search(session_id: str, body: SearchRequest, request: Request) -> SessionView:
    session = get_session(request, session_id)
    session.set_search_query(body.query)
    return SessionView.from_session(session)


@app.put("/sessions/{session_id}/generation", response_model=SessionView)
async def set_generation_inputs(
    session_id: str, body: GenerationInputs, request: Request
) -> SessionView:
    session = get_session(request, session_id)
    session.set_generation_inputs(
        title=body.title,
        tone=body.tone,
        company_details=body.company_details,
    )
    return SessionView.from_session(session)


@app.post("/sessions/{session_id}/generate", response_model=DraftRecord, status_code=201)
async def generate_draft(session_id: str, request: Request) -> DraftRecord:
    session = get_session(request, session_id)
    ensure_idle(session, "generating_draft")
    return await session.generate_draft()


@app.post("/sessions/{session_id}/quick-draft", response_model=DraftRecord, status_code=201)
async def create_quick_draft(
    session_id: str, body: QuickDraftRequest, request: Request
) -> DraftRecord:
    session = get_session(request, session_id)
    ensure_idle(session, "generating_draft")
    return await session.create_quick_draft(body.mode)


@app.post("/api/release-notes/generate", response_model=None)
async def generate_release_notes(
    body: GenerateNotesRequest, request: Request
) -> dict[str, Any] | JSONResponse:
    """Generate HTML release notes from commits and tickets.

    This is the AI generation collaborator the sessions call. Requests
    without any commit or ticket are rejected with 400.
    """
    if not body.tickets and not body.commits:
        return JSONResponse(
            status_code=400,
            content={
                "error": "Tickets or commits are required for AI generation",
                "code": "validation_error",
            },
        )

    llm: LLMClient = request.app.state.llm
    content = await llm.generate_text(
        build_system_prompt(body.tone, body.template),
        build_user_prompt(body),
    )
    return {
        "content": content,
        "metadata": {
            "ticketsProcessed": len(body.tickets),
            "commitsProcessed": len(body.commits),
            "model": llm.config.model,
            "tone": body.tone.value,
        },
    }
