"""Draft generation: selected items -> one request to the AI collaborator.

The selection is split into commit-like entries (commits and pull
requests) and ticket-like entries (issues, classified by type), wrapped in
a GenerationRequest together with tone and company details, and submitted
exactly once. A failed or empty response is a GenerationError; there is no
retry; calling again builds a brand-new request.
"""

from __future__ import annotations

import time
from typing import Protocol

import httpx
from pydantic import ValidationError as PydanticValidationError

from release_builder.errors import GenerationError
from release_builder.logging_config import get_logger
from release_builder.normalizer import classify_ticket
from release_builder.schemas import (
    ChangeItem,
    ChangeKind,
    CommitEntry,
    GenerationRequest,
    GenerationResult,
    TicketEntry,
    Tone,
)

logger = get_logger(__name__)

# Characters of a pull request description quoted in its commit message
PR_EXCERPT_CHARS = 220

# ---------------------------------------------------------------------------
# Request building
# ---------------------------------------------------------------------------


def commit_message(item: ChangeItem) -> str:
    if item.kind == ChangeKind.PR:
        if item.description:
            return f"{item.title} - {item.description[:PR_EXCERPT_CHARS]}"
        return item.title
    return item.description or item.title


def build_generation_request(
    items: list[ChangeItem],
    tone: Tone = Tone.PROFESSIONAL,
    company_details: str | None = None,
) -> GenerationRequest:
    """Partition the selection and build the collaborator request.

    Args:
        items: Selected items, in display order
        tone: Writing tone
        company_details: Free-text context; omitted when blank

    Returns:
        The request, with commits/PRs under ``commits`` and issues under
        ``tickets``
    """
    commits = [
        CommitEntry(message=commit_message(item), author=item.author)
        for item in items
        if item.kind in (ChangeKind.COMMIT, ChangeKind.PR)
    ]
    tickets = [
        TicketEntry(
            type=classify_ticket(item),
            title=item.title,
            description=item.description,
            labels=list(item.labels),
        )
        for item in items
        if item.kind == ChangeKind.ISSUE
    ]
    details = (company_details or "").strip()
    return GenerationRequest(
        commits=commits,
        tickets=tickets,
        tone=tone,
        company_details=details or None,
    )


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class GenerationClientProtocol(Protocol):
    """Anything that can submit a GenerationRequest and return the content."""

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Submit ``request`` once.

        Raises:
            GenerationError: On any failure or missing content
        """
        ...


class HttpGenerationClient:
    """Posts generation requests to the release notes generation endpoint.

    Usage:
        client = HttpGenerationClient("https://notes.example.com/api/release-notes/generate")
        result = await client.generate(request)
    """

    def __init__(
        self,
        url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.url = url
        self._timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {"Content-Type": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        try:
            async with httpx.AsyncClient(
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.post(self.url, json=request.to_payload())
        except httpx.HTTPError as exc:
            raise GenerationError("Failed to generate release note draft") from exc

        if not resp.is_success:
            raise GenerationError(_error_message(resp) or "Failed to generate release note draft")

        try:
            data = resp.json()
        except ValueError as exc:
            raise GenerationError("AI returned an unreadable response") from exc

        content = data.get("content") if isinstance(data, dict) else None
        if not isinstance(content, str) or not content:
            raise GenerationError("AI returned empty content")
        try:
            return GenerationResult(content=content)
        except PydanticValidationError as exc:
            raise GenerationError("AI returned empty content") from exc


def _error_message(resp: httpx.Response) -> str | None:
    try:
        data = resp.json()
    except ValueError:
        return None
    if isinstance(data, dict) and isinstance(data.get("error"), str):
        return data["error"]
    return None


# ---------------------------------------------------------------------------
# Generator
# ---------------------------------------------------------------------------


class DraftGenerator:
    """Builds and submits generation requests.

    Validation of title and selection happens in the session controller
    before this is called, so nothing here is reached without input.
    """

    def __init__(self, client: GenerationClientProtocol) -> None:
        self.client = client

    async def generate(
        self,
        items: list[ChangeItem],
        tone: Tone = Tone.PROFESSIONAL,
        company_details: str | None = None,
    ) -> GenerationResult:
        request = build_generation_request(items, tone, company_details)
        logger.info(
            "generation_started",
            commits=len(request.commits),
            tickets=len(request.tickets),
            tone=request.tone.value,
        )
        start = time.monotonic()
        try:
            result = await self.client.generate(request)
        except GenerationError as e:
            logger.warning("generation_failed", error=e.message)
            raise
        logger.info(
            "draft_generated",
            content_length=len(result.content),
            duration_s=round(time.monotonic() - start, 2),
        )
        return result
