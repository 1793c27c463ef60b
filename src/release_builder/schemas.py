"""Pydantic models shared across the release builder pipeline.

These schemas are the single source of truth for what flows between the
components:
- ChangeItem is the canonical, provider-agnostic unit of change
- The per-provider filters stay separate on purpose; only the output of the
  adapters is unified
- BuilderState is the in-memory state of one workflow session
- GenerationRequest / DraftRecord are the payloads exchanged with the AI
  generation and persistence collaborators

Wire names follow the JSON contracts of the collaborators (``externalId``,
``updatedAt``, ``companyDetails``); Python code uses snake_case attributes.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Provider(str, Enum):
    """External system a change item was fetched from.

    GITHUB: Source-control host (commits and pull requests)
    JIRA: Issue tracker A (project issues)
    LINEAR: Issue tracker B (team issues)
    """

    GITHUB = "github"
    JIRA = "jira"
    LINEAR = "linear"


class ChangeKind(str, Enum):
    """What a change item represents."""

    COMMIT = "commit"
    PR = "pr"
    ISSUE = "issue"


class BuilderStep(str, Enum):
    """The five stages of the release builder workflow, in order."""

    SOURCE = "source"
    ITEMS = "items"
    GENERATE = "generate"
    EDIT = "edit"
    PUBLISH = "publish"


class Tone(str, Enum):
    """Writing tone requested from the AI collaborator."""

    PROFESSIONAL = "professional"
    CASUAL = "casual"
    TECHNICAL = "technical"


class TicketType(str, Enum):
    """Classification of an issue for the generation prompt.

    Only used to group tickets in the prompt; never stored on the item.
    """

    BREAKING = "breaking"
    BUGFIX = "bugfix"
    IMPROVEMENT = "improvement"
    FEATURE = "feature"


class JiraStatus(str, Enum):
    """Coarse status filter offered for Jira issues."""

    CLOSED = "closed"
    OPEN = "open"
    ALL = "all"


class DraftMode(str, Enum):
    """Quick draft flavours that skip the fetch/generate steps."""

    SCRATCH = "scratch"
    TEMPLATE = "template"


# ---------------------------------------------------------------------------
# Canonical item
# ---------------------------------------------------------------------------


class ChangeItem(BaseModel):
    """One unit of change (commit, pull request or issue).

    Attributes:
        id: Unique within one fetch result (e.g., "pr-12", "commit-<sha>")
        external_id: Provider's native identifier (commit SHA, "PR-12", "ABC-7")
        title: Display title
        description: Body text, may be empty
        status: Provider-specific status vocabulary
        author: Display name, "Unknown"/"Unassigned" when missing
        labels: Ordered labels, may be empty
        url: Link back to the provider, may be empty
        updated_at: Last update timestamp as an ISO string
        kind: commit, pr or issue
        provider: Which provider produced the item
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique id within one fetch")
    external_id: str = Field(..., alias="externalId", description="Provider-native id")
    title: str = Field(..., description="Display title")
    description: str = Field("", description="Body text")
    status: str = Field("", description="Provider-specific status")
    author: str = Field("Unknown", description="Author or assignee display name")
    labels: list[str] = Field(default_factory=list, description="Ordered labels")
    url: str = Field("", description="Link to the item on the provider")
    updated_at: str = Field(..., alias="updatedAt", description="ISO timestamp")
    kind: ChangeKind = Field(..., description="commit, pr or issue")
    provider: Provider = Field(..., description="Originating provider")


class SourceOption(BaseModel):
    """A repository, project or team the user can pick as source selector."""

    id: str
    label: str


# ---------------------------------------------------------------------------
# Provider filters
# ---------------------------------------------------------------------------


class GitHubFilter(BaseModel):
    """Filter for GitHub: repository in "owner/name" form plus lookback."""

    repository: str = Field("", description="Repository full name, e.g. 'acme/api'")
    lookback_days: int = Field(30, ge=1, le=365)

    @property
    def selector(self) -> str:
        return self.repository.strip()


class JiraFilter(BaseModel):
    """Filter for Jira: project key, coarse status and lookback."""

    project_key: str = Field("", description="Jira project key, e.g. 'PROJ'")
    status: JiraStatus = JiraStatus.CLOSED
    lookback_days: int = Field(30, ge=1, le=365)

    @property
    def selector(self) -> str:
        return self.project_key.strip()


class LinearFilter(BaseModel):
    """Filter for Linear: team id, workflow state type and lookback."""

    team_id: str = Field("", description="Linear team id")
    state_type: str = Field("", description="Workflow state type, empty for any")
    lookback_days: int = Field(30, ge=1, le=365)

    @property
    def selector(self) -> str:
        return self.team_id.strip()


ProviderFilter = GitHubFilter | JiraFilter | LinearFilter


# ---------------------------------------------------------------------------
# Session state
# ---------------------------------------------------------------------------


class Actor(BaseModel):
    """The signed-in user driving a session, as handed over by auth."""

    user_id: str = Field(..., min_length=1)
    organization_id: str | None = None

    @property
    def org_id(self) -> str:
        return self.organization_id or self.user_id


class BuilderState(BaseModel):
    """In-memory state of one release builder session.

    Created when the workflow starts and discarded when the user leaves or
    a draft is created. Never persisted and never shared between sessions.
    """

    provider: Provider = Provider.GITHUB
    github: GitHubFilter = Field(default_factory=GitHubFilter)
    jira: JiraFilter = Field(default_factory=JiraFilter)
    linear: LinearFilter = Field(default_factory=LinearFilter)

    sources: dict[Provider, list[SourceOption]] = Field(default_factory=dict)
    sources_loaded_at: str | None = None

    items: list[ChangeItem] = Field(default_factory=list)
    selected_ids: set[str] = Field(default_factory=set)
    search_query: str = ""
    items_loaded_at: str | None = None

    step: BuilderStep = BuilderStep.SOURCE

    title: str = ""
    tone: Tone = Tone.PROFESSIONAL
    company_details: str = ""
    draft_id: str | None = None

    loading_source: bool = False
    fetching_items: bool = False
    generating_draft: bool = False
    error: str | None = None

    def filter_for(self, provider: Provider | None = None) -> ProviderFilter:
        """Return the filter belonging to ``provider`` (default: the active one)."""
        return getattr(self, (provider or self.provider).value)


# ---------------------------------------------------------------------------
# Generation payloads
# ---------------------------------------------------------------------------


class CommitEntry(BaseModel):
    """Commit-like entry (commit or pull request) sent for generation."""

    message: str
    author: str | None = None


class TicketEntry(BaseModel):
    """Ticket-like entry (issue) sent for generation."""

    type: TicketType = TicketType.FEATURE
    title: str = ""
    description: str = ""
    labels: list[str] = Field(default_factory=list)


class GenerationRequest(BaseModel):
    """Body of one request to the AI generation collaborator."""

    model_config = ConfigDict(populate_by_name=True)

    commits: list[CommitEntry] = Field(default_factory=list)
    tickets: list[TicketEntry] = Field(default_factory=list)
    tone: Tone = Tone.PROFESSIONAL
    company_details: str | None = Field(None, alias="companyDetails")

    def to_payload(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class GenerationResult(BaseModel):
    """Successful generation: the HTML draft content."""

    content: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


class DraftInsert(BaseModel):
    """Insert request sent to the persistence collaborator."""

    organization_id: str
    author_id: str
    title: str
    slug: str
    status: str = "draft"
    content_html: str = ""
    content_markdown: str = ""
    source_ticket_ids: list[str] = Field(default_factory=list)


class DraftRecord(DraftInsert):
    """A persisted draft; owned by the persistence collaborator after creation."""

    id: str
