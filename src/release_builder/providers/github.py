"""GitHub adapter: merged pull requests and recent commits of one repository.

Calls the integrations API (which holds the GitHub OAuth token):
- GET /api/integrations/github/repositories                    - repositories
- GET /api/integrations/github/repositories/{owner}/{repo}/commits
- GET /api/integrations/github/repositories/{owner}/{repo}/pulls

The raw shapes below are local to this module; they are converted to
ChangeItems by ``normalize_github`` before being returned.
"""

from __future__ import annotations

from urllib.parse import quote

from pydantic import BaseModel, ConfigDict, Field

from release_builder.errors import ValidationError
from release_builder.logging_config import get_logger
from release_builder.normalizer import normalize_github
from release_builder.providers.base import (
    Clock,
    IntegrationsAPI,
    iso_timestamp,
    lookback_cutoff,
    parse_envelope,
    utc_now,
)
from release_builder.schemas import ChangeItem, GitHubFilter, Provider, SourceOption

logger = get_logger(__name__)

PAGE_SIZE = 100

# ---------------------------------------------------------------------------
# Raw response shapes
# ---------------------------------------------------------------------------


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore")


class RawCommitAuthor(_Raw):
    name: str | None = None
    date: str | None = None


class RawCommit(_Raw):
    sha: str
    message: str = ""
    author: RawCommitAuthor | None = None
    url: str | None = None


class RawPullUser(_Raw):
    login: str | None = None


class RawPullRequest(_Raw):
    number: int
    title: str = ""
    body: str | None = None
    state: str = "closed"
    merged_at: str | None = None
    updated_at: str | None = None
    html_url: str | None = None
    user: RawPullUser | None = None


class RawRepository(_Raw):
    id: int | str
    full_name: str
    private: bool = False


class CommitsEnvelope(_Raw):
    commits: list[RawCommit] = Field(default_factory=list)


class PullsEnvelope(_Raw):
    pull_requests: list[RawPullRequest] = Field(default_factory=list)


class RepositoriesEnvelope(_Raw):
    repositories: list[RawRepository] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------


def split_repository(full_name: str) -> tuple[str, str]:
    """Split "owner/name" into its parts.

    Raises:
        ValidationError: If either part is missing
    """
    owner, _, repo = full_name.strip().partition("/")
    if not owner or not repo:
        raise ValidationError("Select a valid GitHub repository")
    return owner, repo


class GitHubAdapter:
    """Fetches merged pull requests and commits from one repository.

    Usage:
        adapter = GitHubAdapter(IntegrationsAPI("https://notes.example.com"))
        items = await adapter.fetch_items(GitHubFilter(repository="acme/api"))
    """

    provider = Provider.GITHUB

    def __init__(self, api: IntegrationsAPI, clock: Clock = utc_now) -> None:
        self._api = api
        self._clock = clock

    async def list_sources(self) -> list[SourceOption]:
        data = await self._api.get_json(
            "/api/integrations/github/repositories",
            params={"per_page": PAGE_SIZE, "page": 1},
            provider=self.provider,
            what="GitHub repositories",
        )
        envelope = parse_envelope(RepositoriesEnvelope, data, self.provider, "GitHub repositories")
        return [SourceOption(id=repo.full_name, label=repo.full_name) for repo in envelope.repositories]

    async def fetch_items(self, filter_config: GitHubFilter) -> list[ChangeItem]:
        """Fetch commits since the lookback cutoff, then closed pull requests.

        Both calls must succeed; a failure in either raises FetchError and
        nothing is returned.
        """
        owner, repo = split_repository(filter_config.repository)
        now = self._clock()
        base = f"/api/integrations/github/repositories/{quote(owner, safe='')}/{quote(repo, safe='')}"

        commits_data = await self._api.get_json(
            f"{base}/commits",
            params={
                "since": iso_timestamp(lookback_cutoff(now, filter_config.lookback_days)),
                "per_page": PAGE_SIZE,
                "page": 1,
            },
            provider=self.provider,
            what="GitHub commits",
        )
        pulls_data = await self._api.get_json(
            f"{base}/pulls",
            params={
                "state": "closed",
                "sort": "updated",
                "direction": "desc",
                "per_page": PAGE_SIZE,
                "page": 1,
            },
            provider=self.provider,
            what="GitHub pull requests",
        )

        commits = parse_envelope(CommitsEnvelope, commits_data, self.provider, "GitHub commits").commits
        pulls = parse_envelope(PullsEnvelope, pulls_data, self.provider, "GitHub pull requests").pull_requests

        items = normalize_github(pulls, commits, now=now)
        logger.info(
            "github_items_fetched",
            repository=f"{owner}/{repo}",
            commits=len(commits),
            pull_requests=len(pulls),
            items=len(items),
        )
        return items
