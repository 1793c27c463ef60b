"""Jira adapter: issues of one project filtered by coarse status and lookback."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from release_builder.errors import ValidationError
from release_builder.logging_config import get_logger
from release_builder.normalizer import normalize_jira
from release_builder.providers.base import (
    Clock,
    IntegrationsAPI,
    lookback_cutoff,
    parse_envelope,
    utc_now,
)
from release_builder.schemas import ChangeItem, JiraFilter, JiraStatus, Provider, SourceOption

logger = get_logger(__name__)

PAGE_SIZE = 100

# Coarse status filter -> Jira status names
STATUS_NAMES: dict[JiraStatus, str] = {
    JiraStatus.CLOSED: "Done,Closed,Resolved",
    JiraStatus.OPEN: "Open,In Progress,To Do",
}


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawNamed(_Raw):
    name: str | None = None


class RawJiraAssignee(_Raw):
    display_name: str | None = Field(None, alias="displayName")


class RawJiraIssue(_Raw):
    id: str
    key: str
    summary: str = ""
    description: str | None = None
    status: RawNamed | None = None
    issue_type: RawNamed | None = Field(None, alias="issueType")
    assignee: RawJiraAssignee | None = None
    labels: list[str] | None = None
    updated: str | None = None
    url: str | None = None


class RawJiraProject(_Raw):
    key: str
    name: str = ""


class IssuesEnvelope(_Raw):
    issues: list[RawJiraIssue] = Field(default_factory=list)


class ProjectsEnvelope(_Raw):
    projects: list[RawJiraProject] = Field(default_factory=list)


class JiraAdapter:
    """Fetches Jira issues for one project."""

    provider = Provider.JIRA

    def __init__(self, api: IntegrationsAPI, clock: Clock = utc_now) -> None:
        self._api = api
        self._clock = clock

    async def list_sources(self) -> list[SourceOption]:
        data = await self._api.get_json(
            "/api/integrations/jira/projects",
            params={"maxResults": PAGE_SIZE},
            provider=self.provider,
            what="Jira projects",
        )
        projects = parse_envelope(ProjectsEnvelope, data, self.provider, "Jira projects").projects
        return [
            SourceOption(id=project.key, label=f"{project.name} ({project.key})" if project.name else project.key)
            for project in projects
        ]

    def build_params(self, filter_config: JiraFilter) -> dict[str, str]:
        """Translate the filter into the issues endpoint's query parameters."""
        if not filter_config.selector:
            raise ValidationError("Select a Jira project first")

        params = {
            "projectKey": filter_config.selector,
            "maxResults": str(PAGE_SIZE),
            "startAt": "0",
        }
        statuses = STATUS_NAMES.get(filter_config.status)
        if statuses:
            params["statuses"] = statuses
        # Jira takes a plain date here
        params["updatedSince"] = lookback_cutoff(self._clock(), filter_config.lookback_days).date().isoformat()
        return params

    async def fetch_items(self, filter_config: JiraFilter) -> list[ChangeItem]:
        params = self.build_params(filter_config)
        data = await self._api.get_json(
            "/api/integrations/jira/issues",
            params=params,
            provider=self.provider,
            what="Jira issues",
        )
        issues = parse_envelope(IssuesEnvelope, data, self.provider, "Jira issues").issues
        items = normalize_jira(issues, now=self._clock())
        logger.info("jira_items_fetched", project_key=params["projectKey"], items=len(items))
        return items
