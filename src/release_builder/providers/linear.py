"""Linear adapter: issues of one team, optionally narrowed to a state type."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from release_builder.errors import ValidationError
from release_builder.logging_config import get_logger
from release_builder.normalizer import normalize_linear
from release_builder.providers.base import (
    Clock,
    IntegrationsAPI,
    iso_timestamp,
    lookback_cutoff,
    parse_envelope,
    utc_now,
)
from release_builder.schemas import ChangeItem, LinearFilter, Provider, SourceOption

logger = get_logger(__name__)

PAGE_SIZE = 100


class _Raw(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class RawLinearState(_Raw):
    name: str | None = None
    type: str | None = None


class RawLinearUser(_Raw):
    display_name: str | None = Field(None, alias="displayName")


class RawLinearLabel(_Raw):
    name: str | None = None


class RawLinearIssue(_Raw):
    id: str
    identifier: str
    title: str = ""
    description: str | None = None
    state: RawLinearState | None = None
    assignee: RawLinearUser | None = None
    labels: list[RawLinearLabel] | None = None
    url: str | None = None
    updated_at: str | None = Field(None, alias="updatedAt")


class RawLinearTeam(_Raw):
    id: str
    key: str = ""
    name: str = ""


class IssuesEnvelope(_Raw):
    issues: list[RawLinearIssue] = Field(default_factory=list)


class TeamsEnvelope(_Raw):
    teams: list[RawLinearTeam] = Field(default_factory=list)


class LinearAdapter:
    """Fetches Linear issues for one team."""

    provider = Provider.LINEAR

    def __init__(self, api: IntegrationsAPI, clock: Clock = utc_now) -> None:
        self._api = api
        self._clock = clock

    async def list_sources(self) -> list[SourceOption]:
        data = await self._api.get_json(
            "/api/integrations/linear/teams",
            params={"first": PAGE_SIZE, "includeArchived": "false"},
            provider=self.provider,
            what="Linear teams",
        )
        teams = parse_envelope(TeamsEnvelope, data, self.provider, "Linear teams").teams
        return [
            SourceOption(id=team.id, label=f"{team.name} ({team.key})" if team.key else team.name or team.id)
            for team in teams
        ]

    def build_params(self, filter_config: LinearFilter) -> dict[str, str]:
        if not filter_config.selector:
            raise ValidationError("Select a Linear team first")

        params = {"teamId": filter_config.selector, "first": str(PAGE_SIZE)}
        if filter_config.state_type.strip():
            params["stateType"] = filter_config.state_type.strip()
        params["updatedSince"] = iso_timestamp(lookback_cutoff(self._clock(), filter_config.lookback_days))
        return params

    async def fetch_items(self, filter_config: LinearFilter) -> list[ChangeItem]:
        params = self.build_params(filter_config)
        data = await self._api.get_json(
            "/api/integrations/linear/issues",
            params=params,
            provider=self.provider,
            what="Linear issues",
        )
        issues = parse_envelope(IssuesEnvelope, data, self.provider, "Linear issues").issues
        items = normalize_linear(issues, now=self._clock())
        logger.info("linear_items_fetched", team_id=params["teamId"], items=len(items))
        return items
