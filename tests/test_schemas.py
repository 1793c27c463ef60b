"""Tests for the Pydantic schemas.

These tests verify that the shared models:
- Accept both wire names and Python names for aliased fields
- Reject invalid filter values
- Serialize generation requests with the collaborator's field names

Run with: pytest tests/test_schemas.py -v
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from release_builder.schemas import (
    Actor,
    BuilderState,
    ChangeItem,
    ChangeKind,
    CommitEntry,
    GenerationRequest,
    GenerationResult,
    GitHubFilter,
    JiraFilter,
    JiraStatus,
    LinearFilter,
    Provider,
    TicketEntry,
    TicketType,
    Tone,
)


@pytest.fixture
def item_payload() -> dict:
    return {
        "id": "pr-12",
        "externalId": "PR-12",
        "title": "PR #12: Add export",
        "updatedAt": "2026-02-01T00:00:00.000Z",
        "kind": "pr",
        "provider": "github",
    }


class TestChangeItem:
    def test_accepts_wire_names(self, item_payload: dict):
        item = ChangeItem.model_validate(item_payload)
        assert item.external_id == "PR-12"
        assert item.updated_at == "2026-02-01T00:00:00.000Z"
        assert item.kind == ChangeKind.PR
        assert item.provider == Provider.GITHUB

    def test_defaults(self, item_payload: dict):
        item = ChangeItem.model_validate(item_payload)
        assert item.description == ""
        assert item.author == "Unknown"
        assert item.labels == []
        assert item.url == ""

    def test_serializes_with_aliases(self, item_payload: dict):
        item = ChangeItem.model_validate(item_payload)
        data = item.model_dump(by_alias=True)
        assert data["externalId"] == "PR-12"
        assert data["updatedAt"] == "2026-02-01T00:00:00.000Z"

    def test_rejects_empty_id(self, item_payload: dict):
        item_payload["id"] = ""
        with pytest.raises(ValidationError):
            ChangeItem.model_validate(item_payload)

    def test_rejects_unknown_kind(self, item_payload: dict):
        item_payload["kind"] = "epic"
        with pytest.raises(ValidationError):
            ChangeItem.model_validate(item_payload)


class TestFilters:
    def test_selector_is_stripped(self):
        assert GitHubFilter(repository="  acme/api ").selector == "acme/api"
        assert JiraFilter(project_key=" PROJ ").selector == "PROJ"
        assert LinearFilter(team_id="  ").selector == ""

    def test_jira_defaults_to_closed(self):
        assert JiraFilter().status == JiraStatus.CLOSED

    @pytest.mark.parametrize("days", [0, -1, 366])
    def test_lookback_out_of_range(self, days: int):
        with pytest.raises(ValidationError):
            GitHubFilter(repository="acme/api", lookback_days=days)

    def test_lookback_bounds_accepted(self):
        assert GitHubFilter(lookback_days=1).lookback_days == 1
        assert GitHubFilter(lookback_days=365).lookback_days == 365


class TestBuilderState:
    def test_fresh_state(self):
        state = BuilderState()
        assert state.provider == Provider.GITHUB
        assert state.items == []
        assert state.selected_ids == set()
        assert state.draft_id is None
        assert not (state.loading_source or state.fetching_items or state.generating_draft)

    def test_filter_for_active_provider(self):
        state = BuilderState(provider=Provider.JIRA, jira=JiraFilter(project_key="PROJ"))
        assert state.filter_for() is state.jira
        assert state.filter_for(Provider.LINEAR) is state.linear


class TestActor:
    def test_org_falls_back_to_user(self):
        assert Actor(user_id="u1").org_id == "u1"
        assert Actor(user_id="u1", organization_id="org-9").org_id == "org-9"


class TestGenerationPayloads:
    def test_payload_uses_collaborator_names(self):
        request = GenerationRequest(
            commits=[CommitEntry(message="Fix crash", author="dev")],
            tickets=[TicketEntry(type=TicketType.BUGFIX, title="ABC-1: Crash")],
            tone=Tone.CASUAL,
            company_details="Acme",
        )
        payload = request.to_payload()
        assert payload["companyDetails"] == "Acme"
        assert payload["tone"] == "casual"
        assert payload["tickets"][0]["type"] == "bugfix"

    def test_payload_omits_missing_company_details(self):
        payload = GenerationRequest(commits=[CommitEntry(message="x")]).to_payload()
        assert "companyDetails" not in payload

    def test_result_requires_content(self):
        with pytest.raises(ValidationError):
            GenerationResult(content="")
