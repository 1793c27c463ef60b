"""Tests for the step state machine.

Run with: pytest tests/test_steps.py -v
"""

from __future__ import annotations

import pytest

from release_builder.schemas import (
    BuilderState,
    BuilderStep,
    GitHubFilter,
    JiraFilter,
    LinearFilter,
    Provider,
)
from release_builder.steps import (
    accessible_steps,
    can_access_step,
    editor_path,
    parse_step,
    read_step,
    request_step,
)


class TestParseStep:
    def test_known_names(self):
        assert parse_step("items") == BuilderStep.ITEMS
        assert parse_step(" Generate ") == BuilderStep.GENERATE
        assert parse_step(BuilderStep.EDIT) == BuilderStep.EDIT

    @pytest.mark.parametrize("token", [None, "", "review", "step-3"])
    def test_unknown_names(self, token):
        assert parse_step(token) is None

    def test_read_step_defaults_to_source(self):
        assert read_step(None) == BuilderStep.SOURCE
        assert read_step("bogus") == BuilderStep.SOURCE
        assert read_step("edit") == BuilderStep.EDIT


class TestItemsGuard:
    @pytest.mark.parametrize(
        "state",
        [
            BuilderState(provider=Provider.GITHUB, github=GitHubFilter(repository="acme/api")),
            BuilderState(provider=Provider.JIRA, jira=JiraFilter(project_key="PROJ")),
            BuilderState(provider=Provider.LINEAR, linear=LinearFilter(team_id="team-1")),
        ],
    )
    def test_selector_present(self, state: BuilderState):
        assert can_access_step(state, BuilderStep.ITEMS)

    def test_only_active_provider_counts(self):
        state = BuilderState(provider=Provider.JIRA, github=GitHubFilter(repository="acme/api"))
        assert not can_access_step(state, BuilderStep.ITEMS)

    def test_whitespace_selector_rejected(self):
        state = BuilderState(github=GitHubFilter(repository="   "))
        assert not request_step(state, BuilderStep.ITEMS)
        assert state.step == BuilderStep.SOURCE


class TestRequestStep:
    def test_generate_needs_selection(self):
        state = BuilderState()
        assert not request_step(state, "generate")
        state.selected_ids = {"pr-1"}
        assert request_step(state, "generate")
        assert state.step == BuilderStep.GENERATE

    def test_edit_and_publish_need_draft(self):
        state = BuilderState(selected_ids={"pr-1"})
        assert not request_step(state, BuilderStep.EDIT)
        assert not request_step(state, BuilderStep.PUBLISH)
        state.draft_id = "d-1"
        assert request_step(state, BuilderStep.PUBLISH)
        assert state.step == BuilderStep.PUBLISH

    def test_unknown_step_is_noop(self):
        state = BuilderState(step=BuilderStep.ITEMS, github=GitHubFilter(repository="acme/api"))
        assert not request_step(state, "nonsense")
        assert state.step == BuilderStep.ITEMS

    def test_source_always_reachable(self):
        state = BuilderState(step=BuilderStep.EDIT, draft_id="d-1")
        assert request_step(state, "source")
        assert state.step == BuilderStep.SOURCE

    def test_same_step_counts_as_success(self):
        state = BuilderState()
        assert request_step(state, BuilderStep.SOURCE)

    def test_guard_reevaluated_after_selection_change(self):
        state = BuilderState(selected_ids={"a"})
        assert can_access_step(state, BuilderStep.GENERATE)
        state.selected_ids = set()
        assert not can_access_step(state, BuilderStep.GENERATE)


def test_accessible_steps_fresh_state():
    steps = accessible_steps(BuilderState())
    assert steps == {
        BuilderStep.SOURCE: True,
        BuilderStep.ITEMS: False,
        BuilderStep.GENERATE: False,
        BuilderStep.EDIT: False,
        BuilderStep.PUBLISH: False,
    }


def test_editor_path():
    assert editor_path(BuilderState()) is None
    assert editor_path(BuilderState(draft_id="abc")) == "/dashboard/releases/edit/abc"
