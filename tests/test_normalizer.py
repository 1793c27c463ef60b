"""Tests for item normalization and ticket classification.

The normalizer is pure, so these are direct assertions on raw models
built in the test.

Run with: pytest tests/test_normalizer.py -v
"""

from __future__ import annotations

import pytest

from release_builder.normalizer import (
    classify_ticket,
    normalize_commit,
    normalize_github,
    normalize_jira_issue,
    normalize_linear_issue,
    normalize_pull_request,
    summarize_commit,
)
from release_builder.providers.github import RawCommit, RawPullRequest
from release_builder.providers.jira import RawJiraIssue
from release_builder.providers.linear import RawLinearIssue
from release_builder.schemas import ChangeKind, Provider, TicketType
from tests.conftest import FIXED_NOW, make_item

NOW_ISO = "2026-03-01T12:00:00.000Z"


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


class TestGitHub:
    def test_pull_request_fields(self):
        pull = RawPullRequest.model_validate({
            "number": 12,
            "title": "Add export",
            "body": "Adds CSV export",
            "state": "closed",
            "merged_at": "2026-02-10T08:00:00Z",
            "updated_at": "2026-02-11T08:00:00Z",
            "html_url": "https://github.com/acme/api/pull/12",
            "user": {"login": "octo"},
        })
        item = normalize_pull_request(pull, FIXED_NOW)
        assert item.id == "pr-12"
        assert item.external_id == "PR-12"
        assert item.title == "PR #12: Add export"
        assert item.author == "octo"
        assert item.labels == ["pull-request", "merged"]
        assert item.kind == ChangeKind.PR
        assert item.updated_at == "2026-02-11T08:00:00Z"

    def test_commit_uses_first_line_as_title(self):
        commit = RawCommit.model_validate({
            "sha": "abc123",
            "message": "Fix login crash\n\nLonger explanation",
            "author": {"name": "Dev", "date": "2026-02-12T00:00:00Z"},
        })
        item = normalize_commit(commit, FIXED_NOW)
        assert item.id == "commit-abc123"
        assert item.external_id == "abc123"
        assert item.title == "Fix login crash"
        assert item.description == "Fix login crash\n\nLonger explanation"
        assert item.status == "Committed"
        assert item.labels == ["commit"]

    def test_commit_fallbacks(self):
        item = normalize_commit(RawCommit(sha="def456", message="   "), FIXED_NOW)
        assert item.title == "Commit"
        assert item.author == "Unknown"
        assert item.url == ""
        assert item.updated_at == NOW_ISO

    def test_summarize_commit(self):
        assert summarize_commit("") == "Commit"
        assert summarize_commit("  first  \nsecond") == "first"

    def test_unmerged_pulls_dropped_and_pulls_first(self):
        pulls = [
            RawPullRequest(number=1, title="merged", merged_at="2026-02-01T00:00:00Z"),
            RawPullRequest(number=2, title="closed unmerged", merged_at=None),
            RawPullRequest(number=3, title="also merged", merged_at="2026-02-02T00:00:00Z"),
        ]
        commits = [RawCommit(sha="a", message="one"), RawCommit(sha="b", message="two")]

        items = normalize_github(pulls, commits, FIXED_NOW)

        assert [item.id for item in items] == ["pr-1", "pr-3", "commit-a", "commit-b"]

    def test_empty_merged_at_is_unmerged(self):
        items = normalize_github([RawPullRequest(number=5, merged_at="")], [], FIXED_NOW)
        assert items == []


# ---------------------------------------------------------------------------
# Jira / Linear
# ---------------------------------------------------------------------------


class TestJira:
    def test_issue_fields(self):
        issue = RawJiraIssue.model_validate({
            "id": "10001",
            "key": "PROJ-7",
            "summary": "Improve search",
            "status": {"name": "Done"},
            "issueType": {"name": "Story"},
            "assignee": {"displayName": "Ada"},
            "labels": ["search", "perf"],
            "updated": "2026-02-15T10:00:00.000+0000",
        })
        item = normalize_jira_issue(issue, FIXED_NOW)
        assert item.id == "10001"
        assert item.external_id == "PROJ-7"
        assert item.title == "PROJ-7: Improve search"
        assert item.status == "Done"
        assert item.author == "Ada"
        assert item.labels == ["Story", "search", "perf"]
        assert item.provider == Provider.JIRA

    def test_issue_fallbacks(self):
        item = normalize_jira_issue(RawJiraIssue(id="1", key="PROJ-1"), FIXED_NOW)
        assert item.author == "Unassigned"
        assert item.status == "Unknown"
        assert item.labels == ["issue"]
        assert item.updated_at == NOW_ISO


class TestLinear:
    def test_issue_fields(self):
        issue = RawLinearIssue.model_validate({
            "id": "lin-uuid",
            "identifier": "ENG-42",
            "title": "Breaking API rename",
            "state": {"name": "Done", "type": "completed"},
            "assignee": {"displayName": "Grace"},
            "labels": [{"name": "api"}, {"name": None}],
            "updatedAt": "2026-02-20T00:00:00.000Z",
        })
        item = normalize_linear_issue(issue, FIXED_NOW)
        assert item.id == "lin-uuid"
        assert item.external_id == "ENG-42"
        assert item.title == "ENG-42: Breaking API rename"
        assert item.author == "Grace"
        assert item.labels == ["api"]
        assert item.provider == Provider.LINEAR

    def test_issue_fallbacks(self):
        item = normalize_linear_issue(RawLinearIssue(id="x", identifier="ENG-1"), FIXED_NOW)
        assert item.author == "Unassigned"
        assert item.status == "Unknown"
        assert item.labels == []


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------


class TestClassifyTicket:
    @pytest.mark.parametrize(
        "title, labels, expected",
        [
            ("Fix login crash", [], TicketType.BUGFIX),
            ("Add dark mode", [], TicketType.FEATURE),
            ("Fix login crash", ["breaking"], TicketType.BREAKING),
            ("Breaking: drop v1 endpoints", [], TicketType.BREAKING),
            ("Crash on save", ["Bug"], TicketType.BUGFIX),
            ("Improve search speed", [], TicketType.IMPROVEMENT),
            ("Search speed", ["Improvement"], TicketType.IMPROVEMENT),
            ("Improve error on bug report form", [], TicketType.BUGFIX),
        ],
    )
    def test_priority(self, title: str, labels: list[str], expected: TicketType):
        assert classify_ticket(make_item("1", title=title, labels=labels)) == expected

    def test_case_insensitive(self):
        assert classify_ticket(make_item("1", title="FIXES THE THING")) == TicketType.BUGFIX
