"""Conversion of provider-specific raw items into canonical ChangeItems.

All functions here are pure: they take the raw models parsed by an adapter
(plus the current time, used as fallback timestamp) and return ChangeItems.
Raw shapes never travel past this boundary.

Ordering contract for GitHub: merged pull requests first, then commits,
each group in the order the provider returned it. Items are never re-sorted
by time.

The ticket-type classifier lives here as well since it is the only place
business classification of items happens. It is only used when building
generation requests; the result is not stored on the item.
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from typing import TYPE_CHECKING

from release_builder.clock import iso_timestamp
from release_builder.schemas import ChangeItem, ChangeKind, Provider, TicketType

if TYPE_CHECKING:
    from release_builder.providers.github import RawCommit, RawPullRequest
    from release_builder.providers.jira import RawJiraIssue
    from release_builder.providers.linear import RawLinearIssue

UNKNOWN_AUTHOR = "Unknown"
UNASSIGNED = "Unassigned"
UNKNOWN_STATUS = "Unknown"


def summarize_commit(message: str) -> str:
    """First line of a commit message, or "Commit" when it is blank."""
    first_line = message.split("\n", 1)[0].strip()
    return first_line or "Commit"


# ---------------------------------------------------------------------------
# GitHub
# ---------------------------------------------------------------------------


def normalize_pull_request(pull: RawPullRequest, now: datetime) -> ChangeItem:
    return ChangeItem(
        id=f"pr-{pull.number}",
        external_id=f"PR-{pull.number}",
        title=f"PR #{pull.number}: {pull.title}",
        description=pull.body or "",
        status=pull.state,
        author=(pull.user.login if pull.user else None) or UNKNOWN_AUTHOR,
        labels=["pull-request", "merged"],
        url=pull.html_url or "",
        updated_at=pull.updated_at or iso_timestamp(now),
        kind=ChangeKind.PR,
        provider=Provider.GITHUB,
    )


def normalize_commit(commit: RawCommit, now: datetime) -> ChangeItem:
    author = commit.author
    return ChangeItem(
        id=f"commit-{commit.sha}",
        external_id=commit.sha,
        title=summarize_commit(commit.message),
        description=commit.message,
        status="Committed",
        author=(author.name if author else None) or UNKNOWN_AUTHOR,
        labels=["commit"],
        url=commit.url or "",
        updated_at=(author.date if author else None) or iso_timestamp(now),
        kind=ChangeKind.COMMIT,
        provider=Provider.GITHUB,
    )


def normalize_github(
    pulls: Iterable[RawPullRequest],
    commits: Iterable[RawCommit],
    now: datetime,
) -> list[ChangeItem]:
    """Merge pull requests and commits into one list.

    Only pull requests with a non-empty ``merged_at`` are kept (closed but
    unmerged PRs are dropped). Pull requests precede commits.
    """
    pull_items = [normalize_pull_request(pull, now) for pull in pulls if pull.merged_at]
    commit_items = [normalize_commit(commit, now) for commit in commits]
    return [*pull_items, *commit_items]


# ---------------------------------------------------------------------------
# Jira
# ---------------------------------------------------------------------------


def normalize_jira_issue(issue: RawJiraIssue, now: datetime) -> ChangeItem:
    issue_type = (issue.issue_type.name if issue.issue_type else None) or "issue"
    return ChangeItem(
        id=issue.id,
        external_id=issue.key,
        title=f"{issue.key}: {issue.summary}",
        description=issue.description or "",
        status=(issue.status.name if issue.status else None) or UNKNOWN_STATUS,
        author=(issue.assignee.display_name if issue.assignee else None) or UNASSIGNED,
        labels=[issue_type, *(issue.labels or [])],
        url=issue.url or "",
        updated_at=issue.updated or iso_timestamp(now),
        kind=ChangeKind.ISSUE,
        provider=Provider.JIRA,
    )


def normalize_jira(issues: Iterable[RawJiraIssue], now: datetime) -> list[ChangeItem]:
    return [normalize_jira_issue(issue, now) for issue in issues]


# ---------------------------------------------------------------------------
# Linear
# ---------------------------------------------------------------------------


def normalize_linear_issue(issue: RawLinearIssue, now: datetime) -> ChangeItem:
    return ChangeItem(
        id=issue.id,
        external_id=issue.identifier,
        title=f"{issue.identifier}: {issue.title}",
        description=issue.description or "",
        status=(issue.state.name if issue.state else None) or UNKNOWN_STATUS,
        author=(issue.assignee.display_name if issue.assignee else None) or UNASSIGNED,
        labels=[label.name for label in issue.labels or [] if label.name],
        url=issue.url or "",
        updated_at=issue.updated_at or iso_timestamp(now),
        kind=ChangeKind.ISSUE,
        provider=Provider.LINEAR,
    )


def normalize_linear(issues: Iterable[RawLinearIssue], now: datetime) -> list[ChangeItem]:
    return [normalize_linear_issue(issue, now) for issue in issues]


# ---------------------------------------------------------------------------
# Ticket classification
# ---------------------------------------------------------------------------


def classify_ticket(item: ChangeItem) -> TicketType:
    """Classify an item as breaking, bugfix, improvement or feature.

    Strict priority, first match wins:
    1. breaking: title contains "break", or a label contains "breaking"
    2. bugfix: title contains "fix" or "bug", or a label contains "bug"
    3. improvement: title contains "improve", or a label contains "improvement"
    4. feature: everything else

    Matching is case-insensitive substring matching.
    """
    title = item.title.lower()
    labels = [label.lower() for label in item.labels]

    if "break" in title or any("breaking" in label for label in labels):
        return TicketType.BREAKING
    if "fix" in title or "bug" in title or any("bug" in label for label in labels):
        return TicketType.BUGFIX
    if "improve" in title or any("improvement" in label for label in labels):
        return TicketType.IMPROVEMENT
    return TicketType.FEATURE
