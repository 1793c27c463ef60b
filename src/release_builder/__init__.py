"""Release Builder.

Assembles release notes from GitHub commits and pull requests, Jira issues
and Linear issues: fetches and normalizes the changes, lets the user pick
which ones to include, asks an AI collaborator for a draft and persists the
result as an editable release note.
"""

__version__ = "0.1.0"
