"""Provider adapters for the external change sources.

Adapters are looked up by Provider through ``ADAPTERS``; adding a provider
means one new module and one new entry here.
"""

from __future__ import annotations

from release_builder.providers.base import Clock, IntegrationsAPI, ProviderAdapter, utc_now
from release_builder.providers.github import GitHubAdapter
from release_builder.providers.jira import JiraAdapter
from release_builder.providers.linear import LinearAdapter
from release_builder.schemas import Provider

ADAPTERS: dict[Provider, type] = {
    Provider.GITHUB: GitHubAdapter,
    Provider.JIRA: JiraAdapter,
    Provider.LINEAR: LinearAdapter,
}


def build_adapters(api: IntegrationsAPI, clock: Clock = utc_now) -> dict[Provider, ProviderAdapter]:
    """Instantiate one adapter per registered provider sharing ``api``."""
    return {provider: adapter_cls(api, clock=clock) for provider, adapter_cls in ADAPTERS.items()}


__all__ = [
    "ADAPTERS",
    "GitHubAdapter",
    "IntegrationsAPI",
    "JiraAdapter",
    "LinearAdapter",
    "ProviderAdapter",
    "build_adapters",
]
