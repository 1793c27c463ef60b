"""Adapter interface and the shared HTTP client for the integrations API.

Each provider (GitHub, Jira, Linear) gets one adapter implementing
ProviderAdapter. Adapters only share the transport: filter shapes and raw
response shapes stay local to each adapter module, and the raw payloads are
turned into ChangeItems by the normalizer before they leave the adapter.

Design notes:
- Uses httpx.AsyncClient per call, like the other HTTP clients in this
  package, so no connection lifecycle has to be managed by callers
- Every non-success (transport error, non-2xx, unparseable body) becomes a
  FetchError. Nothing here retries; retry policy belongs to the caller.
"""

from __future__ import annotations

from typing import Any, Protocol

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from release_builder.clock import Clock, iso_timestamp, lookback_cutoff, utc_now
from release_builder.errors import FetchError
from release_builder.logging_config import get_logger
from release_builder.schemas import ChangeItem, Provider, SourceOption

logger = get_logger(__name__)

__all__ = [
    "Clock",
    "IntegrationsAPI",
    "ProviderAdapter",
    "iso_timestamp",
    "lookback_cutoff",
    "parse_envelope",
    "utc_now",
]

# ---------------------------------------------------------------------------
# Protocol (Interface)
# ---------------------------------------------------------------------------


class ProviderAdapter(Protocol):
    """Interface every provider adapter implements.

    By coding against this protocol, the session controller can switch
    providers through a registry lookup instead of per-provider branches,
    and tests can plug in fakes.
    """

    provider: Provider

    async def list_sources(self) -> list[SourceOption]:
        """List the repositories / projects / teams the user can select.

        Raises:
            FetchError: If the provider call fails
        """
        ...

    async def fetch_items(self, filter_config: Any) -> list[ChangeItem]:
        """Fetch and normalize the changes matching ``filter_config``.

        Args:
            filter_config: The provider's own filter model

        Returns:
            Normalized ChangeItems, in the provider's documented order

        Raises:
            FetchError: If any underlying call fails
            ValidationError: If the filter has no usable source selector
        """
        ...


# ---------------------------------------------------------------------------
# Transport
# ---------------------------------------------------------------------------


class IntegrationsAPI:
    """Thin JSON GET client for the integrations API.

    Usage:
        api = IntegrationsAPI("https://notes.example.com", token="...")
        data = await api.get_json("/api/integrations/jira/projects",
                                  params={"maxResults": 100},
                                  provider=Provider.JIRA, what="Jira projects")
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL of the integrations API
            token: Optional bearer token
            timeout: Transport timeout in seconds
            transport: Custom httpx transport (tests use httpx.MockTransport)
        """
        self.base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport
        self._headers: dict[str, str] = {"Accept": "application/json"}
        if token:
            self._headers["Authorization"] = f"Bearer {token}"

    async def get_json(
        self,
        path: str,
        params: dict[str, Any] | None,
        provider: Provider,
        what: str,
    ) -> dict[str, Any]:
        """GET ``path`` and return the decoded JSON object.

        Args:
            path: Path below the base URL
            params: Query parameters
            provider: Provider the call belongs to (for errors and logs)
            what: Human-readable name of the resource, used in messages

        Raises:
            FetchError: On transport errors, non-2xx responses or a body
                        that isn't a JSON object
        """
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                headers=self._headers,
                timeout=self._timeout,
                transport=self._transport,
            ) as client:
                resp = await client.get(path, params=params)
        except httpx.HTTPError as exc:
            logger.warning("provider_request_failed", provider=provider.value, path=path, error=str(exc))
            raise FetchError(f"Failed to fetch {what}", provider=provider.value) from exc

        if not resp.is_success:
            logger.warning(
                "provider_request_rejected",
                provider=provider.value,
                path=path,
                status_code=resp.status_code,
            )
            raise FetchError(f"Failed to fetch {what}", provider=provider.value)

        try:
            data = resp.json()
        except ValueError as exc:
            raise FetchError(f"Invalid response while fetching {what}", provider=provider.value) from exc
        if not isinstance(data, dict):
            raise FetchError(f"Invalid response while fetching {what}", provider=provider.value)
        return data


def parse_envelope(model: type[BaseModel], data: dict[str, Any], provider: Provider, what: str) -> Any:
    """Validate a response envelope, turning schema mismatches into FetchError."""
    try:
        return model.model_validate(data)
    except PydanticValidationError as exc:
        raise FetchError(f"Invalid response while fetching {what}", provider=provider.value) from exc
