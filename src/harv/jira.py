"""Jira REST client used to resolve ticket keys."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from harv.config import JiraConfig
from harv.errors import (
    RemoteLookupError,
    TicketNotFoundError,
    TrackerForbiddenError,
    TrackerNetworkError,
    TrackerUnauthorizedError,
)
from harv.models import Ticket

logger = structlog.get_logger()


class JiraClient:
    """Read-only client for the Jira Cloud REST API (v3)."""

    def __init__(
        self,
        config: JiraConfig,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self.config = config
        self.base_url = config.base_url.rstrip("/")
        self._transport = transport
        self._timeout = timeout
        self._client: httpx.Client | None = None

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(
                base_url=self.base_url,
                headers={
                    "Authorization": f"Bearer {self.config.access_token}",
                    "Accept": "application/json",
                },
                timeout=self._timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client is not None:
            self._client.close()
            self._client = None

    def _parse_ticket(self, key: str, data: dict[str, Any]) -> Ticket:
        fields = data.get("fields") or {}
        status = fields.get("status") or {}
        return Ticket(
            key=data.get("key", key),
            summary=fields.get("summary") or "",
            status=status.get("name"),
        )

    def get_issue(self, key: str) -> Ticket:
        """Fetch one issue's summary and status.

        Raises:
            TicketNotFoundError: on 404.
            TrackerUnauthorizedError: on 401.
            TrackerForbiddenError: on 403.
            TrackerNetworkError: on transport failure or timeout.
            RemoteLookupError: on any other failed response.
        """
        path = f"/rest/api/3/issue/{key}"
        logger.debug("Jira request", method="GET", path=path)
        try:
            response = self._get_client().get(path)
        except httpx.TransportError as e:
            raise TrackerNetworkError(key, f"Request failed: {e}") from e

        if response.status_code == 404:
            raise TicketNotFoundError(
                key, f"Ticket {key} not found. Verify the ticket key is correct."
            )
        if response.status_code == 401:
            raise TrackerUnauthorizedError(
                key, "Authentication failed. Check your Jira access token."
            )
        if response.status_code == 403:
            raise TrackerForbiddenError(
                key, f"Access denied to ticket {key}. Check your permissions."
            )
        if response.is_error:
            raise RemoteLookupError(
                key, f"API request failed with status {response.status_code}: {response.text}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise RemoteLookupError(key, f"Failed to parse issue response: {e}") from e

        ticket = self._parse_ticket(key, data)
        logger.debug("Retrieved Jira issue", key=ticket.key, summary=ticket.summary)
        return ticket

    def ticket_url(self, key: str) -> str:
        """Return the browse link attached to timers as their external reference."""
        return f"{self.base_url}/browse/{key}"


__all__ = ["JiraClient"]
