"""
HTTP client for the dashboard API, used by the sync poller.
"""

from dataclasses import dataclass, field
from typing import Any

import httpx

from voicedash.shared.exceptions import SourceUnavailableError
from voicedash.shared.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class FeedPage:
    """The newest events plus the size of the whole feed."""

    events: list[dict[str, Any]] = field(default_factory=list)
    total: int = 0


class DashboardApiClient:
    """Pulls the raw event feed and probes the API root."""

    EVENTS_PATH = "/api/calls/events"

    def __init__(
        self,
        base_url: str,
        timeout_seconds: float = 10.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._client = http_client or httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout_seconds),
        )
        self._owns_client = http_client is None

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def fetch_events(self, limit: int) -> FeedPage:
        """Return the newest ``limit`` events and the feed's total size.

        The page is capped at ``limit``; ``total`` is the stored event
        count reported by the feed's pagination block.

        Raises:
            SourceUnavailableError: On transport errors, error statuses or
                a body that is not an event feed.
        """
        try:
            response = await self._client.get(
                self.EVENTS_PATH,
                params={"page": 1, "limit": limit},
                headers={"Accept": "application/json"},
            )
        except httpx.HTTPError as e:
            raise SourceUnavailableError(
                f"Event feed request failed: {e}",
                details={"error_type": type(e).__name__},
            ) from e

        if response.status_code >= 400:
            raise SourceUnavailableError(
                f"Event feed returned HTTP {response.status_code}",
                details={"status_code": response.status_code},
            )

        try:
            body = response.json()
        except ValueError as e:
            raise SourceUnavailableError("Event feed returned a non-JSON body") from e

        events = body.get("events") if isinstance(body, dict) else None
        if not isinstance(events, list):
            raise SourceUnavailableError("Event feed body has no events list")

        pagination = body.get("pagination")
        total = pagination.get("total") if isinstance(pagination, dict) else None
        if not isinstance(total, int) or isinstance(total, bool) or total < 0:
            raise SourceUnavailableError("Event feed body has no pagination total")
        return FeedPage(events=events, total=max(total, len(events)))

    async def ping(self) -> bool:
        """Cheap liveness check against the API root."""
        try:
            response = await self._client.get("/")
        except httpx.HTTPError as e:
            logger.debug("Liveness probe failed", extra={"error": str(e)})
            return False
        return response.status_code < 400
