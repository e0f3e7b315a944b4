"""
Twilio call-record adapter.

Reads ``Calls.json`` for the configured reporting number. The HTTP client
is sync; the async entrypoint runs it on a worker thread via anyio.
"""

from __future__ import annotations

import logging
from datetime import datetime
from email.utils import parsedate_to_datetime
from typing import Any

import anyio
import httpx

from voicedash.shared.exceptions import ProviderUnavailableError
from voicedash.telephony.config import TelephonyConfig, get_telephony_config
from voicedash.telephony.interface import (
    CallDirection,
    CallRecord,
    CallRecordProvider,
    CallWindow,
)

logger = logging.getLogger(__name__)


def _parse_time(value: Any) -> datetime | None:
    # Twilio returns RFC 2822 dates, e.g. "Tue, 31 Aug 2010 20:36:28 +0000"
    if not value:
        return None
    try:
        return parsedate_to_datetime(str(value))
    except (TypeError, ValueError):
        return None


def _parse_duration(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def record_from_json(data: dict[str, Any]) -> CallRecord:
    """Build a ``CallRecord`` from one entry of the ``calls`` array."""
    return CallRecord(
        sid=str(data.get("sid") or ""),
        from_number=data.get("from"),
        to_number=data.get("to"),
        status=str(data.get("status") or ""),
        duration=_parse_duration(data.get("duration")),
        start_time=_parse_time(data.get("start_time")),
        end_time=_parse_time(data.get("end_time")),
        direction=str(data.get("direction") or ""),
        parent_call_sid=data.get("parent_call_sid") or None,
    )


class TwilioCallRecordAdapter(CallRecordProvider):
    """Twilio implementation of ``CallRecordProvider``.

    Inbound calls are calls to the reporting number without a parent call
    (conference and forwarding legs are dropped). Outbound calls are calls
    from the reporting number that have a parent call and do not target an
    internal redirect number. When the ``From`` query returns nothing, every
    outbound-direction call in the window is used instead.
    """

    def __init__(
        self,
        config: TelephonyConfig | None = None,
        http_client: httpx.Client | None = None,
    ) -> None:
        self._config = config or get_telephony_config()
        self._http_client = http_client
        self._owns_client = http_client is None

    def _get_client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(
                timeout=httpx.Timeout(self._config.request_timeout_seconds)
            )
        return self._http_client

    def close(self) -> None:
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _get_auth(self) -> tuple[str, str]:
        return (self._config.twilio_account_sid, self._config.twilio_auth_token)

    def _get_api_url(self, endpoint: str) -> str:
        base = self._config.api_base_url.rstrip("/")
        return f"{base}/Accounts/{self._config.twilio_account_sid}{endpoint}"

    async def list_call_records(
        self,
        window: CallWindow,
        direction: CallDirection = CallDirection.ALL,
    ) -> list[CallRecord]:
        return await anyio.to_thread.run_sync(self.list_call_records_sync, window, direction)

    def list_call_records_sync(
        self,
        window: CallWindow,
        direction: CallDirection = CallDirection.ALL,
    ) -> list[CallRecord]:
        """Fetch and filter call records (sync)."""
        number = self._config.twilio_phone_number
        if not number:
            raise ProviderUnavailableError(
                "Reporting phone number is not configured",
                details={"setting": "TELEPHONY_TWILIO_PHONE_NUMBER"},
            )

        records: list[CallRecord] = []
        if direction in (CallDirection.ALL, CallDirection.INBOUND):
            records.extend(self._inbound(window, number))
        if direction in (CallDirection.ALL, CallDirection.OUTBOUND):
            records.extend(self._outbound(window, number))

        logger.info(
            "Twilio call records fetched",
            extra={"direction": direction.value, "count": len(records)},
        )
        return records

    def _inbound(self, window: CallWindow, number: str) -> list[CallRecord]:
        calls = self._fetch_calls(window, {"To": number})
        return [c for c in calls if not c.parent_call_sid]

    def _outbound(self, window: CallWindow, number: str) -> list[CallRecord]:
        calls = self._fetch_calls(window, {"From": number})
        if not calls:
            logger.warning(
                "No outbound calls from reporting number, using every outbound call",
                extra={"from_number": number},
            )
            calls = [c for c in self._fetch_calls(window, {}) if c.is_outbound]

        redirects = self._config.internal_redirect_numbers_set
        kept = [c for c in calls if c.parent_call_sid and c.to_number not in redirects]

        skipped_redirects = sum(1 for c in calls if c.to_number in redirects)
        if skipped_redirects:
            logger.info(
                "Internal redirect calls filtered",
                extra={"count": skipped_redirects},
            )
        return kept

    def _fetch_calls(self, window: CallWindow, filters: dict[str, str]) -> list[CallRecord]:
        client = self._get_client()
        params: dict[str, Any] | None = {
            **filters,
            "StartTime>": window.start.isoformat(),
            "StartTime<": window.end.isoformat(),
            "PageSize": self._config.page_size,
        }
        url = self._get_api_url("/Calls.json")

        records: list[CallRecord] = []
        while url:
            try:
                response = client.get(
                    url,
                    params=params,
                    auth=self._get_auth(),
                    headers={"Accept": "application/json"},
                )
            except httpx.HTTPError as e:
                logger.error(
                    "Twilio call list request failed",
                    extra={"error": str(e), "filters": sorted(filters)},
                )
                raise ProviderUnavailableError(
                    f"Twilio request failed: {e}",
                    details={"error_type": type(e).__name__},
                ) from e

            if response.status_code >= 400:
                body = _safe_json(response)
                logger.error(
                    "Twilio call list returned an error",
                    extra={"status_code": response.status_code, "resp_text": response.text},
                )
                raise ProviderUnavailableError(
                    str(body.get("message") or f"Twilio returned HTTP {response.status_code}"),
                    details={
                        "status_code": response.status_code,
                        "provider_code": body.get("code"),
                    },
                )

            body = _safe_json(response)
            records.extend(record_from_json(c) for c in body.get("calls") or [])

            next_page_uri = body.get("next_page_uri")
            # next_page_uri is host-relative and already carries the filters
            url = str(httpx.URL(self._config.api_base_url).join(next_page_uri)) if next_page_uri else ""
            params = None

        return records


def _safe_json(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError as e:
        if response.status_code >= 400:
            return {}
        raise ProviderUnavailableError("Twilio returned a non-JSON body") from e
    return data if isinstance(data, dict) else {}
