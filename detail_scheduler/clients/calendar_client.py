"""
Google Calendar REST client.

One long-lived ``httpx.Client`` per process, with a cached OAuth access
token refreshed from the configured refresh token shortly before it expires.
A 401 forces one token refresh and a transport error rebuilds the
connection; either way the request is retried once, then the failure is
raised as ``UpstreamUnavailable``. An insert that may have reached the
server is never retried.
"""

import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Optional
from urllib.parse import quote

import httpx
import pytz

from detail_scheduler.config import CalendarConfig
from detail_scheduler.errors import ConflictError, UpstreamUnavailable

logger = logging.getLogger(__name__)

TOKEN_REFRESH_MARGIN = timedelta(minutes=5)
PAGE_SIZE = 250
# Failures raised before any bytes reached the server.
UNSENT_ERRORS = (httpx.ConnectError, httpx.ConnectTimeout)


def _parse_event_time(value: Optional[dict[str, Any]]) -> Optional[datetime]:
    # All-day events only carry "date"; they have no timed endpoint.
    if not value or not value.get("dateTime"):
        return None
    raw = value["dateTime"].replace("Z", "+00:00")
    try:
        parsed = datetime.fromisoformat(raw)
    except ValueError:
        logger.debug("Unparseable event time %r", raw)
        return None
    if parsed.tzinfo is None:
        tz_name = value.get("timeZone")
        zone = pytz.timezone(tz_name) if tz_name in pytz.all_timezones_set else pytz.utc
        parsed = zone.localize(parsed)
    return parsed


class GoogleCalendarClient:
    """Calendar store backed by the Google Calendar v3 API."""

    def __init__(
        self,
        config: CalendarConfig,
        transport: Optional[httpx.BaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client = self._build_client()
        self._access_token: Optional[str] = None
        self._token_expires_at: Optional[datetime] = None
        self._token_lock = threading.Lock()
        self._client_lock = threading.Lock()

    def _build_client(self) -> httpx.Client:
        return httpx.Client(
            base_url=self._config.api_base,
            timeout=self._config.timeout_sec,
            transport=self._transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> "GoogleCalendarClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------ #
    # Auth
    # ------------------------------------------------------------------ #

    def _get_access_token(self, force_refresh: bool = False) -> str:
        with self._token_lock:
            now = datetime.now(pytz.utc)
            if (
                not force_refresh
                and self._access_token
                and self._token_expires_at
                and self._token_expires_at > now + TOKEN_REFRESH_MARGIN
            ):
                return self._access_token

            logger.info("Refreshing Google Calendar access token")
            try:
                response = self._client.post(
                    self._config.token_url,
                    data={
                        "client_id": self._config.client_id,
                        "client_secret": self._config.client_secret,
                        "refresh_token": self._config.refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
            except (httpx.HTTPError, RuntimeError) as exc:
                raise UpstreamUnavailable("calendar", "token refresh failed", exc) from exc

            if response.status_code != 200:
                logger.error("Token refresh failed with status %d", response.status_code)
                raise UpstreamUnavailable(
                    "calendar", f"token refresh returned {response.status_code}"
                )
            payload = response.json()
            token = payload.get("access_token")
            if not token:
                raise UpstreamUnavailable("calendar", "no access token in refresh response")

            self._access_token = token
            self._token_expires_at = now + timedelta(seconds=int(payload.get("expires_in", 3600)))
            return token

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def _reconnect(self, stale: httpx.Client) -> None:
        with self._client_lock:
            if self._client is stale:
                self._client = self._build_client()
        stale.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Send one API request, retrying once where a retry cannot duplicate a write.

        GETs are retried after any transport error. Other methods are retried
        only when the request never reached the server; a write that may have
        been applied is reported as an unknown outcome.
        """
        force_refresh = False
        for attempt in (1, 2):
            token = self._get_access_token(force_refresh=force_refresh)
            client = self._client
            try:
                response = client.request(
                    method, path, headers={"Authorization": f"Bearer {token}"}, **kwargs
                )
            except httpx.TransportError as exc:
                if method != "GET" and not isinstance(exc, UNSENT_ERRORS):
                    logger.error("Calendar %s %s outcome unknown: %s", method, path, exc)
                    raise UpstreamUnavailable(
                        "calendar", f"{method} {path} outcome unknown", exc
                    ) from exc
                if attempt == 1:
                    logger.warning("Calendar %s %s failed (%s); reconnecting", method, path, exc)
                    self._reconnect(client)
                    continue
                raise UpstreamUnavailable("calendar", f"{method} {path} failed", exc) from exc
            except RuntimeError as exc:
                # Another thread closed this client while reconnecting.
                if not client.is_closed:
                    raise
                if attempt == 1:
                    self._reconnect(client)
                    continue
                raise UpstreamUnavailable("calendar", f"{method} {path} failed", exc) from exc

            if response.status_code == 401 and attempt == 1:
                logger.info("Calendar returned 401; refreshing token and retrying")
                force_refresh = True
                continue
            return response

        raise UpstreamUnavailable("calendar", f"{method} {path} unauthorized")

    def _events_path(self, resource_id: str) -> str:
        return f"/calendars/{quote(resource_id or self._config.calendar_id, safe='')}/events"

    # ------------------------------------------------------------------ #
    # CalendarStore
    # ------------------------------------------------------------------ #

    def list_events(
        self, resource_id: str, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        """Confirmed events intersecting the window, following pagination."""
        params: dict[str, Any] = {
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
            "maxResults": PAGE_SIZE,
        }
        events: list[dict[str, Any]] = []
        while True:
            response = self._request("GET", self._events_path(resource_id), params=params)
            if response.status_code != 200:
                logger.error("Calendar list failed with status %d", response.status_code)
                raise UpstreamUnavailable(
                    "calendar", f"list events returned {response.status_code}"
                )
            try:
                payload = response.json()
            except ValueError as exc:
                raise UpstreamUnavailable("calendar", "malformed list response", exc) from exc

            for item in payload.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                events.append({
                    "id": item.get("id"),
                    "summary": item.get("summary", ""),
                    "description": item.get("description", ""),
                    "location": item.get("location", ""),
                    "start": _parse_event_time(item.get("start")),
                    "end": _parse_event_time(item.get("end")),
                })

            page_token = payload.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        logger.debug("Fetched %d calendar events", len(events))
        return events

    def list_busy_intervals(
        self, resource_id: str, time_min: datetime, time_max: datetime
    ) -> list[dict[str, Any]]:
        return [
            {"start": event["start"], "end": event["end"], "source_id": event["id"]}
            for event in self.list_events(resource_id, time_min, time_max)
        ]

    def insert_event(self, resource_id: str, event: dict[str, Any]) -> Optional[str]:
        """Insert an event. A 409 from the store surfaces as ``ConflictError``."""
        body = {
            "summary": event["summary"],
            "description": event.get("description", ""),
            "start": {"dateTime": event["start"].isoformat()},
            "end": {"dateTime": event["end"].isoformat()},
        }
        if event.get("location"):
            body["location"] = event["location"]

        response = self._request("POST", self._events_path(resource_id), json=body)
        if response.status_code == 409:
            raise ConflictError(f"Calendar rejected {event['start'].isoformat()} as a conflict")
        if response.status_code not in (200, 201):
            logger.error("Calendar insert failed with status %d", response.status_code)
            raise UpstreamUnavailable("calendar", f"insert returned {response.status_code}")
        try:
            event_id = response.json().get("id")
        except ValueError as exc:
            raise UpstreamUnavailable("calendar", "malformed insert response", exc) from exc

        logger.info("Calendar event created: %s", event_id)
        return event_id
