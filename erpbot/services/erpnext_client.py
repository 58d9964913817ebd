"""
Low-level ERPNext (Frappe) REST client.

Exposes the document verbs the assistant needs, ``insert``, ``get``,
``get_list``, ``set_fields``, ``delete``, ``run_named_report`` and
``call_method``, over ``/api/resource`` and ``/api/method`` with static
token authentication.

Connectivity is tracked in an explicit ConnectionState. ``connect()``
pings the server once at startup. Transport failures and 5xx answers
count as consecutive failures; after ``reprobe_failures`` of them the
client marks itself disconnected, and ``is_available()`` pings again once
``reprobe_interval_sec`` has elapsed since the last probe, so a transient
outage at startup does not disable the backend for the process lifetime.
"""

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional
from urllib.parse import quote

import httpx

from erpbot.config import settings

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """Raised when ERPNext cannot be reached or rejects a request."""

    def __init__(self, message: str, status_code: Optional[int] = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class BackendUnavailableError(BackendError):
    """Raised when ERPNext is not configured or not connected."""


@dataclass
class ConnectionState:
    """Connectivity as last observed by the client."""
    connected: bool = False
    consecutive_failures: int = 0
    last_probe_at: Optional[float] = None


def _encode_json_param(value: Any) -> str:
    return json.dumps(value, default=str)


class ERPNextClient:
    """Async Frappe REST client with a re-probing connection state."""

    def __init__(
        self,
        url: str = settings.backend.url,
        api_key: str = settings.backend.api_key,
        api_secret: str = settings.backend.api_secret,
        timeout_sec: float = settings.backend.timeout_sec,
        reprobe_failures: int = settings.backend.reprobe_failures,
        reprobe_interval_sec: float = settings.backend.reprobe_interval_sec,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.url = url.rstrip("/")
        self.reprobe_failures = reprobe_failures
        self.reprobe_interval_sec = reprobe_interval_sec
        self.state = ConnectionState()
        self._clock = clock
        self._client = httpx.AsyncClient(
            base_url=self.url,
            timeout=timeout_sec,
            headers={
                "Authorization": f"token {api_key}:{api_secret}",
                "Accept": "application/json",
            },
            transport=transport,
        )

    # ------------------------------------------------------------------ #
    # Connection state
    # ------------------------------------------------------------------ #

    async def connect(self) -> bool:
        """Ping the server and record the result. Never raises."""
        self.state.last_probe_at = self._clock()
        try:
            await self.ping()
        except BackendError as exc:
            logger.warning("ERPNext connection test failed: %s", exc)
            self.state.connected = False
            return False
        self.state.connected = True
        self.state.consecutive_failures = 0
        logger.info("ERPNext connection established at %s", self.url)
        return True

    async def is_available(self) -> bool:
        """True when connected; re-probes a lost connection at most once per interval."""
        if self.state.connected:
            return True
        last = self.state.last_probe_at
        if last is None or self._clock() - last >= self.reprobe_interval_sec:
            return await self.connect()
        return False

    def _record_failure(self) -> None:
        self.state.consecutive_failures += 1
        if self.state.connected and self.state.consecutive_failures >= self.reprobe_failures:
            self.state.connected = False
            logger.warning(
                "ERPNext marked disconnected after %d consecutive failures",
                self.state.consecutive_failures,
            )

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            self._record_failure()
            raise BackendError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 500:
            self._record_failure()
        else:
            self.state.consecutive_failures = 0

        if response.is_error:
            detail = _error_detail(response)
            raise BackendError(
                f"{method} {path} returned {response.status_code}: {detail}",
                status_code=response.status_code,
            )
        return response

    async def _json(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        response = await self._request(method, path, **kwargs)
        try:
            body = response.json()
        except ValueError as exc:
            raise BackendError(f"{method} {path} returned invalid JSON") from exc
        # Frappe always wraps results in {"data": ...} or {"message": ...}
        if not isinstance(body, dict):
            raise BackendError(f"{method} {path} returned {type(body).__name__}, expected an object")
        return body

    @staticmethod
    def _resource_path(doctype: str, name: Optional[str] = None) -> str:
        path = f"/api/resource/{quote(doctype)}"
        if name is not None:
            path += f"/{quote(name, safe='')}"
        return path

    # ------------------------------------------------------------------ #
    # Document verbs
    # ------------------------------------------------------------------ #

    async def ping(self) -> Any:
        body = await self._json("GET", "/api/method/frappe.handler.ping")
        return body.get("message")

    async def insert(self, doctype: str, fields: dict[str, Any]) -> dict[str, Any]:
        body = await self._json("POST", self._resource_path(doctype), json=fields)
        return body.get("data") or {}

    async def get(self, doctype: str, name: str) -> dict[str, Any]:
        body = await self._json("GET", self._resource_path(doctype, name))
        return body.get("data") or {}

    async def get_list(
        self,
        doctype: str,
        fields: Optional[list[str]] = None,
        filters: Optional[Any] = None,
        order_by: Optional[str] = None,
        limit: int = 20,
        group_by: Optional[str] = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, Any] = {
            "fields": _encode_json_param(fields or ["name"]),
            "limit_page_length": limit,
        }
        if filters:
            params["filters"] = _encode_json_param(filters)
        if order_by:
            params["order_by"] = order_by
        if group_by:
            params["group_by"] = group_by
        body = await self._json("GET", self._resource_path(doctype), params=params)
        return body.get("data") or []

    async def set_fields(self, doctype: str, name: str, fields: dict[str, Any]) -> dict[str, Any]:
        body = await self._json("PUT", self._resource_path(doctype, name), json=fields)
        return body.get("data") or {}

    async def delete(self, doctype: str, name: str) -> None:
        await self._request("DELETE", self._resource_path(doctype, name))

    async def call_method(self, method: str, args: Optional[dict[str, Any]] = None) -> Any:
        body = await self._json("POST", f"/api/method/{method}", json=args or {})
        return body.get("message")

    async def download(self, method: str, params: dict[str, Any]) -> bytes:
        response = await self._request("GET", f"/api/method/{method}", params=params)
        return response.content

    async def run_named_report(
        self, report_name: str, filters: Optional[dict[str, Any]] = None
    ) -> list[dict[str, Any]]:
        """Run a query report and return its rows as dicts."""
        message = await self.call_method(
            "frappe.desk.query_report.run",
            {
                "report_name": report_name,
                "filters": _encode_json_param(filters or {}),
                "ignore_prepared_report": 1,
            },
        )
        return _report_rows(message)

    async def aclose(self) -> None:
        await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("exception") or body.get("message") or body.get("exc_type") or body)
    return str(body)[:200]


def _column_key(column: Any) -> str:
    if isinstance(column, dict):
        return str(column.get("fieldname") or column.get("label") or "")
    # Legacy "Label:Type/Options:Width" column strings
    return str(column).split(":")[0]


def _report_rows(message: Any) -> list[dict[str, Any]]:
    if isinstance(message, list):
        rows, columns = message, []
    elif isinstance(message, dict):
        rows, columns = message.get("result") or [], message.get("columns") or []
    else:
        return []

    keys = [_column_key(c) for c in columns]
    converted = []
    for row in rows:
        if isinstance(row, dict):
            converted.append(row)
        elif isinstance(row, (list, tuple)) and keys:
            converted.append(dict(zip(keys, row)))
    return converted
