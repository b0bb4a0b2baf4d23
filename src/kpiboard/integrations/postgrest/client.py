"""Async client for a PostgREST-compatible datastore.

Only the handful of verbs the functions need are implemented: filtered
select, insert, upsert with ``on_conflict`` and remote procedure calls. Every call is
made with the caller's bearer token so row-level security in the datastore
applies.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Mapping, Optional

import httpx

from kpiboard.core.auth import Credential
from kpiboard.core.errors import UpstreamError

logger = logging.getLogger(__name__)


class PostgrestClient:
    """Minimal PostgREST client.

    Args:
        base_url: Project URL, e.g. ``https://xyz.supabase.co``.
        api_key: Project API key sent as the ``apikey`` header.
        rest_path: Path of the REST root under ``base_url``.
        timeout: Seconds; ``None`` keeps the httpx default.
        transport: Optional transport, used by tests to stub the datastore.
    """

    def __init__(
        self,
        base_url: str,
        *,
        api_key: Optional[str] = None,
        rest_path: str = "/rest/v1",
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.api_key = api_key
        client_kwargs: Dict[str, Any] = {
            "base_url": base_url.rstrip("/") + rest_path,
        }
        if timeout is not None:
            client_kwargs["timeout"] = timeout
        if transport is not None:
            client_kwargs["transport"] = transport
        self._client = httpx.AsyncClient(**client_kwargs)

    async def aclose(self) -> None:
        await self._client.aclose()

    def _headers(self, credential: Credential, extra: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
        headers = {
            "Authorization": credential.authorization_header,
            "Accept": "application/json",
        }
        if self.api_key:
            headers["apikey"] = self.api_key
        if extra:
            headers.update(extra)
        return headers

    @staticmethod
    def _error_message(response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            message = body.get("message") or body.get("error") or body.get("hint")
            if message:
                return str(message)
        text = response.text.strip()
        return text or f"Datastore responded with HTTP {response.status_code}"

    async def _request(
        self,
        method: str,
        path: str,
        *,
        credential: Credential,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
        headers: Optional[Mapping[str, str]] = None,
    ) -> Any:
        try:
            response = await self._client.request(
                method,
                path,
                params=params,
                json=json,
                headers=self._headers(credential, headers),
            )
        except httpx.HTTPError as e:
            logger.error("Datastore %s %s failed: %s", method, path, e)
            raise UpstreamError(f"Datastore request failed: {e}") from e

        if response.is_error:
            message = self._error_message(response)
            logger.error(
                "Datastore %s %s returned %s: %s",
                method,
                path,
                response.status_code,
                message,
            )
            raise UpstreamError(message, details={"status": response.status_code})

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise UpstreamError(f"Datastore returned invalid JSON: {e}") from e

    async def select(
        self,
        table: str,
        *,
        credential: Credential,
        filters: Optional[Mapping[str, Any]] = None,
        conditions: Optional[Mapping[str, str]] = None,
        columns: str = "*",
        order: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        """Select rows matching equality ``filters``.

        ``conditions`` maps a column to a raw PostgREST operator expression such
        as ``gt.2024-01-01``.
        """
        params: Dict[str, Any] = {"select": columns}
        for column, value in (filters or {}).items():
            params[column] = f"eq.{value}"
        for column, expression in (conditions or {}).items():
            params[column] = expression
        if order:
            params["order"] = order
        if limit is not None:
            params["limit"] = limit
        data = await self._request("GET", f"/{table}", credential=credential, params=params)
        return list(data or [])

    async def select_one(
        self,
        table: str,
        *,
        credential: Credential,
        filters: Mapping[str, Any],
        conditions: Optional[Mapping[str, str]] = None,
        columns: str = "*",
    ) -> Optional[Dict[str, Any]]:
        """Return the single matching row, ``None`` when there is none."""
        rows = await self.select(
            table,
            credential=credential,
            filters=filters,
            conditions=conditions,
            columns=columns,
            limit=2,
        )
        if len(rows) > 1:
            raise UpstreamError(f"Expected at most one row from {table}, got several")
        return rows[0] if rows else None

    async def insert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        credential: Credential,
    ) -> None:
        await self._request(
            "POST",
            f"/{table}",
            credential=credential,
            json=dict(row),
            headers={"Prefer": "return=minimal"},
        )

    async def upsert(
        self,
        table: str,
        row: Mapping[str, Any],
        *,
        credential: Credential,
        on_conflict: str,
    ) -> Optional[Dict[str, Any]]:
        """Insert ``row`` or replace the conflicting one; returns the stored row."""
        data = await self._request(
            "POST",
            f"/{table}",
            credential=credential,
            params={"on_conflict": on_conflict},
            json=dict(row),
            headers={"Prefer": "resolution=merge-duplicates,return=representation"},
        )
        if isinstance(data, list):
            return data[0] if data else None
        return data

    async def rpc(
        self,
        function: str,
        params: Mapping[str, Any],
        *,
        credential: Credential,
    ) -> Any:
        """Call a remote procedure with named parameters."""
        return await self._request(
            "POST", f"/rpc/{function}", credential=credential, json=dict(params)
        )
