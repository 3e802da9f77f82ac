"""Minimal Supabase PostgREST client used by backend repositories only."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from urllib.error import HTTPError
from urllib.parse import urlencode
from urllib.request import Request, urlopen


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SupabaseSettings:
    url: str
    service_role_key: str
    anon_key: str | None = None


class SupabaseClient:
    def __init__(self, settings: SupabaseSettings) -> None:
        self.settings = settings

    def _api_key(self, use_anon_key: bool) -> str:
        api_key = self.settings.anon_key if use_anon_key else self.settings.service_role_key
        if not api_key:
            raise ValueError("Missing Supabase API key for requested mode")
        return api_key

    def _build_request(
        self,
        *,
        table: str,
        method: str,
        query: dict[str, str | int] | list[tuple[str, str | int]],
        prefer: str,
        use_anon_key: bool,
        payload: object | None = None,
    ) -> Request:
        encoded_query = urlencode(query, doseq=True)
        api_key = self._api_key(use_anon_key)
        url = f"{self.settings.url.rstrip('/')}/rest/v1/{table}"
        if encoded_query:
            url = f"{url}?{encoded_query}"
        headers = {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Accept": "application/json",
            "Prefer": prefer,
        }
        data = None
        if payload is not None:
            data = json.dumps(payload).encode("utf-8")
            headers["Content-Type"] = "application/json"
        return Request(url=url, data=data, headers=headers, method=method)

    def _send(self, request: Request) -> tuple[list[dict[str, Any]], Any]:
        try:
            with urlopen(request) as response:  # noqa: S310 - URL comes from trusted env config
                raw = response.read().decode("utf-8")
                rows = json.loads(raw) if raw else []
                if isinstance(rows, dict):
                    rows = [rows]
                return rows, response.headers
        except HTTPError as exc:
            body = exc.read().decode("utf-8", errors="replace")[:500]
            logger.warning(
                "supabase_request_failed method=%s status=%s",
                request.get_method(),
                exc.code,
            )
            raise RuntimeError(
                f"Supabase request failed with status {exc.code}: {body}"
            ) from exc

    def get_rows(
        self,
        *,
        table: str,
        query: dict[str, str | int] | list[tuple[str, str | int]],
        with_count: bool,
        use_anon_key: bool = False,
    ) -> tuple[list[dict[str, Any]], int | None]:
        """Fetch rows from PostgREST and optionally parse exact row count."""

        request = self._build_request(
            table=table,
            method="GET",
            query=query,
            prefer="count=exact" if with_count else "return=representation",
            use_anon_key=use_anon_key,
        )
        rows, headers = self._send(request)
        total: int | None = None
        if with_count:
            content_range = headers.get("content-range") if headers else None
            if content_range and "/" in content_range:
                _, total_str = content_range.split("/", maxsplit=1)
                total = int(total_str)
        return rows, total

    def post_rows(
        self,
        *,
        table: str,
        payload: dict[str, object] | list[dict[str, object]],
        query: dict[str, str | int] | list[tuple[str, str | int]] | None = None,
        prefer: str = "return=representation",
        use_anon_key: bool = False,
    ) -> list[dict[str, Any]]:
        """Insert rows and return the created representation."""

        request = self._build_request(
            table=table,
            method="POST",
            query=query or {},
            prefer=prefer,
            use_anon_key=use_anon_key,
            payload=payload,
        )
        rows, _ = self._send(request)
        return rows

    def patch_rows(
        self,
        *,
        table: str,
        query: dict[str, str | int] | list[tuple[str, str | int]],
        payload: dict[str, object],
        use_anon_key: bool = False,
    ) -> list[dict[str, Any]]:
        """Update rows matching the query and return their new representation."""

        request = self._build_request(
            table=table,
            method="PATCH",
            query=query,
            prefer="return=representation",
            use_anon_key=use_anon_key,
            payload=payload,
        )
        rows, _ = self._send(request)
        return rows
