"""Repository interfaces and adapters for item lineage edges.

Lineage edges are append-only: each one records an item leaving one
transaction (or inventory) for another.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta, timezone
from typing import Protocol
from uuid import uuid4

from backend.db.supabase_client import SupabaseClient
from shared.models import ItemLineageEdge


logger = logging.getLogger(__name__)


_EDGE_SELECT = "id,account_id,item_id,from_transaction_id,to_transaction_id,created_at,created_by,note"
_MISSING_TABLE_MARKERS = ("PGRST205", "status 404", "Could not find the table")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _nullable_eq(value: str | None) -> str:
    return "is.null" if value is None else f"eq.{value}"


def is_missing_table_error(exc: Exception) -> bool:
    message = str(exc)
    return any(marker in message for marker in _MISSING_TABLE_MARKERS)


class LineageRepository(Protocol):
    def append_item_lineage_edge(
        self,
        *,
        account_id: str,
        item_id: str,
        from_transaction_id: str | None,
        to_transaction_id: str | None,
        note: str | None = None,
        created_by: str | None = None,
    ) -> ItemLineageEdge | None:
        """Append one edge; None when skipped."""

    def get_item_lineage_history(self, *, account_id: str, item_id: str) -> list[ItemLineageEdge]:
        """Return all edges for one item, oldest first."""

    def get_edges_from_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        """Return edges leaving one transaction, oldest first."""

    def get_edges_for_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        """Return edges leaving or entering one transaction, oldest first."""

    def get_lineage_edge_by_id(self, edge_id: str) -> ItemLineageEdge | None:
        """Return one edge or None."""


class InMemoryLineageRepository:
    """In-memory lineage repository used by tests/dev."""

    def __init__(
        self,
        *,
        idempotency_window_seconds: float = 5.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._edges: list[ItemLineageEdge] = []
        self._window = timedelta(seconds=idempotency_window_seconds)
        self._clock = clock

    def append_item_lineage_edge(
        self,
        *,
        account_id: str,
        item_id: str,
        from_transaction_id: str | None,
        to_transaction_id: str | None,
        note: str | None = None,
        created_by: str | None = None,
    ) -> ItemLineageEdge | None:
        if from_transaction_id == to_transaction_id:
            logger.info("lineage_edge_skipped_noop item_id=%s transaction_id=%s", item_id, from_transaction_id)
            return None

        now = self._clock()
        for edge in reversed(self._edges):
            if (
                edge.account_id == account_id
                and edge.item_id == item_id
                and edge.from_transaction_id == from_transaction_id
                and edge.to_transaction_id == to_transaction_id
                and edge.created_at >= now - self._window
            ):
                logger.info("lineage_edge_skipped_duplicate item_id=%s edge_id=%s", item_id, edge.id)
                return edge

        edge = ItemLineageEdge(
            id=str(uuid4()),
            account_id=account_id,
            item_id=item_id,
            from_transaction_id=from_transaction_id,
            to_transaction_id=to_transaction_id,
            created_at=now,
            created_by=created_by,
            note=note,
        )
        self._edges.append(edge)
        return edge

    def _sorted(self, edges: list[ItemLineageEdge]) -> list[ItemLineageEdge]:
        return sorted(edges, key=lambda edge: edge.created_at)

    def get_item_lineage_history(self, *, account_id: str, item_id: str) -> list[ItemLineageEdge]:
        return self._sorted(
            [edge for edge in self._edges if edge.account_id == account_id and edge.item_id == item_id]
        )

    def get_edges_from_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        return self._sorted(
            [
                edge
                for edge in self._edges
                if edge.account_id == account_id and edge.from_transaction_id == transaction_id
            ]
        )

    def get_edges_for_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        return self._sorted(
            [
                edge
                for edge in self._edges
                if edge.account_id == account_id
                and transaction_id in (edge.from_transaction_id, edge.to_transaction_id)
            ]
        )

    def get_lineage_edge_by_id(self, edge_id: str) -> ItemLineageEdge | None:
        for edge in self._edges:
            if edge.id == edge_id:
                return edge
        return None


class SupabaseLineageRepository:
    """Supabase-backed lineage repository over `item_lineage_edges`."""

    def __init__(
        self,
        client: SupabaseClient,
        *,
        idempotency_window_seconds: float = 5.0,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._client = client
        self._window = timedelta(seconds=idempotency_window_seconds)
        self._clock = clock

    def _list_edges(self, query: list[tuple[str, str | int]]) -> list[ItemLineageEdge]:
        rows, _ = self._client.get_rows(
            table="item_lineage_edges",
            query=[*query, ("select", _EDGE_SELECT), ("order", "created_at.asc")],
            with_count=False,
        )
        return [ItemLineageEdge.model_validate(row) for row in rows]

    def _find_recent_duplicate(
        self,
        *,
        account_id: str,
        item_id: str,
        from_transaction_id: str | None,
        to_transaction_id: str | None,
    ) -> ItemLineageEdge | None:
        since = self._clock() - self._window
        rows, _ = self._client.get_rows(
            table="item_lineage_edges",
            query=[
                ("account_id", f"eq.{account_id}"),
                ("item_id", f"eq.{item_id}"),
                ("from_transaction_id", _nullable_eq(from_transaction_id)),
                ("to_transaction_id", _nullable_eq(to_transaction_id)),
                ("created_at", f"gte.{since.isoformat()}"),
                ("select", _EDGE_SELECT),
                ("order", "created_at.desc"),
                ("limit", 1),
            ],
            with_count=False,
        )
        if not rows:
            return None
        return ItemLineageEdge.model_validate(rows[0])

    def append_item_lineage_edge(
        self,
        *,
        account_id: str,
        item_id: str,
        from_transaction_id: str | None,
        to_transaction_id: str | None,
        note: str | None = None,
        created_by: str | None = None,
    ) -> ItemLineageEdge | None:
        if from_transaction_id == to_transaction_id:
            logger.info("lineage_edge_skipped_noop item_id=%s transaction_id=%s", item_id, from_transaction_id)
            return None

        try:
            existing = self._find_recent_duplicate(
                account_id=account_id,
                item_id=item_id,
                from_transaction_id=from_transaction_id,
                to_transaction_id=to_transaction_id,
            )
            if existing is not None:
                logger.info("lineage_edge_skipped_duplicate item_id=%s edge_id=%s", item_id, existing.id)
                return existing

            rows = self._client.post_rows(
                table="item_lineage_edges",
                payload={
                    "account_id": account_id,
                    "item_id": item_id,
                    "from_transaction_id": from_transaction_id,
                    "to_transaction_id": to_transaction_id,
                    "created_by": created_by,
                    "note": note,
                },
                query={"select": _EDGE_SELECT},
            )
        except RuntimeError as exc:
            if is_missing_table_error(exc):
                # Lineage writes stay non-fatal until the migration is applied.
                logger.warning("lineage_table_missing item_id=%s error=%s", item_id, exc)
                return None
            raise

        if not rows:
            raise RuntimeError("Supabase did not return created lineage edge")

        edge = ItemLineageEdge.model_validate(rows[0])
        logger.info(
            "lineage_edge_appended item_id=%s from_transaction_id=%s to_transaction_id=%s edge_id=%s",
            item_id,
            from_transaction_id,
            to_transaction_id,
            edge.id,
        )
        return edge

    def get_item_lineage_history(self, *, account_id: str, item_id: str) -> list[ItemLineageEdge]:
        return self._list_edges([("account_id", f"eq.{account_id}"), ("item_id", f"eq.{item_id}")])

    def get_edges_from_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        return self._list_edges(
            [("account_id", f"eq.{account_id}"), ("from_transaction_id", f"eq.{transaction_id}")]
        )

    def get_edges_for_transaction(self, *, account_id: str, transaction_id: str) -> list[ItemLineageEdge]:
        return self._list_edges(
            [
                ("account_id", f"eq.{account_id}"),
                (
                    "or",
                    f"(from_transaction_id.eq.{transaction_id},to_transaction_id.eq.{transaction_id})",
                ),
            ]
        )

    def get_lineage_edge_by_id(self, edge_id: str) -> ItemLineageEdge | None:
        rows, _ = self._client.get_rows(
            table="item_lineage_edges",
            query={"id": f"eq.{edge_id}", "select": _EDGE_SELECT, "limit": 1},
            with_count=False,
        )
        if not rows:
            return None
        return ItemLineageEdge.model_validate(rows[0])
