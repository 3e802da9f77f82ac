"""Build item snapshots from storage rows and lineage edges."""

from __future__ import annotations

from collections.abc import Iterable

from shared.models import InventoryItemRow, ItemLineageEdge, ItemSnapshot


def _has_left_transaction(edges: Iterable[ItemLineageEdge], transaction_id: str) -> bool:
    touching = [
        edge
        for edge in edges
        if edge.from_transaction_id == transaction_id or edge.to_transaction_id == transaction_id
    ]
    if not touching:
        return False

    latest = max(touching, key=lambda edge: edge.created_at)
    return latest.from_transaction_id == transaction_id and latest.to_transaction_id != transaction_id


def build_item_snapshot(
    row: InventoryItemRow,
    edges: Iterable[ItemLineageEdge],
    transaction_id: str | None,
) -> ItemSnapshot:
    """Return the snapshot of one item as seen from `transaction_id`.

    `edges` may contain edges of other items; only the row's own edges count.
    """

    own_edges = [edge for edge in edges if edge.item_id == row.item_id]
    explicitly_moved = bool(transaction_id) and _has_left_transaction(own_edges, transaction_id)

    return ItemSnapshot(
        id=row.item_id,
        explicitly_moved=explicitly_moved,
        latest_transaction_id=row.latest_transaction_id,
        legacy_transaction_id=row.transaction_id,
        current_project_id=row.project_id,
        prior_project_transaction_id=row.previous_project_transaction_id,
        description=row.description,
        sku=row.sku,
        purchase_price=row.purchase_price,
        project_price=row.project_price,
        disposition=row.disposition,
    )


def build_item_snapshots(
    rows: Iterable[InventoryItemRow],
    edges: Iterable[ItemLineageEdge],
    transaction_id: str | None,
) -> list[ItemSnapshot]:
    edges_by_item: dict[str, list[ItemLineageEdge]] = {}
    for edge in edges:
        edges_by_item.setdefault(edge.item_id, []).append(edge)

    return [
        build_item_snapshot(row, edges_by_item.get(row.item_id, []), transaction_id)
        for row in rows
    ]
