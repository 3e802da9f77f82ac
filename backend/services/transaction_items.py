"""Transaction item services: movement split, item moves, lineage history."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from backend.repositories.items_repository import ItemsRepository
from backend.repositories.lineage_repository import LineageRepository, is_missing_table_error
from backend.services.movement import build_item_snapshots, split_items_by_movement
from shared.models import (
    InventoryItemRow,
    ItemLineageHistoryResult,
    ItemMoveRequest,
    ItemMoveResult,
    MovementSplit,
    ToolError,
    ToolErrorCode,
)


logger = logging.getLogger(__name__)


@dataclass(slots=True)
class TransactionItemsService:
    items_repository: ItemsRepository
    lineage_repository: LineageRepository

    def split_transaction_items(
        self,
        *,
        account_id: str,
        transaction_id: str,
    ) -> MovementSplit | ToolError:
        """Return the items still in a transaction and those that moved out."""

        if not transaction_id.strip():
            return ToolError(
                code=ToolErrorCode.VALIDATION_ERROR,
                message="transaction_id must not be empty",
            )

        try:
            edges = self.lineage_repository.get_edges_for_transaction(
                account_id=account_id,
                transaction_id=transaction_id,
            )
            departed_item_ids = list(
                dict.fromkeys(
                    edge.item_id for edge in edges if edge.from_transaction_id == transaction_id
                )
            )
            rows = self.items_repository.list_transaction_items(
                account_id=account_id,
                transaction_id=transaction_id,
                extra_item_ids=departed_item_ids,
            )
        except Exception as exc:  # normalization at contract boundary
            logger.exception("transaction_items_fetch_failed transaction_id=%s", transaction_id)
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message=str(exc))

        snapshots = build_item_snapshots(rows, edges, transaction_id)
        split = split_items_by_movement(snapshots, transaction_id)
        logger.info(
            "transaction_items_split transaction_id=%s in_transaction=%s moved_out=%s",
            transaction_id,
            len(split.in_transaction),
            len(split.moved_out),
        )
        return split

    def move_item(
        self,
        *,
        account_id: str,
        item_id: str,
        request: ItemMoveRequest,
        created_by: str | None = None,
    ) -> ItemMoveResult | ToolError:
        """Move one item to another transaction, or to inventory when none is given."""

        try:
            item = self.items_repository.get_item(account_id=account_id, item_id=item_id)
            if item is None:
                return ToolError(code=ToolErrorCode.NOT_FOUND, message="Item not found")
            from_transaction_id = self._current_transaction_id(account_id=account_id, item=item)
        except Exception as exc:  # normalization at contract boundary
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message=str(exc))

        if from_transaction_id == request.to_transaction_id:
            logger.info("item_move_noop item_id=%s transaction_id=%s", item_id, from_transaction_id)
            return ItemMoveResult(edge=None)

        # Pointers before the edge: a failed update must not leave an edge behind.
        try:
            self.items_repository.update_item_lineage_pointers(
                account_id=account_id,
                item_id=item_id,
                latest_transaction_id=request.to_transaction_id,
                origin_transaction_id=from_transaction_id,
            )
        except ValueError as exc:
            return ToolError(code=ToolErrorCode.NOT_FOUND, message=str(exc))
        except Exception as exc:  # normalization at contract boundary
            logger.exception("item_move_failed item_id=%s", item_id)
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message=str(exc))

        try:
            edge = self.lineage_repository.append_item_lineage_edge(
                account_id=account_id,
                item_id=item_id,
                from_transaction_id=from_transaction_id,
                to_transaction_id=request.to_transaction_id,
                note=request.note,
                created_by=created_by,
            )
        except Exception as exc:  # normalization at contract boundary
            logger.exception(
                "item_move_edge_failed item_id=%s latest_transaction_id=%s",
                item_id,
                request.to_transaction_id,
            )
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message=str(exc))

        return ItemMoveResult(edge=edge)

    def _current_transaction_id(self, *, account_id: str, item: InventoryItemRow) -> str | None:
        """Return where the item sits now; None means inventory.

        The latest pointer wins, then the destination of the newest lineage
        edge, then the legacy `transaction_id` for items with no lineage.
        """

        if item.latest_transaction_id:
            return item.latest_transaction_id

        try:
            history = self.lineage_repository.get_item_lineage_history(
                account_id=account_id,
                item_id=item.item_id,
            )
        except RuntimeError as exc:
            if not is_missing_table_error(exc):
                raise
            logger.warning("lineage_table_missing item_id=%s error=%s", item.item_id, exc)
            history = []

        if history:
            return history[-1].to_transaction_id
        return item.transaction_id or None

    def item_lineage_history(
        self,
        *,
        account_id: str,
        item_id: str,
    ) -> ItemLineageHistoryResult | ToolError:
        try:
            edges = self.lineage_repository.get_item_lineage_history(
                account_id=account_id,
                item_id=item_id,
            )
        except Exception as exc:  # normalization at contract boundary
            return ToolError(code=ToolErrorCode.BACKEND_ERROR, message=str(exc))
        return ItemLineageHistoryResult(items=edges)
