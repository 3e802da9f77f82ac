"""Repository interfaces and adapters for inventory items."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Protocol

from backend.db.supabase_client import SupabaseClient
from shared.models import InventoryItemRow


logger = logging.getLogger(__name__)


_ITEM_SELECT = ",".join(
    (
        "item_id",
        "account_id",
        "description",
        "sku",
        "purchase_price",
        "project_price",
        "disposition",
        "project_id",
        "transaction_id",
        "latest_transaction_id",
        "origin_transaction_id",
        "previous_project_transaction_id",
        "previous_project_id",
    )
)


class _Unset:
    def __repr__(self) -> str:
        return "UNSET"


UNSET = _Unset()


def _dedupe_rows(rows: Sequence[InventoryItemRow]) -> list[InventoryItemRow]:
    seen: set[str] = set()
    unique: list[InventoryItemRow] = []
    for row in rows:
        if row.item_id in seen:
            continue
        seen.add(row.item_id)
        unique.append(row)
    return unique


class ItemsRepository(Protocol):
    def list_transaction_items(
        self,
        *,
        account_id: str,
        transaction_id: str,
        extra_item_ids: Sequence[str] = (),
    ) -> list[InventoryItemRow]:
        """Return items linked to a transaction by any transaction column, plus extra ids."""

    def get_item(self, *, account_id: str, item_id: str) -> InventoryItemRow | None:
        """Return one item or None."""

    def update_item_lineage_pointers(
        self,
        *,
        account_id: str,
        item_id: str,
        latest_transaction_id: str | None,
        origin_transaction_id: str | None | _Unset = UNSET,
    ) -> None:
        """Point the item at its latest transaction; set origin only when missing."""


class InMemoryItemsRepository:
    """In-memory items repository used by tests/dev."""

    def __init__(self, items: Sequence[InventoryItemRow] = ()) -> None:
        self._items: list[InventoryItemRow] = list(items)

    def list_transaction_items(
        self,
        *,
        account_id: str,
        transaction_id: str,
        extra_item_ids: Sequence[str] = (),
    ) -> list[InventoryItemRow]:
        extra = set(extra_item_ids)
        linked = [
            item
            for item in self._items
            if item.account_id == account_id
            and (
                transaction_id
                in (
                    item.transaction_id,
                    item.latest_transaction_id,
                    item.previous_project_transaction_id,
                )
                or item.item_id in extra
            )
        ]
        return _dedupe_rows(linked)

    def get_item(self, *, account_id: str, item_id: str) -> InventoryItemRow | None:
        for item in self._items:
            if item.account_id == account_id and item.item_id == item_id:
                return item
        return None

    def update_item_lineage_pointers(
        self,
        *,
        account_id: str,
        item_id: str,
        latest_transaction_id: str | None,
        origin_transaction_id: str | None | _Unset = UNSET,
    ) -> None:
        for index, item in enumerate(self._items):
            if item.account_id != account_id or item.item_id != item_id:
                continue
            update: dict[str, object] = {"latest_transaction_id": latest_transaction_id}
            if (
                not isinstance(origin_transaction_id, _Unset)
                and origin_transaction_id
                and not item.origin_transaction_id
            ):
                update["origin_transaction_id"] = origin_transaction_id
            self._items[index] = item.model_copy(update=update)
            return
        raise ValueError("Item not found")


class SupabaseItemsRepository:
    """Supabase-backed items repository."""

    def __init__(self, client: SupabaseClient) -> None:
        self._client = client

    def list_transaction_items(
        self,
        *,
        account_id: str,
        transaction_id: str,
        extra_item_ids: Sequence[str] = (),
    ) -> list[InventoryItemRow]:
        rows, _ = self._client.get_rows(
            table="items",
            query=[
                ("account_id", f"eq.{account_id}"),
                (
                    "or",
                    "("
                    f"transaction_id.eq.{transaction_id},"
                    f"latest_transaction_id.eq.{transaction_id},"
                    f"previous_project_transaction_id.eq.{transaction_id}"
                    ")",
                ),
                ("select", _ITEM_SELECT),
                ("order", "created_at.asc"),
            ],
            with_count=False,
        )
        items = [InventoryItemRow.model_validate(row) for row in rows]

        known_ids = {item.item_id for item in items}
        missing_ids = [item_id for item_id in extra_item_ids if item_id not in known_ids]
        if missing_ids:
            extra_rows, _ = self._client.get_rows(
                table="items",
                query=[
                    ("account_id", f"eq.{account_id}"),
                    ("item_id", f"in.({','.join(missing_ids)})"),
                    ("select", _ITEM_SELECT),
                    ("order", "created_at.asc"),
                ],
                with_count=False,
            )
            items.extend(InventoryItemRow.model_validate(row) for row in extra_rows)

        logger.info(
            "transaction_items_loaded transaction_id=%s count=%s extra_requested=%s",
            transaction_id,
            len(items),
            len(missing_ids),
        )
        return _dedupe_rows(items)

    def get_item(self, *, account_id: str, item_id: str) -> InventoryItemRow | None:
        rows, _ = self._client.get_rows(
            table="items",
            query={
                "account_id": f"eq.{account_id}",
                "item_id": f"eq.{item_id}",
                "select": _ITEM_SELECT,
                "limit": 1,
            },
            with_count=False,
        )
        if not rows:
            return None
        return InventoryItemRow.model_validate(rows[0])

    def update_item_lineage_pointers(
        self,
        *,
        account_id: str,
        item_id: str,
        latest_transaction_id: str | None,
        origin_transaction_id: str | None | _Unset = UNSET,
    ) -> None:
        payload: dict[str, object] = {"latest_transaction_id": latest_transaction_id}

        if not isinstance(origin_transaction_id, _Unset) and origin_transaction_id:
            current = self.get_item(account_id=account_id, item_id=item_id)
            if current is not None and not current.origin_transaction_id:
                payload["origin_transaction_id"] = origin_transaction_id

        rows = self._client.patch_rows(
            table="items",
            query={
                "account_id": f"eq.{account_id}",
                "item_id": f"eq.{item_id}",
                "select": "item_id",
            },
            payload=payload,
        )
        if not rows:
            raise ValueError("Item not found")

        logger.info(
            "item_lineage_pointers_updated item_id=%s latest_transaction_id=%s origin_set=%s",
            item_id,
            latest_transaction_id,
            "origin_transaction_id" in payload,
        )
