"""Classify transaction items as still present or moved elsewhere."""

from __future__ import annotations

from collections.abc import Iterable

from shared.models import (
    Association,
    CurrentlyIn,
    ItemSnapshot,
    MovedOut,
    MovementSplit,
    Unknown,
)


def _present(value: str | None) -> bool:
    return bool(value)


def is_transitionally_moved_out(item: ItemSnapshot, transaction_id: str | None) -> bool:
    """Return whether the item was just returned from a project out of this transaction."""

    if not transaction_id:
        return False

    return (
        not _present(item.latest_transaction_id)
        and item.current_project_id is None
        and item.prior_project_transaction_id == transaction_id
    )


def resolve_association(item: ItemSnapshot, transaction_id: str | None) -> Association:
    """Resolve where the item stands relative to one transaction.

    Precedence: explicit move flag, latest transaction id, transitional
    return, legacy transaction id. Anything left is `Unknown`, which callers
    keep in the transaction.
    """

    if not transaction_id:
        return Unknown()

    if item.explicitly_moved:
        return MovedOut(
            from_transaction_id=transaction_id,
            to_transaction_id=_destination(item.latest_transaction_id, transaction_id),
            to_project_id=item.current_project_id,
        )

    if _present(item.latest_transaction_id):
        if item.latest_transaction_id == transaction_id:
            return CurrentlyIn(transaction_id=transaction_id)
        return MovedOut(
            from_transaction_id=transaction_id,
            to_transaction_id=item.latest_transaction_id,
            to_project_id=item.current_project_id,
        )

    if is_transitionally_moved_out(item, transaction_id):
        return MovedOut(from_transaction_id=transaction_id)

    if item.legacy_transaction_id == transaction_id:
        return CurrentlyIn(transaction_id=transaction_id)

    # A mismatching legacy id alone is not evidence of a move.
    return Unknown()


def _destination(latest_transaction_id: str | None, transaction_id: str) -> str | None:
    if not _present(latest_transaction_id) or latest_transaction_id == transaction_id:
        return None
    return latest_transaction_id


def split_items_by_movement(
    items: Iterable[ItemSnapshot],
    transaction_id: str | None,
) -> MovementSplit:
    """Partition items into those in the transaction and those moved out.

    Only a `MovedOut` association leaves the transaction; `CurrentlyIn` and
    `Unknown` both stay. Input order is kept in both lists. Without a
    transaction id every item stays in the transaction.
    """

    in_transaction: list[ItemSnapshot] = []
    moved_out: list[ItemSnapshot] = []
    for item in items:
        if isinstance(resolve_association(item, transaction_id), MovedOut):
            moved_out.append(item)
        else:
            in_transaction.append(item)
    return MovementSplit(in_transaction=in_transaction, moved_out=moved_out)
