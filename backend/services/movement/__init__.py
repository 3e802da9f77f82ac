"""Transaction item movement services."""

from backend.services.movement.classifier import (
    is_transitionally_moved_out,
    resolve_association,
    split_items_by_movement,
)
from backend.services.movement.snapshots import build_item_snapshot, build_item_snapshots

__all__ = [
    "build_item_snapshot",
    "build_item_snapshots",
    "is_transitionally_moved_out",
    "resolve_association",
    "split_items_by_movement",
]
