"""Tests for lineage repository adapters."""

from __future__ import annotations

import pytest

from backend.repositories.lineage_repository import InMemoryLineageRepository, SupabaseLineageRepository
from tests.fakes import ACCOUNT_ID, BASE_TIME, FakeClock, RecordingSupabaseClient


def _edge_payload(edge_id: str = "edge-1", **overrides: object) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": edge_id,
        "account_id": ACCOUNT_ID,
        "item_id": "item-1",
        "from_transaction_id": "tx-1",
        "to_transaction_id": "tx-2",
        "created_at": BASE_TIME.isoformat(),
        "created_by": None,
        "note": None,
    }
    payload.update(overrides)
    return payload


def _append(repository, **overrides: object):
    kwargs: dict[str, object] = {
        "account_id": ACCOUNT_ID,
        "item_id": "item-1",
        "from_transaction_id": "tx-1",
        "to_transaction_id": "tx-2",
    }
    kwargs.update(overrides)
    return repository.append_item_lineage_edge(**kwargs)


def test_in_memory_skips_noop_move() -> None:
    repository = InMemoryLineageRepository()

    assert _append(repository, to_transaction_id="tx-1") is None
    assert repository.get_item_lineage_history(account_id=ACCOUNT_ID, item_id="item-1") == []


def test_in_memory_returns_existing_edge_inside_idempotency_window() -> None:
    clock = FakeClock()
    repository = InMemoryLineageRepository(idempotency_window_seconds=5, clock=clock)

    first = _append(repository)
    clock.advance(3)
    second = _append(repository)

    assert first is not None
    assert second == first
    assert len(repository.get_item_lineage_history(account_id=ACCOUNT_ID, item_id="item-1")) == 1


def test_in_memory_appends_again_after_idempotency_window() -> None:
    clock = FakeClock()
    repository = InMemoryLineageRepository(idempotency_window_seconds=5, clock=clock)

    first = _append(repository)
    clock.advance(6)
    second = _append(repository)

    assert first is not None and second is not None
    assert second.id != first.id


def test_in_memory_transaction_queries() -> None:
    clock = FakeClock()
    repository = InMemoryLineageRepository(clock=clock)
    leaving = _append(repository, note="sold to client")
    clock.advance(60)
    entering = _append(repository, item_id="item-2", from_transaction_id=None, to_transaction_id="tx-1")
    clock.advance(60)
    _append(repository, item_id="item-3", from_transaction_id="tx-8", to_transaction_id="tx-9")

    assert repository.get_edges_from_transaction(account_id=ACCOUNT_ID, transaction_id="tx-1") == [leaving]
    assert repository.get_edges_for_transaction(account_id=ACCOUNT_ID, transaction_id="tx-1") == [
        leaving,
        entering,
    ]
    assert leaving is not None
    assert repository.get_lineage_edge_by_id(leaving.id) == leaving
    assert repository.get_lineage_edge_by_id("missing") is None


def test_supabase_append_inserts_when_no_recent_duplicate() -> None:
    client = RecordingSupabaseClient(get_responses=[[]], post_responses=[[_edge_payload()]])
    repository = SupabaseLineageRepository(client, clock=FakeClock())  # type: ignore[arg-type]

    edge = _append(repository, note="moved")

    assert edge is not None and edge.id == "edge-1"
    duplicate_query = dict(client.calls[0][1]["query"])  # type: ignore[arg-type]
    assert duplicate_query["from_transaction_id"] == "eq.tx-1"
    assert duplicate_query["created_at"] == "gte.2025-11-09T11:59:55+00:00"
    method, kwargs = client.calls[1]
    assert method == "POST"
    assert kwargs["table"] == "item_lineage_edges"
    assert kwargs["payload"]["note"] == "moved"  # type: ignore[index]


def test_supabase_append_uses_is_null_for_inventory_side() -> None:
    client = RecordingSupabaseClient(get_responses=[[]], post_responses=[[_edge_payload(to_transaction_id=None)]])
    repository = SupabaseLineageRepository(client, clock=FakeClock())  # type: ignore[arg-type]

    _append(repository, to_transaction_id=None)

    duplicate_query = dict(client.calls[0][1]["query"])  # type: ignore[arg-type]
    assert duplicate_query["to_transaction_id"] == "is.null"


def test_supabase_append_returns_recent_duplicate_without_insert() -> None:
    client = RecordingSupabaseClient(get_responses=[[_edge_payload("edge-existing")]])
    repository = SupabaseLineageRepository(client, clock=FakeClock())  # type: ignore[arg-type]

    edge = _append(repository)

    assert edge is not None and edge.id == "edge-existing"
    assert [method for method, _ in client.calls] == ["GET"]


def test_supabase_append_treats_missing_table_as_non_fatal() -> None:
    client = RecordingSupabaseClient(
        error=RuntimeError('Supabase request failed with status 404: {"code":"PGRST205"}')
    )
    repository = SupabaseLineageRepository(client, clock=FakeClock())  # type: ignore[arg-type]

    assert _append(repository) is None


def test_supabase_append_propagates_other_failures() -> None:
    client = RecordingSupabaseClient(error=RuntimeError("Supabase request failed with status 500: boom"))
    repository = SupabaseLineageRepository(client, clock=FakeClock())  # type: ignore[arg-type]

    with pytest.raises(RuntimeError, match="status 500"):
        _append(repository)


def test_supabase_history_orders_by_created_at() -> None:
    client = RecordingSupabaseClient(get_responses=[[_edge_payload("e1"), _edge_payload("e2")]])
    repository = SupabaseLineageRepository(client)  # type: ignore[arg-type]

    edges = repository.get_item_lineage_history(account_id=ACCOUNT_ID, item_id="item-1")

    assert [edge.id for edge in edges] == ["e1", "e2"]
    query = dict(client.calls[0][1]["query"])  # type: ignore[arg-type]
    assert query["order"] == "created_at.asc"
    assert query["item_id"] == "eq.item-1"


def test_supabase_edges_for_transaction_matches_both_directions() -> None:
    client = RecordingSupabaseClient(get_responses=[[]])
    repository = SupabaseLineageRepository(client)  # type: ignore[arg-type]

    repository.get_edges_for_transaction(account_id=ACCOUNT_ID, transaction_id="tx-1")

    query = dict(client.calls[0][1]["query"])  # type: ignore[arg-type]
    assert query["or"] == "(from_transaction_id.eq.tx-1,to_transaction_id.eq.tx-1)"
