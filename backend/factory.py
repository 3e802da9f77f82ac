"""Composition root for backend services."""

from __future__ import annotations

import logging

from backend.db.supabase_client import SupabaseClient, SupabaseSettings
from backend.repositories.items_repository import InMemoryItemsRepository, SupabaseItemsRepository
from backend.repositories.lineage_repository import InMemoryLineageRepository, SupabaseLineageRepository
from backend.services.transaction_items import TransactionItemsService
from shared import config


logger = logging.getLogger(__name__)


def build_transaction_items_service() -> TransactionItemsService:
    """Build the transaction items service with repository adapters.

    Supabase adapters are used when Supabase is configured; otherwise the
    in-memory adapters back a local dev process.
    """

    window = config.lineage_idempotency_window_seconds()
    supabase_url = config.supabase_url()
    supabase_key = config.supabase_service_role_key()
    if supabase_url and supabase_key:
        supabase_client = SupabaseClient(
            settings=SupabaseSettings(
                url=supabase_url,
                service_role_key=supabase_key,
                anon_key=config.supabase_anon_key(),
            )
        )
        return TransactionItemsService(
            items_repository=SupabaseItemsRepository(client=supabase_client),
            lineage_repository=SupabaseLineageRepository(
                client=supabase_client,
                idempotency_window_seconds=window,
            ),
        )

    logger.warning("supabase_not_configured using in-memory repositories")
    return TransactionItemsService(
        items_repository=InMemoryItemsRepository(),
        lineage_repository=InMemoryLineageRepository(idempotency_window_seconds=window),
    )
