"""Backend entrypoint."""

from backend.factory import build_transaction_items_service


def create_backend_services() -> dict[str, object]:
    """Factory for backend service objects used by API or local integrations."""
    return {"transaction_items_service": build_transaction_items_service()}
