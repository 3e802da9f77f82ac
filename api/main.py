"""FastAPI entrypoint for transaction item endpoints."""

from __future__ import annotations

import logging
from functools import lru_cache
from typing import Any

from fastapi import FastAPI, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import JSONResponse

from backend.factory import build_transaction_items_service
from backend.services.transaction_items import TransactionItemsService
from shared import config as _config
from shared.models import ItemMoveRequest, ToolError, ToolErrorCode


logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_transaction_items_service() -> TransactionItemsService:
    """Create and cache the transaction items service once per process."""

    service = build_transaction_items_service()
    logger.info(
        "using_repositories items=%s lineage=%s",
        service.items_repository.__class__.__name__,
        service.lineage_repository.__class__.__name__,
    )
    return service


def _raise_for_tool_error(result: ToolError) -> None:
    status_code = 404 if result.code == ToolErrorCode.NOT_FOUND else 400
    raise HTTPException(status_code=status_code, detail=result.message)


app = FastAPI(title="Design Inventory API")

ALLOW_ORIGINS = _config.cors_allow_origins()


@app.middleware("http")
async def log_http_requests(request: Request, call_next):
    """Log incoming requests, HTTP status codes and unexpected errors."""

    logger.info("http_request_received method=%s path=%s", request.method, request.url.path)
    try:
        response = await call_next(request)
    except Exception:
        logger.exception(
            "http_request_failed method=%s path=%s",
            request.method,
            request.url.path,
        )
        raise

    logger.info(
        "http_response_sent method=%s path=%s status_code=%s",
        request.method,
        request.url.path,
        response.status_code,
    )
    return response


app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOW_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger.info("cors_allow_origins=%s", ALLOW_ORIGINS)


@app.exception_handler(Exception)
async def handle_unexpected_exception(request: Request, exc: Exception) -> JSONResponse:
    """Return a JSON 500 response for unhandled exceptions."""

    logger.exception(
        "unhandled_exception method=%s path=%s exception_type=%s message=%s",
        request.method,
        request.url.path,
        type(exc).__name__,
        str(exc),
        exc_info=exc,
    )
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


@app.get("/health")
def health() -> dict[str, str]:
    """Healthcheck endpoint."""

    return {"status": "ok"}


@app.get("/accounts/{account_id}/transactions/{transaction_id}/items")
def list_transaction_items(account_id: str, transaction_id: str) -> Any:
    """Return a transaction's items split into present and moved-out."""

    result = get_transaction_items_service().split_transaction_items(
        account_id=account_id,
        transaction_id=transaction_id,
    )
    if isinstance(result, ToolError):
        _raise_for_tool_error(result)
    return jsonable_encoder(result)


@app.post("/accounts/{account_id}/items/{item_id}/move")
def move_item(account_id: str, item_id: str, payload: ItemMoveRequest) -> Any:
    """Move one item to another transaction or back to inventory."""

    logger.info(
        "item_move_received item_id=%s to_transaction_id=%s",
        item_id,
        payload.to_transaction_id,
    )
    result = get_transaction_items_service().move_item(
        account_id=account_id,
        item_id=item_id,
        request=payload,
    )
    if isinstance(result, ToolError):
        _raise_for_tool_error(result)
    return jsonable_encoder(result)


@app.get("/accounts/{account_id}/items/{item_id}/lineage")
def item_lineage(account_id: str, item_id: str) -> Any:
    """Return the lineage history of one item, oldest edge first."""

    result = get_transaction_items_service().item_lineage_history(
        account_id=account_id,
        item_id=item_id,
    )
    if isinstance(result, ToolError):
        _raise_for_tool_error(result)
    return jsonable_encoder(result)
