"""Pydantic contracts shared across backend and API layers."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ToolErrorCode(str, Enum):
    """Stable error codes for service contracts across layers."""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    BACKEND_ERROR = "BACKEND_ERROR"
    NOT_FOUND = "NOT_FOUND"


class ToolError(BaseModel):
    model_config = ConfigDict(extra="forbid")

    code: ToolErrorCode
    message: str
    details: dict[str, object] | None = None


class InventoryItemRow(BaseModel):
    """One row of the `items` table, restricted to the columns we read."""

    model_config = ConfigDict(extra="ignore")

    item_id: str
    account_id: str
    description: str = ""
    sku: str | None = None
    purchase_price: Decimal | None = None
    project_price: Decimal | None = None
    disposition: str | None = None
    project_id: str | None = None
    transaction_id: str | None = None
    latest_transaction_id: str | None = None
    origin_transaction_id: str | None = None
    previous_project_transaction_id: str | None = None
    previous_project_id: str | None = None

    @field_validator("purchase_price", "project_price", mode="before")
    @classmethod
    def parse_text_price(cls, value: object) -> object:
        # Prices are stored as free text.
        if not isinstance(value, str):
            return value
        cleaned = value.strip().replace("$", "").replace(",", "")
        if not cleaned:
            return None
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            return None


class ItemLineageEdge(BaseModel):
    """Append-only record of one item move.

    A `None` transaction on either side means general business inventory.
    """

    model_config = ConfigDict(extra="ignore")

    id: str
    account_id: str
    item_id: str
    from_transaction_id: str | None = None
    to_transaction_id: str | None = None
    created_at: datetime
    created_by: str | None = None
    note: str | None = None


class ItemSnapshot(BaseModel):
    """Read-only view of an inventory item relative to one transaction."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    id: str
    explicitly_moved: bool = False
    latest_transaction_id: str | None = None
    legacy_transaction_id: str | None = None
    current_project_id: str | None = None
    prior_project_transaction_id: str | None = None
    description: str = ""
    sku: str | None = None
    purchase_price: Decimal | None = None
    project_price: Decimal | None = None
    disposition: str | None = None


class CurrentlyIn(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["currently_in"] = "currently_in"
    transaction_id: str


class MovedOut(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["moved_out"] = "moved_out"
    from_transaction_id: str
    to_transaction_id: str | None = None
    to_project_id: str | None = None


class Unknown(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["unknown"] = "unknown"


Association = Annotated[
    Union[CurrentlyIn, MovedOut, Unknown],
    Field(discriminator="kind"),
]


class MovementSplit(BaseModel):
    model_config = ConfigDict(extra="forbid")

    in_transaction: list[ItemSnapshot] = Field(default_factory=list)
    moved_out: list[ItemSnapshot] = Field(default_factory=list)


class ItemMoveRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    to_transaction_id: str | None = None
    note: str | None = None

    @field_validator("to_transaction_id", "note")
    @classmethod
    def blank_to_none(cls, value: str | None) -> str | None:
        if value is None:
            return None
        stripped = value.strip()
        return stripped or None


class ItemMoveResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    edge: ItemLineageEdge | None = None


class ItemLineageHistoryResult(BaseModel):
    model_config = ConfigDict(extra="forbid")

    items: list[ItemLineageEdge]
