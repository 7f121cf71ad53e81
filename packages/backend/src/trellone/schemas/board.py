"""Pydantic schemas for boards, columns, cards and the card move.

Learn: Ids arrive as plain strings, not uuid.UUID. A malformed id is
reported by the service/permission layer with a domain message
("Invalid column id") instead of pydantic's generic UUID error.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from trellone.constants import BoardType


# ─── Boards ──────────────────────────────────────────────

class BoardCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="", max_length=256)
    type: BoardType = BoardType.PRIVATE


class BoardUpdate(BaseModel):
    """Partial update — only non-None fields are applied."""
    title: Optional[str] = Field(None, min_length=1, max_length=50)
    description: Optional[str] = Field(None, max_length=256)
    type: Optional[BoardType] = None
    column_order_ids: Optional[list[str]] = None


class BoardRead(BaseModel):
    id: uuid.UUID
    title: str
    description: str
    type: BoardType
    owners: list[str]
    members: list[str]
    column_order_ids: list[str]
    cover_photo: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Columns ─────────────────────────────────────────────

class ColumnCreate(BaseModel):
    board_id: str
    title: str = Field(..., min_length=1, max_length=50)


class ColumnUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=50)
    card_order_ids: Optional[list[str]] = None


class ColumnRead(BaseModel):
    id: uuid.UUID
    board_id: uuid.UUID
    title: str
    card_order_ids: list[str]
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


# ─── Cards ───────────────────────────────────────────────

class CardCreate(BaseModel):
    column_id: str
    title: str = Field(..., min_length=1, max_length=50)
    description: str = Field(default="")


class CardRead(BaseModel):
    id: uuid.UUID
    board_id: uuid.UUID
    column_id: uuid.UUID
    title: str
    description: str
    comments: list[Any]
    attachments: list[Any]
    due_date: Optional[datetime] = None
    is_completed: Optional[bool] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class ColumnDetail(ColumnRead):
    cards: list[CardRead] = Field(default_factory=list)


class BoardDetail(BoardRead):
    columns: list[ColumnDetail] = Field(default_factory=list)


# ─── Move card ───────────────────────────────────────────

class MoveCardRequest(BaseModel):
    """Both orderings are the client's view of the columns after the move."""
    current_card_id: str
    prev_column_id: str
    prev_card_order_ids: list[str]
    next_column_id: str
    next_card_order_ids: list[str]


class MoveCardResult(BaseModel):
    card: CardRead
    prev_column: ColumnRead
    next_column: ColumnRead


# ─── Activity ────────────────────────────────────────────

class EventRead(BaseModel):
    id: int
    type: str
    actor_id: Optional[str]
    data: dict[str, Any]
    created_at: datetime

    model_config = {"from_attributes": True}
