"""SQLAlchemy ORM models — single source of truth for the database schema.

Learn: Declarative ORM mapping with SQLAlchemy 2.0 style (Mapped[] + mapped_column).
Each class = one table.

Key concepts:
- UUID primary keys (sqlalchemy.Uuid — native on PostgreSQL, CHAR(32) elsewhere)
- JSON columns for the ordering arrays and the owner/member sets. The arrays
  are authoritative: board.column_order_ids orders the columns, and
  column.card_order_ids orders the cards. Ids are stored as strings.
- Boards, columns and cards reference each other by id only; no ORM
  relationships, children are looked up by id.
- Soft delete: `destroyed=True` hides a row from every normal query.
- server_default for DB-level timestamps (work even for raw SQL updates)
"""

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

from trellone.constants import BoardType, UserVerifyStatus


class Base(DeclarativeBase):
    """Base class for all models."""
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_uuid() -> uuid.UUID:
    return uuid.uuid4()


def parse_id(value) -> Optional[uuid.UUID]:
    """Parse an id string; None if it is not a valid UUID."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        return None


# ══════════════════════════════════════════════════════════════
# Accounts
# ══════════════════════════════════════════════════════════════


class User(Base):
    """A person who owns or collaborates on boards.

    The two token columns are single-slot: writing a new token replaces
    (and thereby invalidates) the previous one. NULL means "no live token"
    — either never issued or already consumed.
    """

    __tablename__ = "users"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str] = mapped_column(String(100), nullable=False)
    password_hash: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )  # nullable for identity-provider accounts
    verify: Mapped[int] = mapped_column(
        Integer, nullable=False, default=int(UserVerifyStatus.UNVERIFIED)
    )
    email_verify_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    forgot_password_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    @property
    def verify_status(self) -> UserVerifyStatus:
        return UserVerifyStatus(self.verify)


class RefreshToken(Base):
    """One row per refresh token that may still be exchanged.

    Rows are deleted on logout and on rotation. A row whose `exp` has
    passed is treated as absent even before it is purged.
    """

    __tablename__ = "refresh_tokens"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (Index("ix_refresh_tokens_user_id", "user_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    token: Mapped[str] = mapped_column(String(1024), unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    iat: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    exp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Boards → Columns → Cards
# ══════════════════════════════════════════════════════════════


class Board(Base):
    """A Kanban board.

    column_order_ids is a permutation of the ids of the board's live
    columns. owners/members hold user id strings.
    """

    __tablename__ = "boards"
    __mapper_args__ = {"eager_defaults": True}

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    title: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(String(256), nullable=False, default="")
    type: Mapped[str] = mapped_column(
        String(10), nullable=False, default=BoardType.PRIVATE.value
    )
    owners: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    members: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    column_order_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    cover_photo: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    destroyed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )

    def has_member(self, user_id: str) -> bool:
        return user_id in (self.owners or []) or user_id in (self.members or [])


class Column(Base):
    """A list on a board. card_order_ids orders the column's live cards."""

    __tablename__ = "columns"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (Index("ix_columns_board_id", "board_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(50), nullable=False)
    card_order_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    destroyed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


class Card(Base):
    """A card. column_id always names a live column of the same board."""

    __tablename__ = "cards"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (
        Index("ix_cards_board_id", "board_id"),
        Index("ix_cards_column_id", "column_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=new_uuid)
    board_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("boards.id"), nullable=False
    )
    column_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("columns.id"), nullable=False
    )
    title: Mapped[str] = mapped_column(String(50), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False, default="")
    comments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    attachments: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    due_date: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    is_completed: Mapped[Optional[bool]] = mapped_column(Boolean, nullable=True)
    destroyed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )


# ══════════════════════════════════════════════════════════════
# Event log
# ══════════════════════════════════════════════════════════════


class Event(Base):
    """Append-only record of board mutations (activity feed, audit trail).

    stream_id is "board:<uuid>"; data holds the mutation details.
    """

    __tablename__ = "events"
    __mapper_args__ = {"eager_defaults": True}
    __table_args__ = (Index("ix_events_stream_id", "stream_id", "id"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    stream_id: Mapped[str] = mapped_column(String(100), nullable=False)
    type: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_id: Mapped[Optional[str]] = mapped_column(String(36), nullable=True)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
