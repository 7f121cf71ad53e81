"""Board service — structural mutations of boards, columns and cards.

Learn: Ordering lives in arrays owned by the parent:

    board.column_order_ids  → order of the board's live columns
    column.card_order_ids   → order of the column's live cards

Every mutation keeps those arrays in step with the child rows:
- creating a child appends its id to the parent's array
- deleting a column (soft) removes its id from the board's array
- a client-supplied array must be a permutation of the live ids,
  otherwise the client was looking at a stale board (409)

Moving a card touches three rows (source column, destination column,
card). The three writes are flushed and committed in ONE transaction;
a failure rolls all of them back, so no reader ever sees the card in
zero or two columns. Mutations of one board are serialized by a
per-board asyncio lock plus row locks on the columns being rewritten.
"""

import uuid
from typing import Iterable, Optional, Sequence

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.constants import BOARDS_MESSAGES, COLUMNS_MESSAGES, BoardType
from trellone.db.models import Board, Card, Column, Event, parse_id
from trellone.errors import (
    Conflict,
    EntityValidationError,
    InvalidCardId,
    InvalidColumnId,
    NotFound,
)
from trellone.events.store import EventStore, board_stream
from trellone.events.types import (
    BOARD_CREATED,
    BOARD_UPDATED,
    CARD_CREATED,
    CARD_MOVED,
    COLUMN_CREATED,
    COLUMN_DELETED,
    COLUMN_UPDATED,
)
from trellone.realtime.pubsub import publish_event
from trellone.services.locks import BoardLocks, board_locks

logger = structlog.get_logger()


def normalize_ids(values: Iterable, error: EntityValidationError) -> list[str]:
    """Canonical string form of every id; raises `error` on a malformed one."""
    ids = []
    for value in values:
        parsed = parse_id(value)
        if parsed is None:
            raise error
        ids.append(str(parsed))
    return ids


def order_by_ids(items: Sequence, order_ids: Sequence[str]) -> list:
    """Sort items by an ordering array.

    Items missing from the array (should not happen once stable) are
    appended in creation order instead of being hidden.
    """
    position = {item_id: i for i, item_id in enumerate(order_ids)}
    ranked = [item for item in items if str(item.id) in position]
    ranked.sort(key=lambda item: position[str(item.id)])
    unranked = sorted(
        (item for item in items if str(item.id) not in position),
        key=lambda item: (item.created_at is None, item.created_at),
    )
    return ranked + unranked


def _check_unique(ids: list[str], field: str) -> None:
    if len(set(ids)) != len(ids):
        raise EntityValidationError.for_field(
            field, BOARDS_MESSAGES["CARD_ORDER_IDS_MUST_BE_UNIQUE"]
        )


class BoardService:
    """Business logic for board structure."""

    def __init__(self, db: AsyncSession, locks: BoardLocks = board_locks):
        self.db = db
        self.locks = locks
        self.events = EventStore(db)

    # ─── Lookups (live rows only) ───────────────────────

    async def get_board(self, board_id) -> Optional[Board]:
        bid = parse_id(board_id)
        if bid is None:
            return None
        result = await self.db.execute(
            select(Board).where(Board.id == bid, Board.destroyed.is_(False))
        )
        return result.scalars().first()

    async def get_column(self, column_id) -> Optional[Column]:
        cid = parse_id(column_id)
        if cid is None:
            return None
        result = await self.db.execute(
            select(Column).where(Column.id == cid, Column.destroyed.is_(False))
        )
        return result.scalars().first()

    async def get_card(self, card_id) -> Optional[Card]:
        cid = parse_id(card_id)
        if cid is None:
            return None
        result = await self.db.execute(
            select(Card).where(Card.id == cid, Card.destroyed.is_(False))
        )
        return result.scalars().first()

    async def live_columns(self, board_id: uuid.UUID) -> list[Column]:
        result = await self.db.execute(
            select(Column).where(
                Column.board_id == board_id, Column.destroyed.is_(False)
            )
        )
        return list(result.scalars().all())

    async def live_cards(self, column_id: uuid.UUID) -> list[Card]:
        result = await self.db.execute(
            select(Card).where(Card.column_id == column_id, Card.destroyed.is_(False))
        )
        return list(result.scalars().all())

    async def _lock_columns(self, column_ids: list[uuid.UUID]) -> dict[str, Column]:
        """Re-read columns with row locks, overwriting stale in-session state."""
        result = await self.db.execute(
            select(Column)
            .where(Column.id.in_(column_ids))
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return {str(c.id): c for c in result.scalars().all()}

    async def _lock_live_column(self, column: Column) -> Column:
        """Re-read one column under lock; 404 if it was deleted meanwhile."""
        locked = (await self._lock_columns([column.id])).get(str(column.id))
        if locked is None or locked.destroyed:
            raise NotFound(COLUMNS_MESSAGES["COLUMN_NOT_FOUND"])
        return locked

    async def _lock_board(self, board: Board) -> None:
        await self.db.refresh(board, with_for_update=True)

    # ─── Boards ─────────────────────────────────────────

    async def create_board(
        self,
        owner_id: str,
        title: str,
        description: str = "",
        board_type: BoardType = BoardType.PRIVATE,
    ) -> Board:
        board = Board(
            title=title,
            description=description,
            type=BoardType(board_type).value,
            owners=[str(owner_id)],
            members=[],
            column_order_ids=[],
        )
        self.db.add(board)
        await self.db.flush()
        await self.events.append(
            stream_id=board_stream(board.id),
            event_type=BOARD_CREATED,
            data={"title": title, "type": board.type},
            actor_id=str(owner_id),
        )
        await self.db.commit()
        await self.db.refresh(board)

        logger.info("board.created", board_id=str(board.id), owner_id=str(owner_id))
        return board

    async def get_board_detail(self, board: Board) -> list[tuple[Column, list[Card]]]:
        """Live columns in board order, each with its live cards in column order."""
        columns = order_by_ids(await self.live_columns(board.id), board.column_order_ids)
        return [
            (column, order_by_ids(await self.live_cards(column.id), column.card_order_ids))
            for column in columns
        ]

    async def update_board(
        self,
        board: Board,
        actor_id: str,
        title: Optional[str] = None,
        description: Optional[str] = None,
        board_type: Optional[BoardType] = None,
        column_order_ids: Optional[list[str]] = None,
    ) -> Board:
        async with self.locks.hold(board.id):
            await self._lock_board(board)
            changes: dict = {}
            if column_order_ids is not None:
                ids = normalize_ids(column_order_ids, InvalidColumnId("column_order_ids"))
                live = {str(c.id) for c in await self.live_columns(board.id)}
                if len(set(ids)) != len(ids) or set(ids) != live:
                    raise Conflict(BOARDS_MESSAGES["COLUMN_ORDER_IDS_OUT_OF_DATE"])
                board.column_order_ids = ids
                changes["column_order_ids"] = ids
            if title is not None:
                board.title = title
                changes["title"] = title
            if description is not None:
                board.description = description
                changes["description"] = description
            if board_type is not None:
                board.type = BoardType(board_type).value
                changes["type"] = board.type

            await self._commit_with_event(board.id, BOARD_UPDATED, changes, actor_id)
            await self.db.refresh(board)

        await publish_event(str(board.id), BOARD_UPDATED, changes)
        return board

    async def list_activity(
        self, board: Board, after_id: int = 0, limit: int = 50
    ) -> list[Event]:
        return await self.events.read_stream(board_stream(board.id), after_id, limit)

    # ─── Columns ────────────────────────────────────────

    async def create_column(self, board: Board, actor_id: str, title: str) -> Column:
        async with self.locks.hold(board.id):
            await self._lock_board(board)
            column = Column(board_id=board.id, title=title, card_order_ids=[])
            self.db.add(column)
            await self.db.flush()
            board.column_order_ids = [*board.column_order_ids, str(column.id)]
            data = {"column_id": str(column.id), "title": title}
            await self._commit_with_event(board.id, COLUMN_CREATED, data, actor_id)
            await self.db.refresh(column)

        await publish_event(str(board.id), COLUMN_CREATED, data)
        return column

    async def update_column(
        self,
        column: Column,
        actor_id: str,
        title: Optional[str] = None,
        card_order_ids: Optional[list[str]] = None,
    ) -> Column:
        async with self.locks.hold(column.board_id):
            column = await self._lock_live_column(column)
            changes: dict = {"column_id": str(column.id)}
            if card_order_ids is not None:
                ids = normalize_ids(card_order_ids, InvalidCardId("card_order_ids"))
                _check_unique(ids, "card_order_ids")
                live = {str(c.id) for c in await self.live_cards(column.id)}
                if set(ids) != live:
                    raise Conflict(BOARDS_MESSAGES["CARD_ORDER_IDS_OUT_OF_DATE"])
                column.card_order_ids = ids
                changes["card_order_ids"] = ids
            if title is not None:
                column.title = title
                changes["title"] = title

            await self._commit_with_event(column.board_id, COLUMN_UPDATED, changes, actor_id)
            await self.db.refresh(column)

        await publish_event(str(column.board_id), COLUMN_UPDATED, changes)
        return column

    async def delete_column(self, column: Column, board: Board, actor_id: str) -> None:
        """Soft-delete a column and its cards; drop it from the board order."""
        async with self.locks.hold(board.id):
            await self._lock_board(board)
            column = await self._lock_live_column(column)
            column.destroyed = True
            for card in await self.live_cards(column.id):
                card.destroyed = True
            board.column_order_ids = [
                cid for cid in board.column_order_ids if cid != str(column.id)
            ]
            data = {"column_id": str(column.id)}
            await self._commit_with_event(board.id, COLUMN_DELETED, data, actor_id)

        logger.info("column.deleted", column_id=str(column.id), board_id=str(board.id))
        await publish_event(str(board.id), COLUMN_DELETED, data)

    # ─── Cards ──────────────────────────────────────────

    async def create_card(
        self, column: Column, actor_id: str, title: str, description: str = ""
    ) -> Card:
        async with self.locks.hold(column.board_id):
            column = await self._lock_live_column(column)
            card = Card(
                board_id=column.board_id,
                column_id=column.id,
                title=title,
                description=description,
            )
            self.db.add(card)
            await self.db.flush()
            column.card_order_ids = [*column.card_order_ids, str(card.id)]
            data = {"card_id": str(card.id), "column_id": str(column.id), "title": title}
            await self._commit_with_event(column.board_id, CARD_CREATED, data, actor_id)
            await self.db.refresh(card)

        await publish_event(str(column.board_id), CARD_CREATED, data)
        return card

    async def move_card_to_different_column(
        self,
        actor_id: str,
        current_card_id: str,
        prev_column_id: str,
        prev_card_order_ids: list[str],
        next_column_id: str,
        next_card_order_ids: list[str],
    ) -> tuple[Card, Column, Column]:
        """Move a card between columns (or reorder inside one column).

        The caller sends the full new ordering of both columns. They are
        accepted only if they describe the current state with the card
        moved: prev == old_prev - {card}, next == old_next + {card} (as sets).
        """
        card = await self.get_card(current_card_id)
        if card is None:
            raise InvalidCardId("current_card_id")
        prev_col = await self.get_column(prev_column_id)
        if prev_col is None:
            raise InvalidColumnId("prev_column_id")
        next_col = await self.get_column(next_column_id)
        if next_col is None:
            raise InvalidColumnId("next_column_id")

        board = await self.get_board(card.board_id)
        if board is None or not board.has_member(str(actor_id)):
            raise NotFound(BOARDS_MESSAGES["BOARD_NOT_FOUND"])
        if prev_col.board_id != board.id:
            raise InvalidColumnId("prev_column_id")
        if next_col.board_id != board.id:
            raise InvalidColumnId("next_column_id")

        prev_ids = normalize_ids(prev_card_order_ids, InvalidCardId("prev_card_order_ids"))
        next_ids = normalize_ids(next_card_order_ids, InvalidCardId("next_card_order_ids"))
        _check_unique(prev_ids, "prev_card_order_ids")
        _check_unique(next_ids, "next_card_order_ids")

        card_key = str(card.id)
        same_column = prev_col.id == next_col.id

        async with self.locks.hold(board.id):
            columns = await self._lock_columns(
                [prev_col.id] if same_column else [prev_col.id, next_col.id]
            )
            prev_col = columns[str(prev_col.id)]
            next_col = columns[str(next_col.id)]
            if prev_col.destroyed or next_col.destroyed:
                raise InvalidColumnId("next_column_id" if next_col.destroyed else "prev_column_id")

            await self.db.refresh(card)
            if card.destroyed:
                raise InvalidCardId("current_card_id")
            if card.column_id != prev_col.id:
                raise Conflict(BOARDS_MESSAGES["CARD_ORDER_IDS_OUT_OF_DATE"])

            if same_column:
                if set(next_ids) != set(prev_col.card_order_ids) | {card_key}:
                    raise Conflict(BOARDS_MESSAGES["CARD_ORDER_IDS_OUT_OF_DATE"])
            else:
                expected_prev = set(prev_col.card_order_ids) - {card_key}
                expected_next = set(next_col.card_order_ids) | {card_key}
                if set(prev_ids) != expected_prev or set(next_ids) != expected_next:
                    raise Conflict(BOARDS_MESSAGES["CARD_ORDER_IDS_OUT_OF_DATE"])

            data = {
                "card_id": card_key,
                "prev_column_id": str(prev_col.id),
                "next_column_id": str(next_col.id),
                "next_card_order_ids": next_ids,
            }
            if same_column:
                next_col.card_order_ids = next_ids
            else:
                prev_col.card_order_ids = prev_ids
                next_col.card_order_ids = next_ids
                card.column_id = next_col.id
                data["prev_card_order_ids"] = prev_ids

            await self._commit_with_event(board.id, CARD_MOVED, data, actor_id)
            for row in {prev_col, next_col, card}:
                await self.db.refresh(row)

        logger.info(
            "board.card_moved",
            board_id=str(board.id),
            card_id=card_key,
            prev_column_id=str(prev_col.id),
            next_column_id=str(next_col.id),
        )
        await publish_event(str(board.id), CARD_MOVED, data)
        return card, prev_col, next_col

    # ─── Internals ──────────────────────────────────────

    async def _commit_with_event(
        self, board_id: uuid.UUID, event_type: str, data: dict, actor_id: str
    ) -> None:
        """Append the event and commit everything pending as one transaction."""
        try:
            await self.events.append(
                stream_id=board_stream(board_id),
                event_type=event_type,
                data=data,
                actor_id=str(actor_id),
            )
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise
