"""Resource access checks — the tail of the authorization chain.

Learn: Route handlers never load a board, column or card by hand. They
declare a dependency that:

    1. checks the id is syntactically valid      → 422 "Invalid ... id"
    2. loads the live (non-destroyed) row         → 404 if missing
    3. checks the caller belongs to its board     → 404 if not

Steps 2 and 3 answer with the same 404, so a caller can't probe which
boards exist. Columns and cards inherit access from their board.

Public boards can be read by any authenticated user. Changing a board
always requires membership (owners ∪ members).
"""

from dataclasses import dataclass

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import AuthContext, require_user
from trellone.constants import BOARDS_MESSAGES, COLUMNS_MESSAGES, BoardType
from trellone.db.engine import get_db
from trellone.db.models import Board, Card, Column, parse_id
from trellone.errors import EntityValidationError, NotFound
from trellone.services.board_service import BoardService


@dataclass(frozen=True)
class ColumnAccess:
    column: Column
    board: Board


@dataclass(frozen=True)
class CardAccess:
    card: Card
    column: Column
    board: Board


def can_read(board: Board, user_id: str) -> bool:
    return board.type == BoardType.PUBLIC.value or board.has_member(user_id)


def _check_id(value: str, field: str, message: str, location: str) -> None:
    if parse_id(value) is None:
        raise EntityValidationError.for_field(field, message, location=location)


async def _member_board(service: BoardService, board_id, user_id: str) -> Board:
    board = await service.get_board(board_id)
    if board is None or not board.has_member(user_id):
        raise NotFound(BOARDS_MESSAGES["BOARD_NOT_FOUND"])
    return board


# ─── Boards ─────────────────────────────────────────────


async def load_board_for_reader(
    board_id: str,
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> Board:
    """Board visible to the caller: a member, or anyone if it is public."""
    _check_id(board_id, "board_id", BOARDS_MESSAGES["INVALID_BOARD_ID"], "path")
    board = await BoardService(db).get_board(board_id)
    if board is None or not can_read(board, ctx.user_id):
        raise NotFound(BOARDS_MESSAGES["BOARD_NOT_FOUND"])
    return board


async def load_board_for_member(
    board_id: str,
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> Board:
    _check_id(board_id, "board_id", BOARDS_MESSAGES["INVALID_BOARD_ID"], "path")
    return await _member_board(BoardService(db), board_id, ctx.user_id)


async def check_board_member(
    db: AsyncSession, board_id: str, user_id: str, location: str = "body"
) -> Board:
    """Same check for ids that arrive in a request body rather than the path."""
    _check_id(board_id, "board_id", BOARDS_MESSAGES["INVALID_BOARD_ID"], location)
    return await _member_board(BoardService(db), board_id, user_id)


# ─── Columns and cards ──────────────────────────────────


async def check_column_member(
    db: AsyncSession, column_id: str, user_id: str, location: str = "body"
) -> ColumnAccess:
    _check_id(column_id, "column_id", COLUMNS_MESSAGES["INVALID_COLUMN_ID"], location)
    service = BoardService(db)
    column = await service.get_column(column_id)
    if column is None:
        raise NotFound(COLUMNS_MESSAGES["COLUMN_NOT_FOUND"])
    board = await service.get_board(column.board_id)
    if board is None or not board.has_member(user_id):
        raise NotFound(COLUMNS_MESSAGES["COLUMN_NOT_FOUND"])
    return ColumnAccess(column=column, board=board)


async def load_column_for_member(
    column_id: str,
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> ColumnAccess:
    return await check_column_member(db, column_id, ctx.user_id, location="path")


async def check_card_member(
    db: AsyncSession, card_id: str, user_id: str, location: str = "body"
) -> CardAccess:
    _check_id(card_id, "card_id", BOARDS_MESSAGES["INVALID_CARD_ID"], location)
    service = BoardService(db)
    card = await service.get_card(card_id)
    if card is None:
        raise NotFound(BOARDS_MESSAGES["CARD_NOT_FOUND"])
    column = await service.get_column(card.column_id)
    board = await service.get_board(card.board_id)
    if column is None or board is None or not board.has_member(user_id):
        raise NotFound(BOARDS_MESSAGES["CARD_NOT_FOUND"])
    return CardAccess(card=card, column=column, board=board)


async def load_card_for_member(
    card_id: str,
    ctx: AuthContext = Depends(require_user),
    db: AsyncSession = Depends(get_db),
) -> CardAccess:
    return await check_card_member(db, card_id, ctx.user_id, location="path")
