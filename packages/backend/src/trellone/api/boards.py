"""Board API routes.

Learn: Routes resolve the board through a permission dependency
(load_board_for_reader / load_board_for_member), then delegate to
BoardService. Routes never check membership themselves.

The move-card route is board-scoped but takes its ids from the body:
the service validates that all of them live on one board the caller
belongs to.
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import AuthContext, require_user, require_verified_user
from trellone.auth.permissions import load_board_for_member, load_board_for_reader
from trellone.constants import BOARDS_MESSAGES
from trellone.db.engine import get_db
from trellone.db.models import Board
from trellone.schemas.auth import ResultResponse
from trellone.schemas.board import (
    BoardCreate,
    BoardDetail,
    BoardRead,
    BoardUpdate,
    CardRead,
    ColumnDetail,
    ColumnRead,
    EventRead,
    MoveCardRequest,
    MoveCardResult,
)
from trellone.services.board_service import BoardService

router = APIRouter(prefix="/boards")


def _svc(db: AsyncSession = Depends(get_db)) -> BoardService:
    return BoardService(db)


@router.post("", response_model=ResultResponse[BoardRead], status_code=201)
async def create_board(
    body: BoardCreate,
    ctx: AuthContext = Depends(require_verified_user),
    svc: BoardService = Depends(_svc),
):
    """Create a board. The creator becomes its first owner."""
    board = await svc.create_board(
        owner_id=ctx.user_id,
        title=body.title,
        description=body.description,
        board_type=body.type,
    )
    return ResultResponse[BoardRead](
        message=BOARDS_MESSAGES["CREATE_BOARD_SUCCESS"],
        result=BoardRead.model_validate(board),
    )


@router.put("/supports/moving-card", response_model=ResultResponse[MoveCardResult])
async def move_card_to_different_column(
    body: MoveCardRequest,
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    card, prev_column, next_column = await svc.move_card_to_different_column(
        actor_id=ctx.user_id,
        current_card_id=body.current_card_id,
        prev_column_id=body.prev_column_id,
        prev_card_order_ids=body.prev_card_order_ids,
        next_column_id=body.next_column_id,
        next_card_order_ids=body.next_card_order_ids,
    )
    return ResultResponse[MoveCardResult](
        message=BOARDS_MESSAGES["MOVE_CARD_TO_DIFFERENT_COLUMN_SUCCESS"],
        result=MoveCardResult(
            card=CardRead.model_validate(card),
            prev_column=ColumnRead.model_validate(prev_column),
            next_column=ColumnRead.model_validate(next_column),
        ),
    )


@router.get("/{board_id}", response_model=ResultResponse[BoardDetail])
async def get_board(
    board: Board = Depends(load_board_for_reader),
    svc: BoardService = Depends(_svc),
):
    """Board with its live columns and cards, in display order."""
    columns = await svc.get_board_detail(board)
    detail = BoardDetail.model_validate(board).model_copy(
        update={
            "columns": [
                ColumnDetail.model_validate(column).model_copy(
                    update={"cards": [CardRead.model_validate(c) for c in cards]}
                )
                for column, cards in columns
            ]
        }
    )
    return ResultResponse[BoardDetail](
        message=BOARDS_MESSAGES["GET_BOARD_SUCCESS"], result=detail
    )


@router.put("/{board_id}", response_model=ResultResponse[BoardRead])
async def update_board(
    body: BoardUpdate,
    board: Board = Depends(load_board_for_member),
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    board = await svc.update_board(
        board,
        actor_id=ctx.user_id,
        title=body.title,
        description=body.description,
        board_type=body.type,
        column_order_ids=body.column_order_ids,
    )
    return ResultResponse[BoardRead](
        message=BOARDS_MESSAGES["UPDATE_BOARD_SUCCESS"],
        result=BoardRead.model_validate(board),
    )


@router.get("/{board_id}/activity", response_model=ResultResponse[list[EventRead]])
async def get_board_activity(
    after_id: int = Query(0, ge=0),
    limit: int = Query(50, ge=1, le=200),
    board: Board = Depends(load_board_for_reader),
    svc: BoardService = Depends(_svc),
):
    """Committed mutations of the board, oldest first (poll with after_id)."""
    events = await svc.list_activity(board, after_id=after_id, limit=limit)
    return ResultResponse[list[EventRead]](
        message=BOARDS_MESSAGES["GET_BOARD_ACTIVITY_SUCCESS"],
        result=[EventRead.model_validate(e) for e in events],
    )
