"""Column API routes."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import AuthContext, require_user
from trellone.auth.permissions import (
    ColumnAccess,
    check_board_member,
    load_column_for_member,
)
from trellone.constants import COLUMNS_MESSAGES
from trellone.db.engine import get_db
from trellone.schemas.auth import MessageResponse, ResultResponse
from trellone.schemas.board import ColumnCreate, ColumnRead, ColumnUpdate
from trellone.services.board_service import BoardService

router = APIRouter(prefix="/columns")


def _svc(db: AsyncSession = Depends(get_db)) -> BoardService:
    return BoardService(db)


@router.post("", response_model=ResultResponse[ColumnRead], status_code=201)
async def create_column(
    body: ColumnCreate,
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    """Create a column at the end of the board."""
    board = await check_board_member(svc.db, body.board_id, ctx.user_id)
    column = await svc.create_column(board, actor_id=ctx.user_id, title=body.title)
    return ResultResponse[ColumnRead](
        message=COLUMNS_MESSAGES["CREATE_COLUMN_SUCCESS"],
        result=ColumnRead.model_validate(column),
    )


@router.put("/{column_id}", response_model=ResultResponse[ColumnRead])
async def update_column(
    body: ColumnUpdate,
    access: ColumnAccess = Depends(load_column_for_member),
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    """Rename a column and/or reorder its cards."""
    column = await svc.update_column(
        access.column,
        actor_id=ctx.user_id,
        title=body.title,
        card_order_ids=body.card_order_ids,
    )
    return ResultResponse[ColumnRead](
        message=COLUMNS_MESSAGES["UPDATE_COLUMN_SUCCESS"],
        result=ColumnRead.model_validate(column),
    )


@router.delete("/{column_id}", response_model=MessageResponse)
async def delete_column(
    access: ColumnAccess = Depends(load_column_for_member),
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    await svc.delete_column(access.column, access.board, actor_id=ctx.user_id)
    return MessageResponse(message=COLUMNS_MESSAGES["DELETE_COLUMN_SUCCESS"])
