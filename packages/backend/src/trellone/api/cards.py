"""Card API routes. Moving a card lives on the boards router."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from trellone.auth.dependencies import AuthContext, require_user
from trellone.auth.permissions import (
    CardAccess,
    check_column_member,
    load_card_for_member,
)
from trellone.constants import CARDS_MESSAGES
from trellone.db.engine import get_db
from trellone.schemas.auth import ResultResponse
from trellone.schemas.board import CardCreate, CardRead
from trellone.services.board_service import BoardService

router = APIRouter(prefix="/cards")


def _svc(db: AsyncSession = Depends(get_db)) -> BoardService:
    return BoardService(db)


@router.post("", response_model=ResultResponse[CardRead], status_code=201)
async def create_card(
    body: CardCreate,
    ctx: AuthContext = Depends(require_user),
    svc: BoardService = Depends(_svc),
):
    """Create a card at the bottom of a column."""
    access = await check_column_member(svc.db, body.column_id, ctx.user_id)
    card = await svc.create_card(
        access.column,
        actor_id=ctx.user_id,
        title=body.title,
        description=body.description,
    )
    return ResultResponse[CardRead](
        message=CARDS_MESSAGES["CREATE_CARD_SUCCESS"],
        result=CardRead.model_validate(card),
    )


@router.get("/{card_id}", response_model=ResultResponse[CardRead])
async def get_card(access: CardAccess = Depends(load_card_for_member)):
    return ResultResponse[CardRead](
        message=CARDS_MESSAGES["GET_CARD_SUCCESS"],
        result=CardRead.model_validate(access.card),
    )
