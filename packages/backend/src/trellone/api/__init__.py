"""API route aggregation.

All routers registered here get mounted in main.py.

Learn: Unlike a blanket include_router(dependencies=[...]), auth is
declared per route: most routes need the loaded user or a board
permission, and the auth routes each want a different token kind
(access, refresh, email verify, forgot password).
"""

from fastapi import APIRouter

from trellone.api.auth import router as auth_router
from trellone.api.boards import router as boards_router
from trellone.api.cards import router as cards_router
from trellone.api.columns import router as columns_router
from trellone.api.health import router as health_router
from trellone.api.users import router as users_router

api_router = APIRouter(prefix="/api/v1")

api_router.include_router(health_router, tags=["health"])
api_router.include_router(auth_router, tags=["auth"])
api_router.include_router(users_router, tags=["users"])
api_router.include_router(boards_router, tags=["boards"])
api_router.include_router(columns_router, tags=["columns"])
api_router.include_router(cards_router, tags=["cards"])
